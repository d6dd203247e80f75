"""Registry of the notification methods available to a process.

Build one registry at startup and pass it to NotificationQueue and the
dispatcher. Methods are looked up by their name in the notify_methods table.
"""

import importlib
from typing import Any, Dict, Iterator, List, Optional, Type

from notifications.errors import NotificationQueueError, NotificationValidationError
from notifications.methods.base import NotificationMethod
from notifications.store import NotificationStore


def import_method_class(path: str) -> Type[NotificationMethod]:
    """Import a method class from a "package.module:ClassName" path."""
    module_name, _, class_name = path.partition(":")
    if not module_name or not class_name:
        raise ValueError(f"Invalid method class path '{path}'")
    module = importlib.import_module(module_name)
    method_cls = getattr(module, class_name)
    if not (isinstance(method_cls, type) and issubclass(method_cls, NotificationMethod)):
        raise TypeError(f"{path} is not a NotificationMethod")
    return method_cls


class MethodRegistry:
    """Name -> NotificationMethod lookup."""

    def __init__(self, methods: Optional[List[NotificationMethod]] = None):
        self._by_name: Dict[str, NotificationMethod] = {}
        self._by_id: Dict[int, NotificationMethod] = {}
        for method in methods or []:
            self.register(method)

    def register(self, method: NotificationMethod) -> None:
        if method.name in self._by_name:
            raise ValueError(f"Notification method '{method.name}' is already registered")
        self._by_name[method.name] = method
        self._by_id[method.get_id()] = method

    def get(self, name: str) -> NotificationMethod:
        try:
            return self._by_name[name]
        except KeyError:
            raise NotificationValidationError(f"Unknown notification method '{name}'") from None

    def get_by_id(self, method_id: int) -> NotificationMethod:
        try:
            return self._by_id[method_id]
        except KeyError:
            raise NotificationValidationError(f"Unknown notification method id {method_id}") from None

    def names(self) -> List[str]:
        return sorted(self._by_name)

    def as_dict(self) -> Dict[str, NotificationMethod]:
        return dict(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[NotificationMethod]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)

    @classmethod
    def load(
        cls, store: NotificationStore, config: Optional[Dict[str, Dict[str, Any]]] = None
    ) -> "MethodRegistry":
        """
        Instantiate every method listed in the notify_methods table.

        Args:
            store: Notification store, also handed to each method
            config: Optional per-method configuration keyed by method name

        Raises:
            NotificationQueueError: If a listed method cannot be loaded
        """
        config = config or {}
        registry = cls()
        for row in store.get_methods():
            try:
                method_cls = import_method_class(row["module"])
                method = method_cls(
                    method_id=row["id"],
                    method_name=row["name"],
                    store=store,
                    config=config.get(row["name"]),
                )
            except (ImportError, AttributeError, TypeError, ValueError) as e:
                raise NotificationQueueError(
                    f"Unable to load notification module '{row['name']}': {e}"
                ) from e
            registry.register(method)
        return registry
