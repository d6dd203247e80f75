"""
Read access to article storage for the notification engine.

Articles and their authors are owned by the publishing side of the system;
the notification engine only ever reads them.
"""

from typing import Any, Dict, Iterable, Optional

from config.settings import TABLES
from models.article import Article, Author
from shared.db import get_supabase_client


class ArticleNotFoundError(LookupError):
    """Raised when an article or author row does not exist."""


class ArticleReader:
    """Fetch article records and their authors from Supabase."""

    def __init__(self, client: Any = None, tables: Optional[Dict[str, str]] = None):
        self._client = client
        self.tables = dict(TABLES)
        if tables:
            self.tables.update(tables)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def get_article(self, article_id: int) -> Article:
        response = (
            self.client.table(self.tables["articles"])
            .select("id, title, summary, article, creator_id, created, release_time")
            .eq("id", article_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise ArticleNotFoundError(f"Unable to locate article {article_id}")
        return Article.model_validate(response.data[0])

    def get_release_times(self, article_ids: Iterable[int]) -> Dict[int, Optional[str]]:
        """Release time for each article id, as stored."""
        ids = list(set(article_ids))
        if not ids:
            return {}
        response = (
            self.client.table(self.tables["articles"])
            .select("id, release_time")
            .in_("id", ids)
            .execute()
        )
        return {row["id"]: row.get("release_time") for row in response.data or []}

    def get_author(self, user_id: int) -> Author:
        response = (
            self.client.table(self.tables["users"])
            .select("user_id, username, realname, email")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise ArticleNotFoundError(f"Unable to obtain author information for user {user_id}")
        return Author.model_validate(response.data[0])

    def get_users(self, user_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        response = (
            self.client.table(self.tables["users"])
            .select("user_id, username, realname, email")
            .in_("user_id", ids)
            .execute()
        )
        return {row["user_id"]: row for row in response.data or []}

    def get_articles(self, article_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        ids = list(set(article_ids))
        if not ids:
            return {}
        response = (
            self.client.table(self.tables["articles"])
            .select("id, creator_id, created, release_time")
            .in_("id", ids)
            .execute()
        )
        return {row["id"]: row for row in response.data or []}
