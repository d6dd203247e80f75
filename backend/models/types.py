"""Shared type definitions for type checking.

Uses NewType for IDs to provide compile-time type safety - prevents mixing
different ID types (e.g., passing a MethodID where a HeaderID is expected).

Uses TypeAlias for complex types that are purely structural.
"""

from typing import NewType, TypeAlias

# ID types using NewType for type safety
ArticleID = NewType("ArticleID", int)
HeaderID = NewType("HeaderID", int)
MethodID = NewType("MethodID", int)
RecipientID = NewType("RecipientID", int)
RecipientMethodID = NewType("RecipientMethodID", int)
UserID = NewType("UserID", int)
YearID = NewType("YearID", int)

# Structural aliases using TypeAlias
UsedMethods: TypeAlias = dict[str, list[int]]  # method name -> recip_meth ids
AllRecipients: TypeAlias = dict[str, list[str]]  # method name -> shortnames
