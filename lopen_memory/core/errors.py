"""Error taxonomy for lopen-memory.

Every failure the core reports is one of these types. The CLI maps
``UserInputError`` subclasses to exit code 1 and ``StorageError`` to
exit code 2.

This module is headless - no CLI dependencies.
"""

from typing import Optional, Sequence


class LopenMemoryError(Exception):
    """Base class for all lopen-memory errors."""


class UserInputError(LopenMemoryError):
    """A failure caused by what the caller asked for, not by the store."""


class NotFoundError(UserInputError):
    """Raised when a reference token does not resolve to any row."""

    def __init__(self, kind: str, token: str, scope: Optional[str] = None):
        self.kind = kind
        self.token = token
        self.scope = scope
        message = f"{kind} not found: {token}"
        if scope:
            message += f" (in {scope})"
        super().__init__(message)


class AmbiguousError(UserInputError):
    """Raised when a name exists under several parents and no hint was given."""

    def __init__(self, kind: str, name: str, scopes: Sequence[str], hint_flag: str):
        self.kind = kind
        self.name = name
        self.scopes = list(scopes)
        self.hint_flag = hint_flag
        super().__init__(
            f"{kind} name '{name}' is ambiguous; found under: {', '.join(self.scopes)}. "
            f"Specify {hint_flag} to narrow scope"
        )


class DuplicateNameError(UserInputError):
    """Raised when a create or rename would break name uniqueness."""

    def __init__(self, kind: str, name: str, scope: Optional[str] = None):
        self.kind = kind
        self.name = name
        self.scope = scope
        where = f" in {scope}" if scope else ""
        super().__init__(f"{kind} '{name}' already exists{where}")


class MissingParentError(UserInputError):
    """Raised when a create references a parent that does not resolve."""

    def __init__(self, kind: str, parent_kind: str, token: str):
        self.kind = kind
        self.parent_kind = parent_kind
        self.token = token
        super().__init__(f"cannot create {kind}: parent {parent_kind} not found: {token}")


class HasChildrenError(UserInputError):
    """Raised when a non-cascading removal targets an entity with children."""

    def __init__(self, kind: str, name: str, child_kind: str, count: int):
        self.kind = kind
        self.name = name
        self.child_kind = child_kind
        self.count = count
        super().__init__(
            f"{kind} '{name}' has {count} {child_kind}(s); pass --cascade to remove them"
        )


class InvalidArgumentError(UserInputError, ValueError):
    """Raised for malformed input such as an unparseable date or state name."""


class StorageError(LopenMemoryError):
    """Raised when the underlying SQLite store fails (I/O, locking, constraints)."""
