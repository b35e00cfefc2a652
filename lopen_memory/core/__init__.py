"""Core engine for lopen-memory: store, resolver, lifecycle and deletion."""

from lopen_memory.core.errors import LopenMemoryError, StorageError, UserInputError
from lopen_memory.core.models import EntityKind
from lopen_memory.core.state_machine import LifecycleState
from lopen_memory.core.store import Store

__all__ = ["EntityKind", "LifecycleState", "LopenMemoryError", "Store", "StorageError", "UserInputError"]
