"""Shared type definitions for kiln."""

from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from kiln.assets import CopyPair

# Mode of operation
type KilnMode = Literal["build", "serve"]

# Serve session lifecycle
type SessionState = Literal["initializing", "serving", "shutting_down", "stopped"]

# Reload client identifier
type ClientID = str

# Raw batch yielded by watchfiles: {(Change, "/abs/path"), ...}
type ChangeSet = set[tuple[object, str]]

# Coroutine invoked with each batch of filesystem changes
type ChangeHandler = Callable[[ChangeSet], Awaitable[None]]

# Copies every configured pair, returns the number of files written
type AssetCopier = Callable[[Sequence[CopyPair]], Awaitable[int]]
