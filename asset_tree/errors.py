"""Error tags returned by validators and mutations, plus the data-integrity fault."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TreeErrorKind(str, Enum):
    """Reason a tree operation was rejected."""
    CIRCULAR_REFERENCE = "CircularReference"
    SELF_PARENT = "SelfParent"
    MAX_DEPTH_EXCEEDED = "MaxDepthExceeded"
    PARENT_NOT_FOUND = "ParentNotFound"
    PARENT_NOT_FOLDER = "ParentNotFolder"
    NOT_FOUND = "NotFound"
    DUPLICATE_ID = "DuplicateId"
    INVALID_NAME = "InvalidName"


_DEFAULT_MESSAGES = {
    TreeErrorKind.CIRCULAR_REFERENCE: "Cannot set parent to a descendant folder (would create circular reference)",
    TreeErrorKind.SELF_PARENT: "Cannot set folder as its own parent",
    TreeErrorKind.MAX_DEPTH_EXCEEDED: "Maximum nesting depth would be exceeded",
    TreeErrorKind.PARENT_NOT_FOUND: "Parent folder not found",
    TreeErrorKind.PARENT_NOT_FOLDER: "Parent must be a folder",
    TreeErrorKind.NOT_FOUND: "Asset not found",
    TreeErrorKind.DUPLICATE_ID: "An asset with this id already exists",
    TreeErrorKind.INVALID_NAME: "Asset name is required",
}


@dataclass(frozen=True)
class TreeError:
    """A rejected operation: the tag plus a human-readable explanation."""
    kind: TreeErrorKind
    detail: Optional[str] = None

    @property
    def message(self) -> str:
        return self.detail or _DEFAULT_MESSAGES[self.kind]

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class MalformedAssetError(ValueError):
    """Raised when stored asset data violates the tree's integrity rules.

    This is a data/programming fault caught on ingestion, not a rejected
    user operation.
    """
    pass
