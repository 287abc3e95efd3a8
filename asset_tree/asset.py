"""AssetNode - Immutable asset record and the id-indexed lookup built over it."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union


# Maximum allowed nesting depth; the deepest node sits at depth MAX_NESTING_DEPTH - 1
MAX_NESTING_DEPTH = 10


class AssetKind(str, Enum):
    """Kind of an asset node. Only folders hold children."""
    FILE = "file"
    FOLDER = "folder"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class AssetNode:
    """A single file or folder reference attached to a project.

    Nodes are values: renaming or re-parenting produces a new node.
    `parent` is None for root nodes; the normalizer guarantees there is
    no other representation of "no parent".

    Attributes:
        id: Opaque unique identifier, never changes.
        name: Display label used in paths and breadcrumbs.
        kind: File or folder.
        parent: Id of the parent folder, or None for a root.
        external_link: Opaque URI of the referenced storage item.
        previews: Attached preview resources, passed through untouched.
        created_at: Informational creation timestamp.
        asset_ref: Opaque id of the project deliverable this asset belongs to.
    """

    id: str
    name: str
    kind: AssetKind = AssetKind.FILE
    parent: Optional[str] = None
    external_link: str = ""
    previews: Tuple[Any, ...] = ()
    created_at: str = field(default_factory=_utc_now)
    asset_ref: Optional[str] = None

    def __post_init__(self):
        # Accept plain strings / lists from callers building nodes by hand
        if not isinstance(self.kind, AssetKind):
            object.__setattr__(self, "kind", AssetKind(self.kind))
        if not isinstance(self.previews, tuple):
            object.__setattr__(self, "previews", tuple(self.previews))

    @property
    def is_folder(self) -> bool:
        return self.kind == AssetKind.FOLDER

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def with_parent(self, parent: Optional[str]) -> 'AssetNode':
        """Return a copy of this node attached under `parent`."""
        return replace(self, parent=parent)

    def with_name(self, name: str) -> 'AssetNode':
        """Return a copy of this node with a new display name."""
        return replace(self, name=name)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON record shape stored in project documents."""
        record: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "parent": self.parent,
            "externalLink": self.external_link,
            "previews": list(self.previews),
            "createdAt": self.created_at,
        }
        if self.asset_ref is not None:
            record["assetRef"] = self.asset_ref
        return record

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.name} ({self.id})"


class AssetIndex:
    """Id-indexed view over a flat asset collection.

    Built once per call (or cached by the caller) so tree walks
    resolve ids and children in constant time instead of rescanning the
    list. Children keep the order they have in the collection.
    """

    def __init__(self, nodes: Iterable[AssetNode]):
        """Index a collection of already normalized nodes.

        Args:
            nodes: The asset nodes of one project.
        """
        self._nodes: Tuple[AssetNode, ...] = tuple(nodes)
        self._by_id: Dict[str, AssetNode] = {}
        self._children: Dict[Optional[str], List[AssetNode]] = {}

        for node in self._nodes:
            self._by_id.setdefault(node.id, node)
            self._children.setdefault(node.parent, []).append(node)

    @classmethod
    def of(cls, nodes: 'NodeCollection') -> 'AssetIndex':
        """Return `nodes` itself if already indexed, else index it."""
        if isinstance(nodes, AssetIndex):
            return nodes
        return cls(nodes)

    @property
    def nodes(self) -> Tuple[AssetNode, ...]:
        return self._nodes

    def get(self, node_id: Optional[str]) -> Optional[AssetNode]:
        """Look up a node by id.

        Returns:
            The node, or None if the id is unknown (or None).
        """
        if node_id is None:
            return None
        return self._by_id.get(node_id)

    def children_of(self, parent_id: Optional[str]) -> List[AssetNode]:
        """Direct children of `parent_id`; None gives the root nodes."""
        return list(self._children.get(parent_id, ()))

    def has_children(self, parent_id: str) -> bool:
        return bool(self._children.get(parent_id))

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._by_id

    def __iter__(self) -> Iterator[AssetNode]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"AssetIndex(nodes={len(self._nodes)}, roots={len(self._children.get(None, ()))})"


NodeCollection = Union[Sequence[AssetNode], AssetIndex]
