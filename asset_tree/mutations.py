"""Tree mutations: insert, move, rename and cascade delete.

Every operation validates fully before producing a new collection and
never touches the input. A rejected operation hands the caller's
collection back as-is together with the first failing error tag.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .asset import MAX_NESTING_DEPTH, AssetIndex, AssetNode, NodeCollection
from .errors import TreeError, TreeErrorKind
from .hierarchy import can_nest_under, can_reparent, descendant_ids, depth_of, subtree_height

logger = logging.getLogger(__name__)


@dataclass
class MutationResult:
    """Result of a tree mutation.

    Attributes:
        success: Whether the mutation was applied.
        nodes: The new collection on success, the untouched input on failure.
        error: The rejection reason, if any.
        node: The inserted, moved or renamed node on success.
        removed_count: Number of nodes removed by a cascade delete.
    """
    success: bool
    nodes: NodeCollection
    error: Optional[TreeError] = None
    node: Optional[AssetNode] = None
    removed_count: int = 0

    @property
    def error_kind(self) -> Optional[TreeErrorKind]:
        return self.error.kind if self.error else None


def _reject(
    nodes: NodeCollection,
    operation: str,
    kind: TreeErrorKind,
    detail: Optional[str] = None
) -> MutationResult:
    error = TreeError(kind, detail)
    logger.debug(f"[Tree] {operation} rejected - {error}")
    return MutationResult(success=False, nodes=nodes, error=error)


def _check_parent(
    index: AssetIndex,
    parent_id: Optional[str],
    enforce_folder_parents: bool
) -> Optional[TreeErrorKind]:
    """Existence and kind checks for a proposed parent."""
    if parent_id is None:
        return None
    parent = index.get(parent_id)
    if parent is None:
        return TreeErrorKind.PARENT_NOT_FOUND
    if enforce_folder_parents and not parent.is_folder:
        return TreeErrorKind.PARENT_NOT_FOLDER
    return None


def _depth_detail(max_depth: int) -> str:
    return f"Maximum nesting depth ({max_depth} levels) would be exceeded"


def insert(
    nodes: NodeCollection,
    new_node: AssetNode,
    parent_id: Optional[str],
    max_depth: int = MAX_NESTING_DEPTH,
    enforce_folder_parents: bool = True
) -> MutationResult:
    """Add a node under `parent_id` (None for root).

    Args:
        nodes: Current asset collection
        new_node: Node to add; its own parent field is replaced and its
            name is stored stripped
        parent_id: Target parent folder id, or None (or "") for root
        max_depth: Configured maximum nesting depth
        enforce_folder_parents: Reject file nodes as parents

    Returns:
        MutationResult with the node appended on success
    """
    index = AssetIndex.of(nodes)
    parent_id = parent_id or None

    if not new_node.name.strip():
        return _reject(nodes, "insert", TreeErrorKind.INVALID_NAME)

    if new_node.id in index:
        return _reject(nodes, "insert", TreeErrorKind.DUPLICATE_ID,
                       f"An asset with id {new_node.id!r} already exists")

    parent_error = _check_parent(index, parent_id, enforce_folder_parents)
    if parent_error is not None:
        return _reject(nodes, "insert", parent_error)

    nesting = can_nest_under(index, parent_id, max_depth)
    if not nesting.valid:
        return _reject(nodes, "insert", TreeErrorKind.MAX_DEPTH_EXCEEDED, _depth_detail(max_depth))

    placed = new_node.with_name(new_node.name.strip()).with_parent(parent_id)
    logger.debug(f"[Tree] Inserted {placed} under {parent_id or 'root'}")
    return MutationResult(success=True, nodes=list(index.nodes) + [placed], node=placed)


def move(
    nodes: NodeCollection,
    node_id: str,
    new_parent_id: Optional[str],
    max_depth: int = MAX_NESTING_DEPTH,
    enforce_folder_parents: bool = True
) -> MutationResult:
    """Re-parent a node together with its subtree.

    The cycle guard runs before the depth check. Depth is validated for
    the moved root against the target parent and for the deepest node of
    the moved subtree, whose relative depths are preserved.

    Args:
        nodes: Current asset collection
        node_id: Node to move
        new_parent_id: Target parent folder id, or None (or "") for root
        max_depth: Configured maximum nesting depth
        enforce_folder_parents: Reject file nodes as parents

    Returns:
        MutationResult with the node replaced in place on success
    """
    index = AssetIndex.of(nodes)
    new_parent_id = new_parent_id or None
    node = index.get(node_id)
    if node is None:
        return _reject(nodes, "move", TreeErrorKind.NOT_FOUND)

    cycle_check = can_reparent(index, node_id, new_parent_id)
    if not cycle_check.valid:
        return _reject(nodes, "move", cycle_check.error_kind)

    parent_error = _check_parent(index, new_parent_id, enforce_folder_parents)
    if parent_error is not None:
        return _reject(nodes, "move", parent_error)

    nesting = can_nest_under(index, new_parent_id, max_depth)
    if not nesting.valid:
        return _reject(nodes, "move", TreeErrorKind.MAX_DEPTH_EXCEEDED, _depth_detail(max_depth))

    deepest = nesting.current_depth + subtree_height(index, node_id)
    if deepest > max_depth - 1:
        return _reject(
            nodes, "move", TreeErrorKind.MAX_DEPTH_EXCEEDED,
            f"{_depth_detail(max_depth)} by a nested item at depth {deepest}"
        )

    moved = node.with_parent(new_parent_id)
    updated = [moved if item.id == node_id else item for item in index.nodes]
    logger.debug(
        f"[Tree] Moved {moved} from {node.parent or 'root'} to {new_parent_id or 'root'} "
        f"(depth {depth_of(index, node_id)} -> {nesting.current_depth})"
    )
    return MutationResult(success=True, nodes=updated, node=moved)


def rename(nodes: NodeCollection, node_id: str, name: str) -> MutationResult:
    """Change a node's display name."""
    index = AssetIndex.of(nodes)
    node = index.get(node_id)
    if node is None:
        return _reject(nodes, "rename", TreeErrorKind.NOT_FOUND)

    if not name or not name.strip():
        return _reject(nodes, "rename", TreeErrorKind.INVALID_NAME)

    renamed = node.with_name(name.strip())
    updated = [renamed if item.id == node_id else item for item in index.nodes]
    return MutationResult(success=True, nodes=updated, node=renamed)


def cascade_delete(nodes: NodeCollection, node_id: str) -> MutationResult:
    """Remove a node and its entire subtree in one step.

    Cannot partially fail: an unknown id is rejected with NOT_FOUND,
    anything else removes `1 + len(descendants)` nodes and leaves no
    remaining node pointing at a removed one.
    """
    index = AssetIndex.of(nodes)
    node = index.get(node_id)
    if node is None:
        return _reject(nodes, "delete", TreeErrorKind.NOT_FOUND)

    ids_to_remove = descendant_ids(index, node_id)
    ids_to_remove.add(node_id)

    remaining: List[AssetNode] = [item for item in index.nodes if item.id not in ids_to_remove]
    removed_count = len(index) - len(remaining)
    logger.debug(f"[Tree] Deleted {node} with {removed_count - 1} nested item(s)")
    return MutationResult(success=True, nodes=remaining, node=node, removed_count=removed_count)
