"""Hierarchy queries and validators over a flat asset collection.

Pure read operations: children/root lookups, descendant collection,
ancestor paths, depth computation and the cycle guard used before any
re-parenting. Every function accepts a plain sequence of normalized
nodes or a prebuilt AssetIndex.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .asset import MAX_NESTING_DEPTH, AssetIndex, AssetKind, AssetNode, NodeCollection
from .errors import TreeError, TreeErrorKind


@dataclass(frozen=True)
class NestingCheck:
    """Outcome of a depth check for adding one level under a parent.

    Attributes:
        valid: Whether a child may be placed under the parent.
        current_depth: Depth the new child would have.
        max_allowed: The configured maximum nesting depth.
    """
    valid: bool
    current_depth: int
    max_allowed: int


@dataclass(frozen=True)
class ReparentCheck:
    """Outcome of the cycle guard."""
    valid: bool
    error_kind: Optional[TreeErrorKind] = None

    @property
    def error(self) -> Optional[TreeError]:
        return TreeError(self.error_kind) if self.error_kind else None


@dataclass(frozen=True)
class ItemCount:
    """File/folder tally for a folder's contents."""
    total: int
    files: int
    folders: int

    @classmethod
    def of(cls, nodes: List[AssetNode]) -> 'ItemCount':
        folders = sum(1 for node in nodes if node.is_folder)
        return cls(total=len(nodes), files=len(nodes) - folders, folders=folders)


# ============= Query Primitives =============

def root_nodes(nodes: NodeCollection) -> List[AssetNode]:
    """Nodes without a parent, in collection order."""
    return AssetIndex.of(nodes).children_of(None)


def children(nodes: NodeCollection, parent_id: Optional[str]) -> List[AssetNode]:
    """Direct children of a node.

    Args:
        nodes: Asset collection
        parent_id: Id of the parent node

    Returns:
        Children in collection order; empty for unknown ids.
    """
    return AssetIndex.of(nodes).children_of(parent_id)


def has_children(nodes: NodeCollection, node_id: str) -> bool:
    return AssetIndex.of(nodes).has_children(node_id)


# ============= Descendant Collector =============

def descendants(
    nodes: NodeCollection,
    node_id: str,
    through_files: bool = False
) -> List[AssetNode]:
    """Get all descendants of a node (all nodes in its subtree, not itself).

    Only folders are descended into unless `through_files` is set; the
    latter also reaches children hanging off legacy file nodes, which is
    what integrity checks and cascade deletion need.

    Args:
        nodes: Asset collection
        node_id: Id of the subtree root
        through_files: Recurse into children of file nodes too

    Returns:
        Flat list of descendants, parents before their children.
    """
    index = AssetIndex.of(nodes)
    result: List[AssetNode] = []
    _collect_descendants(index, node_id, through_files, result, {node_id})
    return result


def _collect_descendants(
    index: AssetIndex,
    node_id: str,
    through_files: bool,
    result: List[AssetNode],
    visited: Set[str]
) -> None:
    """Collect descendants in pre-order (only children, not self)."""
    # Explicit stack: stored chains may be deeper than the recursion limit
    stack = list(reversed(index.children_of(node_id)))
    while stack:
        child = stack.pop()
        if child.id in visited:
            continue
        visited.add(child.id)
        result.append(child)
        if through_files or child.is_folder:
            stack.extend(reversed(index.children_of(child.id)))


def descendant_ids(nodes: NodeCollection, node_id: str) -> Set[str]:
    """Ids of the whole subtree below `node_id`, regardless of node kind."""
    return {node.id for node in descendants(nodes, node_id, through_files=True)}


def any_descendant_matches(
    nodes: NodeCollection,
    node_id: str,
    predicate: Callable[[AssetNode], bool]
) -> bool:
    """Check whether any node below `node_id` satisfies `predicate`.

    Used e.g. to keep a folder visible when a search hit is nested inside it.
    """
    return any(predicate(node) for node in descendants(nodes, node_id))


# ============= Path Resolver =============

def ancestor_chain(nodes: NodeCollection, node_id: str) -> List[AssetNode]:
    """Get the ancestry path from root to the node's immediate parent.

    Args:
        nodes: Asset collection
        node_id: Id of the node

    Returns:
        Ancestor nodes, root first, parent last. Empty for roots and
        unknown ids.
    """
    index = AssetIndex.of(nodes)
    chain: List[AssetNode] = []
    seen = {node_id}

    current = index.get(node_id)
    while current is not None and current.parent is not None:
        parent = index.get(current.parent)
        if parent is None or parent.id in seen:
            break
        chain.append(parent)
        seen.add(parent.id)
        current = parent

    chain.reverse()  # root first
    return chain


def path(nodes: NodeCollection, node_id: str) -> List[str]:
    """Breadcrumb names from the root down to and including the node.

    Example: ['Final Designs', 'Mobile Screens', 'Login Flow']
    """
    index = AssetIndex.of(nodes)
    node = index.get(node_id)
    if node is None:
        return []
    return [ancestor.name for ancestor in ancestor_chain(index, node_id)] + [node.name]


def path_with_ids(nodes: NodeCollection, node_id: str) -> List[Tuple[str, str]]:
    """Like `path`, but as (id, name) pairs for navigation links."""
    index = AssetIndex.of(nodes)
    node = index.get(node_id)
    if node is None:
        return []
    chain = ancestor_chain(index, node_id) + [node]
    return [(item.id, item.name) for item in chain]


def parent_of(nodes: NodeCollection, node_id: str) -> Optional[AssetNode]:
    """The node's parent, or None for roots and unknown ids."""
    index = AssetIndex.of(nodes)
    node = index.get(node_id)
    if node is None:
        return None
    return index.get(node.parent)


def is_descendant_of(nodes: NodeCollection, node_id: str, ancestor_id: str) -> bool:
    """Check if `ancestor_id` appears anywhere above `node_id`."""
    return any(ancestor.id == ancestor_id for ancestor in ancestor_chain(nodes, node_id))


# ============= Depth Validator =============

def depth_of(nodes: NodeCollection, node_id: str) -> int:
    """Nesting depth of a node: 0 for a root (or unknown id), else 1 + parent's depth."""
    index = AssetIndex.of(nodes)
    depth = 0
    seen = {node_id}

    current = index.get(node_id)
    while current is not None and current.parent is not None:
        if current.parent in seen:
            break
        seen.add(current.parent)
        depth += 1
        current = index.get(current.parent)
    return depth


def subtree_height(nodes: NodeCollection, node_id: str) -> int:
    """Depth of the deepest descendant relative to `node_id` (0 for a leaf)."""
    index = AssetIndex.of(nodes)
    deepest = 0
    visited = {node_id}
    stack: List[Tuple[str, int]] = [(node_id, 0)]
    while stack:
        current, relative_depth = stack.pop()
        deepest = max(deepest, relative_depth)
        for child in index.children_of(current):
            if child.id not in visited:
                visited.add(child.id)
                stack.append((child.id, relative_depth + 1))
    return deepest


def can_nest_under(
    nodes: NodeCollection,
    parent_id: Optional[str],
    max_depth: int = MAX_NESTING_DEPTH
) -> NestingCheck:
    """Validate that adding a child under `parent_id` won't exceed max depth.

    Root placement (parent_id None or "") is always valid.
    """
    if not parent_id:
        return NestingCheck(valid=True, current_depth=0, max_allowed=max_depth)

    parent_depth = depth_of(nodes, parent_id)
    # -1 because the child adds one more level below the parent
    valid = parent_depth < max_depth - 1
    return NestingCheck(valid=valid, current_depth=parent_depth + 1, max_allowed=max_depth)


# ============= Cycle Guard =============

def can_reparent(
    nodes: NodeCollection,
    node_id: str,
    new_parent_id: Optional[str]
) -> ReparentCheck:
    """Validate that setting a parent won't create a circular reference.

    Args:
        nodes: Asset collection
        node_id: Node being re-parented
        new_parent_id: Proposed parent, or None for root

    Returns:
        ReparentCheck with SELF_PARENT or CIRCULAR_REFERENCE on failure
    """
    if not new_parent_id:
        return ReparentCheck(valid=True)

    if new_parent_id == node_id:
        return ReparentCheck(valid=False, error_kind=TreeErrorKind.SELF_PARENT)

    if new_parent_id in descendant_ids(nodes, node_id):
        return ReparentCheck(valid=False, error_kind=TreeErrorKind.CIRCULAR_REFERENCE)

    return ReparentCheck(valid=True)


# ============= Counts and Statistics =============

def folder_item_count(nodes: NodeCollection, folder_id: str) -> ItemCount:
    """Count direct children of a folder by kind."""
    return ItemCount.of(children(nodes, folder_id))


def total_item_count(nodes: NodeCollection, folder_id: str) -> ItemCount:
    """Count every nested item of a folder by kind."""
    return ItemCount.of(descendants(nodes, folder_id))


def tree_stats(nodes: NodeCollection) -> Dict[str, Any]:
    """Get forest statistics.

    Returns:
        Dict with total/root/folder/file counts and the deepest node depth
    """
    index = AssetIndex.of(nodes)
    roots = index.children_of(None)
    folders = sum(1 for node in index if node.kind == AssetKind.FOLDER)

    return {
        'total_nodes': len(index),
        'root_nodes': len(roots),
        'folders': folders,
        'files': len(index) - folders,
        'max_depth': max((subtree_height(index, root.id) for root in roots), default=0),
    }
