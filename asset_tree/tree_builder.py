"""TreeBuilder - Nested views over the flat asset collection.

Builds the parent-with-children structure consumed by rendering code,
flattens it back into display order and lists the folders a node may be
moved into. No filtering or sorting happens here beyond what each
function documents; callers order the input as they like.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .asset import MAX_NESTING_DEPTH, AssetIndex, AssetNode, NodeCollection
from .hierarchy import depth_of, descendant_ids, path


PATH_SEPARATOR = " > "


@dataclass
class TreeNode:
    """One node of the nested view, annotated with its depth."""
    node: AssetNode
    children: List['TreeNode'] = field(default_factory=list)
    depth: int = 0

    def _shallow_dict(self) -> Dict[str, Any]:
        return {"node": self.node.to_dict(), "depth": self.depth, "children": []}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize this node and its whole subtree."""
        data = self._shallow_dict()
        stack = [(self, data)]
        while stack:
            item, item_data = stack.pop()
            for child in item.children:
                child_data = child._shallow_dict()
                item_data["children"].append(child_data)
                stack.append((child, child_data))
        return data


@dataclass(frozen=True)
class FlatEntry:
    node: AssetNode
    depth: int


@dataclass(frozen=True)
class ParentOption:
    """A folder offered in a parent selector.

    Attributes:
        id: Folder id.
        name: Folder name.
        path: Breadcrumb joined with " > ".
        depth: Folder depth.
        disabled: True when the folder is already at the deepest level.
    """
    id: str
    name: str
    path: str
    depth: int
    disabled: bool = False


def build_tree(
    nodes: NodeCollection,
    parent_id: Optional[str] = None,
    depth: int = 0
) -> List[TreeNode]:
    """Build the nested structure below `parent_id` (None for the whole forest).

    Only folders are descended into.

    Args:
        nodes: Asset collection
        parent_id: Where to start, None for all roots
        depth: Depth assigned to the first level

    Returns:
        One TreeNode per child of `parent_id`, in collection order
    """
    index = AssetIndex.of(nodes)
    visited = set() if parent_id is None else {parent_id}
    roots: List[TreeNode] = []

    # (node, depth, list to append it to); reversed pushes keep collection order
    stack = [(child, depth, roots) for child in reversed(index.children_of(parent_id))]
    while stack:
        child, level, siblings = stack.pop()
        if child.id in visited:
            continue
        visited.add(child.id)
        item = TreeNode(node=child, depth=level)
        siblings.append(item)
        if child.is_folder:
            stack.extend(
                (grandchild, level + 1, item.children)
                for grandchild in reversed(index.children_of(child.id))
            )
    return roots


def flatten(tree: List[TreeNode]) -> List[FlatEntry]:
    """Flatten a built tree into display order: parent, then its children."""
    result: List[FlatEntry] = []
    stack = list(reversed(tree))
    while stack:
        item = stack.pop()
        result.append(FlatEntry(node=item.node, depth=item.depth))
        stack.extend(reversed(item.children))
    return result


def available_parents(
    nodes: NodeCollection,
    exclude_id: Optional[str] = None,
    max_depth: int = MAX_NESTING_DEPTH
) -> List[ParentOption]:
    """List folders that can act as parent for a parent selector.

    The excluded node and everything below it are left out so the
    selection can never create a cycle. Folders at the deepest allowed
    level are included but disabled.

    Args:
        nodes: Asset collection
        exclude_id: Node being edited, if any
        max_depth: Configured maximum nesting depth

    Returns:
        Options sorted segment by segment (case-insensitive), so every
        folder comes right after its parent and before its parent's
        later siblings
    """
    index = AssetIndex.of(nodes)
    folders = [node for node in index if node.is_folder]

    if exclude_id is not None:
        excluded = descendant_ids(index, exclude_id)
        excluded.add(exclude_id)
        folders = [folder for folder in folders if folder.id not in excluded]

    keyed = []
    for folder in folders:
        depth = depth_of(index, folder.id)
        crumbs = path(index, folder.id)
        option = ParentOption(
            id=folder.id,
            name=folder.name,
            path=PATH_SEPARATOR.join(crumbs),
            depth=depth,
            disabled=depth >= max_depth - 1,
        )
        keyed.append((tuple(crumb.casefold() for crumb in crumbs), option))

    keyed.sort(key=lambda pair: pair[0])
    return [option for _, option in keyed]
