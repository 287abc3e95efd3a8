"""Asset Tree - Nested folder/file asset hierarchy engine for creative projects"""

from .asset import MAX_NESTING_DEPTH, AssetIndex, AssetKind, AssetNode
from .errors import MalformedAssetError, TreeError, TreeErrorKind
from .normalizer import normalize
from .hierarchy import (
    ItemCount,
    NestingCheck,
    ReparentCheck,
    ancestor_chain,
    any_descendant_matches,
    can_nest_under,
    can_reparent,
    children,
    depth_of,
    descendant_ids,
    descendants,
    folder_item_count,
    has_children,
    is_descendant_of,
    parent_of,
    path,
    path_with_ids,
    root_nodes,
    subtree_height,
    total_item_count,
    tree_stats,
)
from .mutations import MutationResult, cascade_delete, insert, move, rename
from .tree_builder import FlatEntry, ParentOption, TreeNode, available_parents, build_tree, flatten

__all__ = [
    "MAX_NESTING_DEPTH", "AssetIndex", "AssetKind", "AssetNode",
    "MalformedAssetError", "TreeError", "TreeErrorKind", "normalize",
    "ItemCount", "NestingCheck", "ReparentCheck",
    "ancestor_chain", "any_descendant_matches", "can_nest_under", "can_reparent",
    "children", "depth_of", "descendant_ids", "descendants", "folder_item_count", "has_children",
    "is_descendant_of", "parent_of", "path", "path_with_ids", "root_nodes", "subtree_height",
    "total_item_count", "tree_stats",
    "MutationResult", "cascade_delete", "insert", "move", "rename",
    "FlatEntry", "ParentOption", "TreeNode", "available_parents", "build_tree", "flatten",
]
