"""Compatibility normalizer for stored asset records.

Asset arrays saved before nested folders existed carry no parent field,
and older clients used different field names. Everything entering the
engine passes through `normalize` first so downstream code sees exactly
one representation of "no parent".
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .asset import MAX_NESTING_DEPTH, AssetKind, AssetNode
from .errors import MalformedAssetError

logger = logging.getLogger(__name__)


AssetRecord = Union[AssetNode, Mapping[str, Any]]

# Canonical field -> accepted record keys, current name first
_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "name": ("name", "asset_name"),
    "kind": ("kind", "asset_type"),
    "parent": ("parent", "parent_id"),
    "external_link": ("externalLink", "external_link", "gdrive_link", "lightroom_url"),
    "created_at": ("createdAt", "created_at"),
    "asset_ref": ("assetRef", "asset_ref", "asset_id"),
}


def _lookup(record: Mapping[str, Any], canonical: str) -> Tuple[bool, Any]:
    """Return (present, value) for the first alias found in `record`."""
    for key in _FIELD_ALIASES[canonical]:
        if key in record:
            return True, record[key]
    return False, None


def _coerce_previews(record: Mapping[str, Any]) -> Tuple[Any, ...]:
    if "previews" in record and record["previews"] is not None:
        previews = record["previews"]
    elif record.get("preview_urls"):
        previews = record["preview_urls"]
    elif record.get("preview_url"):
        previews = [record["preview_url"]]
    else:
        previews = []

    if not isinstance(previews, (list, tuple)):
        raise MalformedAssetError(f"Asset {record.get('id')!r}: previews must be a list")
    return tuple(previews)


def _coerce_parent(value: Any, node_id: str) -> Optional[str]:
    # Missing field, explicit null and empty string all mean "root"
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise MalformedAssetError(f"Asset {node_id!r}: parent must be a string id or null")
    return value


def _coerce_record(record: AssetRecord, position: int) -> AssetNode:
    """Turn one stored record into an AssetNode."""
    if isinstance(record, AssetNode):
        return record
    if not isinstance(record, Mapping):
        raise MalformedAssetError(
            f"Asset at index {position} must be a mapping, got {type(record).__name__}"
        )

    node_id = record.get("id")
    if not isinstance(node_id, str) or not node_id:
        raise MalformedAssetError(f"Asset at index {position} missing required 'id' field")

    has_name, name = _lookup(record, "name")
    if not has_name or not isinstance(name, str):
        raise MalformedAssetError(f"Asset {node_id!r} missing required 'name' field")

    has_kind, kind = _lookup(record, "kind")
    if not has_kind or kind is None:
        kind = AssetKind.FILE.value
    try:
        kind = AssetKind(kind)
    except ValueError:
        raise MalformedAssetError(
            f"Asset {node_id!r} kind must be 'file' or 'folder', got {kind!r}"
        )

    _, parent = _lookup(record, "parent")
    _, external_link = _lookup(record, "external_link")
    _, created_at = _lookup(record, "created_at")
    _, asset_ref = _lookup(record, "asset_ref")

    return AssetNode(
        id=node_id,
        name=name,
        kind=kind,
        parent=_coerce_parent(parent, node_id),
        external_link=external_link or "",
        previews=_coerce_previews(record),
        created_at=created_at or "",
        asset_ref=asset_ref or None,
    )


def _check_acyclic(nodes: List[AssetNode]) -> Dict[str, int]:
    """Raise if following parent references ever returns to a node.

    Returns:
        The depth of every node (0 for roots), measured on the same walk.
    """
    parent_of = {node.id: node.parent for node in nodes}
    depths: Dict[str, int] = {}

    for node in nodes:
        trail: List[str] = []
        on_trail: Set[str] = set()
        current: Optional[str] = node.id
        while current is not None and current not in depths:
            if current in on_trail:
                cycle = trail[trail.index(current):] + [current]
                raise MalformedAssetError(
                    f"Parent cycle in stored assets: {' -> '.join(cycle)}"
                )
            trail.append(current)
            on_trail.add(current)
            current = parent_of.get(current)

        depth = -1 if current is None else depths[current]
        for node_id in reversed(trail):
            depth += 1
            depths[node_id] = depth
    return depths


def normalize(
    records: Iterable[AssetRecord],
    max_depth: int = MAX_NESTING_DEPTH
) -> List[AssetNode]:
    """Canonicalize a stored asset array.

    Pure and idempotent: `normalize(normalize(x)) == normalize(x)`.

    Args:
        records: Wire records (current or legacy field names) or AssetNodes.
        max_depth: Nesting limit to report stored branches against.

    Returns:
        Nodes in input order, each with an explicit parent
        (a valid id or None).

    Raises:
        MalformedAssetError: On records without an id or name, unknown
            kinds, duplicate ids, self-parenting or parent cycles.
    """
    nodes = [_coerce_record(record, i) for i, record in enumerate(records)]

    seen: Set[str] = set()
    for node in nodes:
        if node.id in seen:
            raise MalformedAssetError(f"Duplicate asset id: {node.id!r}")
        seen.add(node.id)
        if node.parent == node.id:
            raise MalformedAssetError(f"Asset {node.id!r} is its own parent")

    # Orphans would otherwise be unreachable from any root
    for i, node in enumerate(nodes):
        if node.parent is not None and node.parent not in seen:
            logger.warning(
                f"[Normalize] Asset {node.id!r} references missing parent "
                f"{node.parent!r} - moving to root"
            )
            nodes[i] = node.with_parent(None)

    depths = _check_acyclic(nodes)

    # One warning per over-deep branch, at its first level past the limit
    for node in nodes:
        if depths[node.id] == max_depth:
            logger.warning(
                f"[Normalize] Asset {node.id!r} exceeds max depth "
                f"({depths[node.id]} > {max_depth - 1}) - keeping as-is"
            )

    kinds = {node.id: node.kind for node in nodes}
    file_parents = sorted({
        node.parent for node in nodes
        if node.parent is not None and kinds[node.parent] == AssetKind.FILE
    })
    for file_id in file_parents:
        logger.warning(f"[Normalize] File asset {file_id!r} has children - keeping as-is")

    return nodes
