"""Asset Tree REST API Server - FastAPI-based HTTP API over project asset trees."""

import argparse
import logging
import uuid
from typing import Any, Dict, List, Literal, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from asset_tree.asset import AssetIndex, AssetKind, AssetNode
from asset_tree.config import ConfigLoader, ConfigManager, ResolvedConfig
from asset_tree.errors import MalformedAssetError, TreeError, TreeErrorKind
from asset_tree.hierarchy import (
    ancestor_chain, children, depth_of, descendants, folder_item_count,
    has_children, path, root_nodes, total_item_count, tree_stats
)
from asset_tree.index_cache import IndexCache
from asset_tree.mutations import MutationResult, cascade_delete, insert, move, rename
from asset_tree.normalizer import normalize
from asset_tree.storage import ProjectDocument, ProjectStore
from asset_tree.tree_builder import available_parents, build_tree

logger = logging.getLogger(__name__)


# ============= Pydantic Models =============

class AssetNodeModel(BaseModel):
    """Boundary record of one asset node."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    kind: Literal["file", "folder"]
    parent: Optional[str] = None
    external_link: str = Field(default="", alias="externalLink")
    previews: List[Any] = []
    created_at: str = Field(default="", alias="createdAt")
    asset_ref: Optional[str] = Field(default=None, alias="assetRef")


class ProjectCreateRequest(BaseModel):
    """Request model for creating (or replacing) a project document."""
    id: str = Field(..., min_length=1, description="Project identifier")
    name: str = Field(..., min_length=1, description="Project display name")
    assets: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Asset records; legacy records without a parent are accepted"
    )


class ProjectResponse(BaseModel):
    """Response model for project summaries."""
    id: str
    name: str
    revision: int
    asset_count: int


class ProjectDetailResponse(ProjectResponse):
    assets: List[AssetNodeModel] = []


class AssetCreateRequest(BaseModel):
    """Request model for inserting an asset."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, description="Asset id; generated when omitted")
    name: str = Field(..., description="Display name")
    kind: str = Field("file", pattern="^(file|folder)$", description="'file' or 'folder'")
    parent: Optional[str] = Field(None, description="Parent folder id, null for root")
    external_link: str = Field(default="", alias="externalLink")
    previews: List[Any] = []
    asset_ref: Optional[str] = Field(default=None, alias="assetRef")


class ParentRequest(BaseModel):
    """Request model for moving an asset."""
    parent: Optional[str] = Field(None, description="New parent folder id, null for root")


class RenameRequest(BaseModel):
    name: str = Field(..., description="New display name")


class AssetDetailResponse(BaseModel):
    """Response model for one asset with its position in the tree."""
    asset: AssetNodeModel
    depth: int
    path: List[str]
    has_children: bool


class MutationResponse(BaseModel):
    """Response model for successful mutations."""
    message: str
    revision: int
    asset: Optional[AssetNodeModel] = None
    removed_count: int = 0


class TreeNodeModel(BaseModel):
    node: AssetNodeModel
    depth: int
    children: List['TreeNodeModel'] = []


class ParentOptionModel(BaseModel):
    id: str
    name: str
    path: str
    depth: int
    disabled: bool


class ItemCountModel(BaseModel):
    total: int
    files: int
    folders: int


class ItemCountResponse(BaseModel):
    """Direct and recursive contents of a folder."""
    direct: ItemCountModel
    nested: ItemCountModel


class TreeStatsResponse(BaseModel):
    """Response model for tree statistics."""
    total_nodes: int
    root_nodes: int
    folders: int
    files: int
    max_depth: int


class StatusResponse(BaseModel):
    """Response model for system status."""
    projects_count: int
    cached_indexes: int
    cache_max_size: int
    max_depth: int
    persistent: bool
    cache_policy: str = "LRU"


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    service: str = "asset-tree-api"


class MessageResponse(BaseModel):
    """Generic message response."""
    message: str


TreeNodeModel.model_rebuild()


# ============= Global State =============

_projects: Dict[str, ProjectDocument] = {}
_index_cache: IndexCache = IndexCache()
_settings: ResolvedConfig = ResolvedConfig()
_store: Optional[ProjectStore] = None

# Config state
_config_loader: Optional[ConfigLoader] = None
_config_manager: Optional[ConfigManager] = None
_config_path: Optional[str] = None
_config_environment: Optional[str] = None
_dev_mode: bool = True


# ============= Helpers =============

_ERROR_STATUS = {
    TreeErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    TreeErrorKind.PARENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    TreeErrorKind.DUPLICATE_ID: status.HTTP_409_CONFLICT,
}


def _raise_for(error: TreeError) -> None:
    """Turn a rejected tree operation into an HTTP error."""
    raise HTTPException(
        status_code=_ERROR_STATUS.get(error.kind, status.HTTP_400_BAD_REQUEST),
        detail={"error": error.kind.value, "message": error.message}
    )


def asset_to_model(node: AssetNode) -> AssetNodeModel:
    return AssetNodeModel(**node.to_dict())


def project_to_response(document: ProjectDocument) -> ProjectResponse:
    return ProjectResponse(
        id=document.id,
        name=document.name,
        revision=document.revision,
        asset_count=len(document.assets)
    )


def _get_project(project_id: str) -> ProjectDocument:
    if project_id not in _projects:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No project found with id {project_id}"
        )
    return _projects[project_id]


def _get_index(document: ProjectDocument) -> AssetIndex:
    return _index_cache.get_index(document.id, document.revision, document.assets)


def _get_asset(index: AssetIndex, asset_id: str) -> AssetNode:
    node = index.get(asset_id)
    if node is None:
        _raise_for(TreeError(TreeErrorKind.NOT_FOUND, f"No asset found with id {asset_id}"))
    return node


def _commit(document: ProjectDocument, assets: List[AssetNode]) -> ProjectDocument:
    """Store a new version of a project and make it current."""
    if _store is not None:
        updated = _store.save_project(document.id, document.name, assets)
    else:
        updated = ProjectDocument(
            id=document.id,
            name=document.name,
            assets=list(assets),
            revision=document.revision + 1,
            created_at=document.created_at
        )
    _projects[document.id] = updated
    _index_cache.invalidate(document.id)
    return updated


def _apply_result(document: ProjectDocument, result: MutationResult) -> ProjectDocument:
    if not result.success:
        _raise_for(result.error)
    return _commit(document, list(result.nodes))


def _reset_state() -> None:
    _projects.clear()
    _index_cache.clear()


# ============= Lifespan Handler =============

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    yield
    _reset_state()
    if _store is not None:
        _store.close()


# ============= FastAPI App =============

app = FastAPI(
    title="Asset Tree API",
    description="REST API for nested project asset folders - insert, move, cascade delete and tree views",
    version="1.0.0",
    lifespan=lifespan
)


# ============= Project Endpoints =============

@app.post("/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED, tags=["Projects"])
async def create_project(request: ProjectCreateRequest) -> ProjectResponse:
    """Create a project document.

    Asset records are normalized on ingestion, so legacy records without
    a parent land at the root.
    """
    if request.id in _projects:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Project already exists with id {request.id}"
        )

    try:
        assets = normalize(request.assets, max_depth=_settings.max_depth)
    except MalformedAssetError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid asset data: {e}"
        )

    document = _commit(ProjectDocument(id=request.id, name=request.name), assets)
    logger.info(f"[API] Created project {document.id} with {len(assets)} assets")
    return project_to_response(document)


@app.get("/projects", response_model=List[ProjectResponse], tags=["Projects"])
async def list_projects() -> List[ProjectResponse]:
    """List all projects."""
    return [project_to_response(doc) for _, doc in sorted(_projects.items())]


@app.get("/projects/{project_id}", response_model=ProjectDetailResponse, tags=["Projects"])
async def get_project(project_id: str) -> ProjectDetailResponse:
    """Get a project with its normalized asset array."""
    document = _get_project(project_id)
    return ProjectDetailResponse(
        **project_to_response(document).model_dump(),
        assets=[asset_to_model(asset) for asset in document.assets]
    )


@app.delete("/projects/{project_id}", response_model=MessageResponse, tags=["Projects"])
async def delete_project(project_id: str) -> MessageResponse:
    """Delete a project and all of its assets."""
    _get_project(project_id)
    del _projects[project_id]
    _index_cache.invalidate(project_id)
    if _store is not None:
        _store.delete_project(project_id)
    return MessageResponse(message=f"Project {project_id} deleted")


# ============= Asset Endpoints =============

@app.get("/projects/{project_id}/assets", response_model=List[AssetNodeModel], tags=["Assets"])
async def list_assets(project_id: str) -> List[AssetNodeModel]:
    """List every asset of a project in stored order."""
    return [asset_to_model(asset) for asset in _get_project(project_id).assets]


@app.post("/projects/{project_id}/assets", response_model=MutationResponse,
          status_code=status.HTTP_201_CREATED, tags=["Assets"])
async def create_asset(project_id: str, request: AssetCreateRequest) -> MutationResponse:
    """Insert an asset at the root or inside a folder."""
    document = _get_project(project_id)
    node = AssetNode(
        id=request.id or uuid.uuid4().hex,
        name=request.name.strip(),
        kind=AssetKind(request.kind),
        external_link=request.external_link,
        previews=tuple(request.previews),
        asset_ref=request.asset_ref
    )

    result = insert(
        _get_index(document), node, request.parent,
        max_depth=_settings.max_depth,
        enforce_folder_parents=_settings.enforce_folder_parents
    )
    updated = _apply_result(document, result)
    return MutationResponse(
        message=f"Added {result.node.kind.value} '{result.node.name}'",
        revision=updated.revision,
        asset=asset_to_model(result.node)
    )


@app.get("/projects/{project_id}/assets/{asset_id}", response_model=AssetDetailResponse, tags=["Assets"])
async def get_asset(project_id: str, asset_id: str) -> AssetDetailResponse:
    """Get one asset with its depth and breadcrumb."""
    index = _get_index(_get_project(project_id))
    node = _get_asset(index, asset_id)
    return AssetDetailResponse(
        asset=asset_to_model(node),
        depth=depth_of(index, asset_id),
        path=path(index, asset_id),
        has_children=has_children(index, asset_id)
    )


@app.delete("/projects/{project_id}/assets/{asset_id}", response_model=MutationResponse, tags=["Assets"])
async def delete_asset(project_id: str, asset_id: str) -> MutationResponse:
    """Delete an asset together with everything nested inside it."""
    document = _get_project(project_id)
    result = cascade_delete(_get_index(document), asset_id)
    updated = _apply_result(document, result)
    return MutationResponse(
        message=f"Deleted {result.removed_count} item(s)",
        revision=updated.revision,
        asset=asset_to_model(result.node),
        removed_count=result.removed_count
    )


@app.put("/projects/{project_id}/assets/{asset_id}/parent", response_model=MutationResponse, tags=["Assets"])
async def move_asset(project_id: str, asset_id: str, request: ParentRequest) -> MutationResponse:
    """Move an asset (and its subtree) under another folder, or to the root."""
    document = _get_project(project_id)
    result = move(
        _get_index(document), asset_id, request.parent,
        max_depth=_settings.max_depth,
        enforce_folder_parents=_settings.enforce_folder_parents
    )
    updated = _apply_result(document, result)
    target = f"folder {request.parent}" if request.parent else "root"
    return MutationResponse(
        message=f"Moved '{result.node.name}' to {target}",
        revision=updated.revision,
        asset=asset_to_model(result.node)
    )


@app.put("/projects/{project_id}/assets/{asset_id}/name", response_model=MutationResponse, tags=["Assets"])
async def rename_asset(project_id: str, asset_id: str, request: RenameRequest) -> MutationResponse:
    """Rename an asset."""
    document = _get_project(project_id)
    result = rename(_get_index(document), asset_id, request.name)
    updated = _apply_result(document, result)
    return MutationResponse(
        message=f"Renamed to '{result.node.name}'",
        revision=updated.revision,
        asset=asset_to_model(result.node)
    )


# ============= Hierarchy Endpoints =============

@app.get("/projects/{project_id}/assets/{asset_id}/children",
         response_model=List[AssetNodeModel], tags=["Hierarchy"])
async def get_children(project_id: str, asset_id: str) -> List[AssetNodeModel]:
    """Get direct children of an asset."""
    index = _get_index(_get_project(project_id))
    _get_asset(index, asset_id)
    return [asset_to_model(node) for node in children(index, asset_id)]


@app.get("/projects/{project_id}/assets/{asset_id}/descendants",
         response_model=List[AssetNodeModel], tags=["Hierarchy"])
async def get_descendants(project_id: str, asset_id: str) -> List[AssetNodeModel]:
    """Get everything nested below an asset."""
    index = _get_index(_get_project(project_id))
    _get_asset(index, asset_id)
    return [asset_to_model(node) for node in descendants(index, asset_id)]


@app.get("/projects/{project_id}/assets/{asset_id}/ancestors",
         response_model=List[AssetNodeModel], tags=["Hierarchy"])
async def get_ancestors(project_id: str, asset_id: str) -> List[AssetNodeModel]:
    """Get the parent folders from the root down to the asset's parent."""
    index = _get_index(_get_project(project_id))
    _get_asset(index, asset_id)
    return [asset_to_model(node) for node in ancestor_chain(index, asset_id)]


@app.get("/projects/{project_id}/assets/{asset_id}/path", response_model=List[str], tags=["Hierarchy"])
async def get_path(project_id: str, asset_id: str) -> List[str]:
    """Get breadcrumb names from the root to the asset."""
    index = _get_index(_get_project(project_id))
    _get_asset(index, asset_id)
    return path(index, asset_id)


@app.get("/projects/{project_id}/assets/{asset_id}/counts",
         response_model=ItemCountResponse, tags=["Hierarchy"])
async def get_counts(project_id: str, asset_id: str) -> ItemCountResponse:
    """Count files and folders inside a folder."""
    index = _get_index(_get_project(project_id))
    _get_asset(index, asset_id)
    direct = folder_item_count(index, asset_id)
    nested = total_item_count(index, asset_id)
    return ItemCountResponse(
        direct=ItemCountModel(total=direct.total, files=direct.files, folders=direct.folders),
        nested=ItemCountModel(total=nested.total, files=nested.files, folders=nested.folders)
    )


@app.get("/projects/{project_id}/roots", response_model=List[AssetNodeModel], tags=["Hierarchy"])
async def get_roots(project_id: str) -> List[AssetNodeModel]:
    """Get root-level assets."""
    index = _get_index(_get_project(project_id))
    return [asset_to_model(node) for node in root_nodes(index)]


@app.get("/projects/{project_id}/tree", response_model=List[TreeNodeModel], tags=["Hierarchy"])
async def get_tree(project_id: str) -> List[TreeNodeModel]:
    """Get the nested folder/file tree."""
    index = _get_index(_get_project(project_id))
    return [TreeNodeModel(**item.to_dict()) for item in build_tree(index)]


@app.get("/projects/{project_id}/available-parents",
         response_model=List[ParentOptionModel], tags=["Hierarchy"])
async def get_available_parents(project_id: str, exclude: Optional[str] = None) -> List[ParentOptionModel]:
    """List folders an asset can be placed in.

    Pass `exclude` with the id of the asset being edited to leave out the
    asset and its own subfolders.
    """
    index = _get_index(_get_project(project_id))
    return [
        ParentOptionModel(
            id=option.id,
            name=option.name,
            path=option.path,
            depth=option.depth,
            disabled=option.disabled
        )
        for option in available_parents(index, exclude, max_depth=_settings.max_depth)
    ]


@app.get("/projects/{project_id}/stats", response_model=TreeStatsResponse, tags=["Hierarchy"])
async def get_tree_stats(project_id: str) -> TreeStatsResponse:
    """Get tree statistics for a project."""
    return TreeStatsResponse(**tree_stats(_get_index(_get_project(project_id))))


# ============= System Endpoints =============

@app.get("/status", response_model=StatusResponse, tags=["System"])
async def get_status() -> StatusResponse:
    """Get system status."""
    return StatusResponse(
        projects_count=len(_projects),
        cached_indexes=_index_cache.size(),
        cache_max_size=_index_cache.get_max_size(),
        max_depth=_settings.max_depth,
        persistent=_store is not None
    )


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "asset-tree-api",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "status": "/status"
    }


# ============= Config Endpoints =============

class ConfigStatusResponse(BaseModel):
    """Response model for config status."""
    config_loaded: bool
    config_path: Optional[str] = None
    environment: Optional[str] = None
    dev_mode: bool = True
    storage_directory: Optional[str] = None
    max_depth: int
    enforce_folder_parents: bool
    projects_count: int = 0


class ReloadResponse(BaseModel):
    """Response model for config reload."""
    message: str
    reloaded: bool
    projects_loaded: int


@app.get("/config/status", response_model=ConfigStatusResponse, tags=["Config"])
async def get_config_status() -> ConfigStatusResponse:
    """Get current configuration status."""
    return ConfigStatusResponse(
        config_loaded=_config_loader is not None,
        config_path=_config_path,
        environment=_config_environment,
        dev_mode=_dev_mode,
        storage_directory=_settings.storage_directory if _store is not None else None,
        max_depth=_settings.max_depth,
        enforce_folder_parents=_settings.enforce_folder_parents,
        projects_count=len(_projects)
    )


def apply_config(resolved: ResolvedConfig, persist: bool = True) -> int:
    """Replace server state with a resolved configuration.

    Seed projects already present in the store keep their stored assets.

    Args:
        resolved: Resolved configuration
        persist: Open a ProjectStore in the configured directory

    Returns:
        Number of projects loaded
    """
    global _settings, _store, _index_cache

    _settings = resolved
    _reset_state()
    _index_cache = IndexCache(max_size=resolved.cache_size)

    if _store is not None:
        _store.close()
        _store = None
    if persist:
        _store = ProjectStore(resolved.storage_directory, max_cache_size=resolved.cache_size)

    for project in resolved.projects:
        stored = _store.load_project(project.id) if _store is not None else None
        if stored is not None:
            _projects[project.id] = stored
        else:
            _commit(ProjectDocument(id=project.id, name=project.name), project.assets)

    if _store is not None:
        for summary in _store.list_projects(limit=10000):
            if summary['id'] not in _projects:
                _projects[summary['id']] = _store.load_project(summary['id'])

    logger.info(f"[Config] Loaded {len(_projects)} projects (max depth {resolved.max_depth})")
    return len(_projects)


@app.post("/config/reload", response_model=ReloadResponse, tags=["Config"])
async def reload_config() -> ReloadResponse:
    """Reload configuration from file (dev mode only)."""
    if not _dev_mode:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Config reload is only available in dev mode"
        )

    if _config_path is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No configuration file loaded"
        )

    global _config_loader, _config_manager

    try:
        _config_loader = ConfigLoader(_config_path)
        _config_loader.load()
        _config_loader.validate()

        for warning in _config_loader.get_warnings():
            logger.warning(f"[Config] {warning}")

        _config_manager = ConfigManager(_config_loader)
        resolved = _config_manager.resolve(_config_environment)
        projects_loaded = apply_config(resolved)

        return ReloadResponse(
            message=f"Configuration reloaded from {_config_path}",
            reloaded=True,
            projects_loaded=projects_loaded
        )

    except (FileNotFoundError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to reload configuration: {str(e)}"
        )


def load_config_from_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Load configuration from command-line arguments."""
    global _config_loader, _config_manager, _config_path, _config_environment, _dev_mode

    parser = argparse.ArgumentParser(description="Asset Tree API Server")
    parser.add_argument("--config", "-c", type=str, help="Path to configuration YAML file")
    parser.add_argument("--env", "-e", type=str, default=None, help="Environment name")
    parser.add_argument("--production", action="store_true", help="Enable production mode (disables hot-reload)")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")

    args, _ = parser.parse_known_args(argv)

    if args.production:
        _dev_mode = False

    if args.config:
        _config_path = args.config
        _config_environment = args.env

        try:
            _config_loader = ConfigLoader(args.config)
            _config_loader.load()
            _config_loader.validate()

            for warning in _config_loader.get_warnings():
                logger.warning(f"[Config] {warning}")

            _config_manager = ConfigManager(_config_loader)
            apply_config(_config_manager.resolve(args.env))

        except (FileNotFoundError, ValueError) as e:
            logger.error(f"Failed to load configuration: {e}")

    return args


# ============= Main Entry Point =============

def main():
    """Main entry point for running the server."""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = load_config_from_args()
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
