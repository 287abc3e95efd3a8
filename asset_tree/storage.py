"""ProjectStore - SQLite storage for project asset documents.

Each project row keeps its asset array serialized as JSON, in the
boundary record shape produced by `AssetNode.to_dict`. Documents are
normalized on load so legacy rows written before nested folders existed
come back with explicit parents.

Writers are serialized per store; two sessions saving the same project
is last-writer-wins. The per-project revision only identifies a version
for cache keys, it is not a conflict check.
"""

import json
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .asset import AssetNode
from .normalizer import normalize

logger = logging.getLogger(__name__)


@dataclass
class ProjectDocument:
    """A project's asset tree as persisted.

    Attributes:
        id: Project identifier.
        name: Project display name.
        assets: Normalized asset nodes.
        revision: Incremented on every save.
    """
    id: str
    name: str
    assets: List[AssetNode] = field(default_factory=list)
    revision: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "revision": self.revision,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "assets": [asset.to_dict() for asset in self.assets],
        }


class ProjectStore:
    """Persistent storage for project documents using SQLite.

    Provides thread-safe read/write operations with:
    - SQLite WAL mode for concurrent reads during writes
    - Thread-local connections
    - A small in-memory cache of recently used documents
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        storage_dir: str = "storage",
        max_cache_size: int = 128,
        enable_wal: bool = True
    ):
        """Initialize persistent storage.

        Args:
            storage_dir: Base directory for storage (will be created)
            max_cache_size: Maximum number of documents to cache in memory
            enable_wal: Enable SQLite WAL mode for concurrent reads
        """
        self._storage_dir = Path(storage_dir)
        self._db_path = self._storage_dir / "projects.db"
        self._storage_dir.mkdir(parents=True, exist_ok=True)

        self._cache: Dict[str, Tuple[ProjectDocument, float]] = {}
        self._lock = threading.RLock()
        self._max_cache_size = max_cache_size

        self._local = threading.local()

        self._init_db(enable_wal)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local SQLite connection."""
        if not hasattr(self._local, 'conn') or self._local.conn is None:
            conn = sqlite3.connect(
                str(self._db_path),
                check_same_thread=False,
                timeout=30.0
            )
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
        return self._local.conn

    def _init_db(self, enable_wal: bool) -> None:
        """Initialize SQLite database with schema."""
        conn = self._get_connection()
        cursor = conn.cursor()

        if enable_wal:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS projects (
                project_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                created_at TEXT,
                updated_at TEXT,
                revision INTEGER DEFAULT 0,
                asset_count INTEGER DEFAULT 0,
                assets_json TEXT
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_updated ON projects(updated_at)
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)

        cursor.execute("""
            INSERT OR REPLACE INTO metadata (key, value)
            VALUES (?, ?)
        """, ("schema_version", str(self.SCHEMA_VERSION)))

        conn.commit()

    def _row_to_document(self, row: sqlite3.Row) -> ProjectDocument:
        records = json.loads(row['assets_json'] or '[]')
        return ProjectDocument(
            id=row['project_id'],
            name=row['name'],
            assets=normalize(records),
            revision=row['revision'],
            created_at=row['created_at'],
            updated_at=row['updated_at']
        )

    def _remember(self, document: ProjectDocument) -> None:
        """Cache a document, evicting the oldest entries when full (must hold lock)."""
        self._cache[document.id] = (document, time.time())
        if len(self._cache) > self._max_cache_size:
            evict_count = max(1, self._max_cache_size // 10)
            sorted_items = sorted(self._cache.items(), key=lambda x: x[1][1])
            for key, _ in sorted_items[:evict_count]:
                del self._cache[key]

    def save_project(
        self,
        project_id: str,
        name: str,
        assets: Sequence[AssetNode]
    ) -> ProjectDocument:
        """Write a project's asset array, replacing any previous version.

        Args:
            project_id: Project identifier
            name: Project display name
            assets: Normalized asset nodes

        Returns:
            The stored document with its new revision.
        """
        assets_json = json.dumps([asset.to_dict() for asset in assets])
        now = datetime.now(timezone.utc).isoformat()

        with self._lock:
            conn = self._get_connection()
            with conn:
                conn.execute("""
                    INSERT INTO projects (
                        project_id, name, created_at, updated_at,
                        revision, asset_count, assets_json
                    ) VALUES (?, ?, ?, ?, 1, ?, ?)
                    ON CONFLICT(project_id) DO UPDATE SET
                        name = excluded.name,
                        updated_at = excluded.updated_at,
                        revision = projects.revision + 1,
                        asset_count = excluded.asset_count,
                        assets_json = excluded.assets_json
                """, (project_id, name, now, now, len(assets), assets_json))

            row = conn.execute(
                "SELECT project_id, name, created_at, updated_at, revision FROM projects "
                "WHERE project_id = ?",
                (project_id,)
            ).fetchone()

            document = ProjectDocument(
                id=project_id,
                name=name,
                assets=list(assets),
                revision=row['revision'],
                created_at=row['created_at'],
                updated_at=row['updated_at']
            )
            self._remember(document)

        logger.debug(f"[Store] Saved project {project_id} r{document.revision} ({len(assets)} assets)")
        return document

    def load_project(self, project_id: str) -> Optional[ProjectDocument]:
        """Load a project document.

        Args:
            project_id: Project identifier

        Returns:
            The document, or None if not found.

        Raises:
            MalformedAssetError: If the stored asset array is corrupt.
        """
        with self._lock:
            if project_id in self._cache:
                document, _ = self._cache[project_id]
                return document

        row = self._get_connection().execute(
            "SELECT * FROM projects WHERE project_id = ?",
            (project_id,)
        ).fetchone()

        if row is None:
            return None

        document = self._row_to_document(row)
        with self._lock:
            self._remember(document)
        return document

    def list_projects(self, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        """List stored projects without decoding their assets.

        Args:
            limit: Maximum number of results
            offset: Offset for pagination

        Returns:
            List of project summary dicts, most recently updated first.
        """
        cursor = self._get_connection().execute(
            "SELECT project_id, name, created_at, updated_at, revision, asset_count "
            "FROM projects ORDER BY updated_at DESC LIMIT ? OFFSET ?",
            (limit, offset)
        )
        return [
            {
                'id': row['project_id'],
                'name': row['name'],
                'created_at': row['created_at'],
                'updated_at': row['updated_at'],
                'revision': row['revision'],
                'asset_count': row['asset_count']
            }
            for row in cursor.fetchall()
        ]

    def delete_project(self, project_id: str) -> bool:
        """Delete a project.

        Returns:
            True if deleted, False if not found.
        """
        with self._lock:
            conn = self._get_connection()
            with conn:
                cursor = conn.execute(
                    "DELETE FROM projects WHERE project_id = ?",
                    (project_id,)
                )
            self._cache.pop(project_id, None)
            return cursor.rowcount > 0

    def exists(self, project_id: str) -> bool:
        row = self._get_connection().execute(
            "SELECT 1 FROM projects WHERE project_id = ?",
            (project_id,)
        ).fetchone()
        return row is not None

    def get_stats(self) -> Dict[str, Any]:
        """Get storage statistics."""
        conn = self._get_connection()
        total_projects = conn.execute("SELECT COUNT(*) FROM projects").fetchone()[0]
        total_assets = conn.execute(
            "SELECT COALESCE(SUM(asset_count), 0) FROM projects"
        ).fetchone()[0]

        return {
            'total_projects': total_projects,
            'total_assets': total_assets,
            'cached_count': len(self._cache),
            'cache_max_size': self._max_cache_size,
            'storage_dir': str(self._storage_dir),
            'db_path': str(self._db_path)
        }

    def clear(self) -> None:
        """Clear all stored projects.

        WARNING: This deletes all data!
        """
        with self._lock:
            conn = self._get_connection()
            with conn:
                conn.execute("DELETE FROM projects")
            self._cache.clear()

    def vacuum(self) -> None:
        """Vacuum the database to reclaim space."""
        self._get_connection().execute("VACUUM")

    def close(self) -> None:
        """Close this thread's connection."""
        if hasattr(self._local, 'conn') and self._local.conn:
            self._local.conn.close()
            self._local.conn = None

    def __enter__(self) -> 'ProjectStore':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"ProjectStore("
            f"projects={stats['total_projects']}, "
            f"assets={stats['total_assets']}, "
            f"cached={stats['cached_count']}"
            f")"
        )
