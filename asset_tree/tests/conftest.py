"""Pytest configuration and shared fixtures."""

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from asset_tree.asset import AssetKind, AssetNode
from asset_tree.index_cache import IndexCache


def make_folder(node_id, parent=None, name=None):
    return AssetNode(id=node_id, name=name or node_id, kind=AssetKind.FOLDER, parent=parent)


def make_file(node_id, parent=None, name=None):
    return AssetNode(id=node_id, name=name or node_id, kind=AssetKind.FILE, parent=parent)


def make_chain(length):
    """Folders n0 > n1 > ... nested `length` levels deep."""
    return [make_folder(f"n{i}", parent=f"n{i - 1}" if i else None) for i in range(length)]


@pytest.fixture
def abc_nodes():
    """Folder a > folder b > file c."""
    return [
        make_folder("a"),
        make_folder("b", parent="a"),
        make_file("c", parent="b"),
    ]


@pytest.fixture
def folder_chain():
    """Ten nested folders f0 > f1 > ... > f9."""
    nodes = [make_folder("f0")]
    for i in range(1, 10):
        nodes.append(make_folder(f"f{i}", parent=f"f{i - 1}"))
    return nodes


@pytest.fixture
def design_tree():
    """A small project tree with two roots.

    Designs/
      Mobile/
        Login.fig
        Signup.fig
      Desktop/
      brief.pdf
    notes.txt
    """
    return [
        make_folder("designs", name="Designs"),
        make_folder("mobile", parent="designs", name="Mobile"),
        make_file("login", parent="mobile", name="Login.fig"),
        make_file("signup", parent="mobile", name="Signup.fig"),
        make_folder("desktop", parent="designs", name="Desktop"),
        make_file("brief", parent="designs", name="brief.pdf"),
        make_file("notes", name="notes.txt"),
    ]


@pytest.fixture
def legacy_records():
    """Stored records from before nested folders existed."""
    return [
        {
            "id": "g1",
            "asset_name": "Hero Banner",
            "gdrive_link": "https://drive.google.com/file/d/1",
            "asset_type": "file",
            "preview_url": "https://cdn.example.com/p1.png",
            "created_at": "2024-01-05T10:00:00Z",
        },
        {
            "id": "g2",
            "asset_name": "Exports",
            "gdrive_link": "https://drive.google.com/drive/folders/2",
            "asset_type": "folder",
            "created_at": "2024-01-06T10:00:00Z",
        },
    ]


@pytest.fixture
def empty_cache():
    """Create an empty IndexCache."""
    return IndexCache(max_size=10)
