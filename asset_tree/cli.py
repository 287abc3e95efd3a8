#!/usr/bin/env python3
"""Asset Tree CLI - Interactive editor for one project's nested assets."""

import argparse
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from .asset import MAX_NESTING_DEPTH, AssetKind, AssetNode
from .config import add_config_args, load_config
from .hierarchy import depth_of, folder_item_count, path, total_item_count, tree_stats
from .mutations import MutationResult, cascade_delete, insert, move, rename
from .normalizer import normalize
from .tree_builder import available_parents, build_tree, flatten


@dataclass
class CliSession:
    """Mutable shell state: the asset collection being edited and engine limits."""
    nodes: List[AssetNode] = field(default_factory=list)
    max_depth: int = MAX_NESTING_DEPTH
    enforce_folder_parents: bool = True
    project_name: str = "untitled"


def print_help() -> None:
    """Print available commands."""
    print("\n=== Asset Tree CLI ===")
    print("Available commands:")
    print("  folder <name> [parent]         - Add a folder (at root or inside parent)")
    print("  file <name> [parent] [link]    - Add a file")
    print("  move <id> <parent|root>        - Move an asset with its contents")
    print("  rename <id> <name>             - Rename an asset")
    print("  delete <id>                    - Delete an asset and everything inside it")
    print("  tree                           - Show the folder tree")
    print("  path <id>                      - Show breadcrumb path")
    print("  depth <id>                     - Show nesting depth")
    print("  parents [id]                   - List folders usable as parent")
    print("  count <id>                     - Count items in a folder")
    print("  stats                          - Show tree statistics")
    print("  load <file.json>               - Load assets from a JSON file")
    print("  save <file.json>               - Save assets to a JSON file")
    print("  help                           - Show this help")
    print("  quit                           - Exit")
    print("\nExamples:")
    print("  folder Designs                 - Create root folder 'Designs'")
    print("  file Logo.png 3fa2c1d0         - Create file inside folder 3fa2c1d0")
    print("  move 3fa2c1d0 root             - Move folder to root level")


def print_tree(nodes: List[AssetNode]) -> None:
    """Print the asset forest with indentation."""
    if not nodes:
        print("  (no assets)")
        return
    for entry in flatten(build_tree(nodes)):
        marker = "+" if entry.node.kind == AssetKind.FOLDER else "-"
        print(f"{'  ' * (entry.depth + 1)}{marker} {entry.node.name}  [{entry.node.id}]")


def print_result(result: MutationResult, success_message: str) -> None:
    if result.success:
        print(success_message)
    else:
        print(f"Error: {result.error.message}")


def _new_id() -> str:
    return uuid.uuid4().hex[:8]


def _parse_parent(token: str) -> Optional[str]:
    return None if token.lower() in ("root", "none", "-") else token


def load_assets(filename: str) -> List[AssetNode]:
    """Read a JSON asset array (current or legacy records) and normalize it."""
    with open(filename, 'r') as f:
        records = json.load(f)
    if isinstance(records, dict):
        records = records.get("assets", [])
    return normalize(records)


def save_assets(filename: str, nodes: List[AssetNode]) -> None:
    with open(filename, 'w') as f:
        json.dump([node.to_dict() for node in nodes], f, indent=2)


def handle_command(session: CliSession, line: str) -> bool:
    """Execute one command line against the session.

    Args:
        session: Shell state, updated in place on successful mutations
        line: Raw input line

    Returns:
        False when the shell should exit, True otherwise.
    """
    parts = line.strip().split()
    if not parts:
        return True

    command = parts[0].lower()

    if command in ("quit", "exit"):
        print("Goodbye!")
        return False

    if command == "help":
        print_help()
        return True

    if command in ("folder", "file"):
        if len(parts) < 2:
            print(f"Usage: {command} <name> [parent]" + (" [link]" if command == "file" else ""))
            return True

        parent_id = _parse_parent(parts[2]) if len(parts) > 2 else None
        node = AssetNode(
            id=_new_id(),
            name=parts[1],
            kind=AssetKind(command),
            external_link=parts[3] if command == "file" and len(parts) > 3 else ""
        )
        result = insert(
            session.nodes, node, parent_id,
            max_depth=session.max_depth,
            enforce_folder_parents=session.enforce_folder_parents
        )
        if result.success:
            session.nodes = list(result.nodes)
        print_result(result, f"Created {command} '{node.name}' [{node.id}]")
        return True

    if command == "move":
        if len(parts) < 3:
            print("Usage: move <id> <parent|root>")
            return True

        result = move(
            session.nodes, parts[1], _parse_parent(parts[2]),
            max_depth=session.max_depth,
            enforce_folder_parents=session.enforce_folder_parents
        )
        if result.success:
            session.nodes = list(result.nodes)
        print_result(result, f"Moved {parts[1]} to {parts[2]}")
        return True

    if command == "rename":
        if len(parts) < 3:
            print("Usage: rename <id> <name>")
            return True

        result = rename(session.nodes, parts[1], " ".join(parts[2:]))
        if result.success:
            session.nodes = list(result.nodes)
        print_result(result, f"Renamed {parts[1]}")
        return True

    if command == "delete":
        if len(parts) < 2:
            print("Usage: delete <id>")
            return True

        result = cascade_delete(session.nodes, parts[1])
        if result.success:
            session.nodes = list(result.nodes)
        print_result(result, f"Deleted {result.removed_count} item(s)")
        return True

    if command == "tree":
        print(f"Project: {session.project_name}")
        print_tree(session.nodes)
        return True

    if command in ("path", "depth", "count"):
        if len(parts) < 2:
            print(f"Usage: {command} <id>")
            return True

        node_id = parts[1]
        if not any(node.id == node_id for node in session.nodes):
            print(f"No asset with id {node_id}")
            return True

        if command == "path":
            print(" > ".join(path(session.nodes, node_id)))
        elif command == "depth":
            print(f"Depth: {depth_of(session.nodes, node_id)} (max {session.max_depth - 1})")
        else:
            direct = folder_item_count(session.nodes, node_id)
            nested = total_item_count(session.nodes, node_id)
            print(f"Direct: {direct.total} ({direct.files} files, {direct.folders} folders)")
            print(f"Nested: {nested.total} ({nested.files} files, {nested.folders} folders)")
        return True

    if command == "parents":
        exclude_id = parts[1] if len(parts) > 1 else None
        options = available_parents(session.nodes, exclude_id, max_depth=session.max_depth)
        if not options:
            print("  (no folders)")
        for option in options:
            suffix = "  (full)" if option.disabled else ""
            print(f"  {option.path}  [{option.id}]{suffix}")
        return True

    if command == "stats":
        stats = tree_stats(session.nodes)
        print("\n=== Tree Stats ===")
        print(f"Assets: {stats['total_nodes']} ({stats['folders']} folders, {stats['files']} files)")
        print(f"Root items: {stats['root_nodes']}")
        print(f"Deepest level: {stats['max_depth']}")
        return True

    if command in ("load", "save"):
        if len(parts) < 2:
            print(f"Usage: {command} <file.json>")
            return True

        try:
            if command == "load":
                session.nodes = load_assets(parts[1])
                print(f"Loaded {len(session.nodes)} assets from {parts[1]}")
            else:
                save_assets(parts[1], session.nodes)
                print(f"Saved {len(session.nodes)} assets to {parts[1]}")
        except (OSError, ValueError) as e:
            # MalformedAssetError and JSONDecodeError are ValueErrors
            print(f"Error: {e}")
        return True

    print(f"Unknown command: {command}")
    print("Type 'help' for available commands.")
    return True


def run_cli(session: CliSession) -> None:
    """Run the interactive CLI."""
    print("Asset Tree - Nested Project Assets")
    print("==================================")
    print("Type 'help' for available commands.\n")

    while True:
        try:
            line = input("> ")
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            break

        if not handle_command(session, line):
            break


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Asset Tree - Nested Project Assets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  asset-tree                                  # Start with an empty project
  asset-tree --load assets.json               # Edit assets from a JSON file
  asset-tree --config config.yaml --project p1  # Edit a configured project
  asset-tree --config config.yaml --validate  # Validate config only
        """
    )

    add_config_args(parser)
    parser.add_argument("--project", "-p", type=str, default=None,
                        help="Configured project id to edit (default: first)")
    parser.add_argument("--load", "-l", type=str, default=None,
                        help="JSON file with an asset array to edit")

    return parser.parse_args(argv)


def build_session(args) -> Optional[CliSession]:
    """Create the shell session from arguments.

    Returns:
        The session, or None when the run should stop (validation only
        or a configuration error, which is printed).
    """
    session = CliSession()

    if args.config:
        try:
            config = load_config(args.config, args.env)
        except FileNotFoundError as e:
            print(f"Error: Configuration file not found: {e}")
            return None
        except ValueError as e:
            print(f"Error: Invalid configuration: {e}")
            return None

        if args.validate:
            print(f"✓ Configuration valid: {args.config}")
            print(f"  Environment: {args.env or 'default'}")
            print(f"  Max depth: {config.max_depth}")
            print(f"  Projects: {len(config.projects)}")
            return None

        session.max_depth = config.max_depth
        session.enforce_folder_parents = config.enforce_folder_parents

        projects = config.projects
        if args.project:
            projects = [p for p in config.projects if p.id == args.project]
            if not projects:
                print(f"Error: No project '{args.project}' in configuration")
                return None
        if projects:
            session.nodes = list(projects[0].assets)
            session.project_name = projects[0].name
            print(f"✓ Loaded {len(session.nodes)} assets from project '{projects[0].name}'")

    if args.load:
        try:
            session.nodes = load_assets(args.load)
            session.project_name = args.load
        except (OSError, ValueError) as e:
            print(f"Error: {e}")
            return None

    return session


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    session = build_session(args)
    if session is not None:
        run_cli(session)


if __name__ == "__main__":
    main()
