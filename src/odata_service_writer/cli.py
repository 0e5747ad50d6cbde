#!/usr/bin/env python3
"""
odata-service-writer - command-line interface.

Commands:
- add: Add or update an OData service from a descriptor file
- remove: Remove an OData service described by a descriptor file
- files: Show the project files the writer would touch

Usage:
    odata-service-writer add service.yaml                 # Add service to project in cwd
    odata-service-writer add service.yaml --project app   # Add service to ./app
    odata-service-writer add service.yaml --dry-run       # Show changes only
    odata-service-writer remove service.yaml              # Remove service again
    odata-service-writer files                            # Show project files
    odata-service-writer --help                           # Show help
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from odata_service_writer import __version__
from odata_service_writer.config import load_service_descriptor, load_writer_config
from odata_service_writer.editor import ProjectEditor
from odata_service_writer.errors import ServiceWriterError
from odata_service_writer.project import find_project_files, get_manifest_path
from odata_service_writer.writer import generate, remove

logger = logging.getLogger(__name__)


def _print_changes(editor: ProjectEditor, project: str, dry_run: bool) -> None:
    pending = editor.pending()
    if not pending:
        print("No changes.")
        return
    for path, content in sorted(pending.items()):
        if dry_run:
            label = "Would delete" if content is None else "Would update"
        else:
            label = "Deleted" if content is None else "Updated"
        print(f"  {label}: {os.path.relpath(path, project)}")


def run_service_command(command: str, descriptor: str, project: str, dry_run: bool) -> int:
    """Run add or remove for one descriptor. Returns exit code."""
    service = load_service_descriptor(descriptor)
    editor = ProjectEditor()
    if command == "add":
        generate(project, service, editor, load_writer_config(project))
    else:
        remove(project, service, editor)

    _print_changes(editor, project, dry_run)
    if not dry_run:
        editor.commit()
    return 0


def show_files(project: str) -> int:
    """Print the project files found for a project. Returns exit code."""
    editor = ProjectEditor()
    paths = find_project_files(project, editor)
    manifest_path = get_manifest_path(project, editor)

    print("=" * 60)
    print(f"Project files for {os.path.abspath(project)}")
    print("=" * 60)
    rows = [
        ("manifest.json", manifest_path if editor.exists(manifest_path) else None),
        ("package.json", paths.package_json),
        ("ui5.yaml", paths.ui5_yaml),
        ("ui5-local.yaml", paths.ui5_local_yaml),
        ("ui5-mock.yaml", paths.ui5_mock_yaml),
    ]
    for name, path in rows:
        print(f"  {name:<15} {path or '(not found)'}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="odata-service-writer",
        description="Add or remove OData services in a UI5 application",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s add service.yaml                  Add service to the project in cwd
  %(prog)s add service.json --project app    Add service to ./app
  %(prog)s add service.yaml --dry-run        List changes without writing
  %(prog)s remove service.yaml               Remove the service again
  %(prog)s files                             Show the project files found

Descriptor (YAML or JSON):
  url: https://services.odata.org
  path: /V2/Northwind/Northwind.svc
  version: "2"
  metadataFile: metadata.xml
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # ----- add / remove -----
    for name, help_text in (
        ("add", "Add or update an OData service"),
        ("remove", "Remove an OData service"),
    ):
        command_parser = subparsers.add_parser(name, help=help_text)
        command_parser.add_argument(
            "descriptor",
            type=str,
            help="Service descriptor file (.yaml, .yml or .json)"
        )
        command_parser.add_argument(
            "--project", "-p",
            type=str,
            default=".",
            help="Application root (default: current directory)"
        )
        command_parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show the changes without writing them"
        )

    # ----- files -----
    files_parser = subparsers.add_parser(
        "files",
        help="Show the project files found for an application"
    )
    files_parser.add_argument(
        "--project", "-p",
        type=str,
        default=".",
        help="Application root (default: current directory)"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command in ("add", "remove"):
            return run_service_command(args.command, args.descriptor, args.project, args.dry_run)
        elif args.command == "files":
            return show_files(args.project)
        else:
            parser.print_help()
            return 0
    except ServiceWriterError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cli() -> int:
    """CLI entry point."""
    return main()


if __name__ == "__main__":
    sys.exit(cli())
