"""
Project file discovery.

Finds package.json and the ui5*.yaml family by searching upward from the
application folder, and resolves the webapp folder of the application.
"""

import logging
import os
from typing import Iterable

from odata_service_writer.editor import ProjectEditor
from odata_service_writer.errors import RequiredProjectFileNotFound
from odata_service_writer.types import ProjectPaths
from odata_service_writer.ui5_config import UI5Config

logger = logging.getLogger(__name__)

# ProjectPaths attribute -> file name
PROJECT_FILES = (
    ("package_json", "package.json"),
    ("ui5_yaml", "ui5.yaml"),
    ("ui5_local_yaml", "ui5-local.yaml"),
    ("ui5_mock_yaml", "ui5-mock.yaml"),
)


def find_project_files(base_path: str, editor: ProjectEditor) -> ProjectPaths:
    """
    Find package.json, ui5.yaml, ui5-local.yaml and ui5-mock.yaml for a project.

    Each file is searched independently, closest to base_path wins, so the
    files do not need to live in the same folder.

    Args:
        base_path: Root path of an existing UI5 application
        editor: Staged editor used for existence checks

    Returns:
        ProjectPaths with the locations found, missing files stay None
    """
    paths = ProjectPaths()
    current = os.path.abspath(base_path)

    while True:
        for attribute, file_name in PROJECT_FILES:
            candidate = os.path.join(current, file_name)
            if getattr(paths, attribute) is None and editor.exists(candidate):
                setattr(paths, attribute, candidate)
        if paths.is_complete():
            break
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent

    logger.debug("Project files for %s: %s", base_path, paths)
    return paths


def get_webapp_path(base_path: str, editor: ProjectEditor) -> str:
    """Return the webapp folder, honouring resources.configuration.paths.webapp in ui5.yaml."""
    ui5_yaml_path = os.path.join(base_path, "ui5.yaml")
    if editor.exists(ui5_yaml_path):
        configured = UI5Config.new_instance(editor.read(ui5_yaml_path)).get_webapp_path()
        if configured:
            return os.path.join(base_path, configured)
    return os.path.join(base_path, "webapp")


def get_manifest_path(base_path: str, editor: ProjectEditor) -> str:
    return os.path.join(get_webapp_path(base_path, editor), "manifest.json")


def ensure_exists(base_path: str, files: Iterable[str], editor: ProjectEditor) -> None:
    """Raise RequiredProjectFileNotFound for the first file missing below base_path."""
    for path in files:
        if not editor.exists(os.path.join(base_path, path)):
            raise RequiredProjectFileNotFound(path)
