"""
CDS annotation files of CAP projects.

Annotations of a CDS service are appended to
<projectPath>/<appPath>/<projectName>/annotations.cds, which is pulled in
by a using statement in index.cds (or services.cds when there is no
index.cds) of the app folder.
"""

import logging
import os
from typing import List

from odata_service_writer.editor import ProjectEditor
from odata_service_writer.types import CdsAnnotationsInfo

logger = logging.getLogger(__name__)


def _app_dir(annotation: CdsAnnotationsInfo) -> str:
    return os.path.join(annotation.project_path, annotation.app_path or "")


def _annotations_file(annotation: CdsAnnotationsInfo) -> str:
    return os.path.join(_app_dir(annotation), annotation.project_name, "annotations.cds")


def _using_statement(annotation: CdsAnnotationsInfo) -> str:
    return f"using from './{annotation.project_name}/annotations';"


def _entry_file(annotation: CdsAnnotationsInfo, editor: ProjectEditor) -> str:
    index_cds = os.path.join(_app_dir(annotation), "index.cds")
    if editor.exists(index_cds):
        return index_cds
    return os.path.join(_app_dir(annotation), "services.cds")


def update_cds_files_with_annotations(annotations: List[CdsAnnotationsInfo], editor: ProjectEditor) -> None:
    """Write CDS annotations and reference them from the app's entry CDS file."""
    for annotation in annotations:
        annotations_file = _annotations_file(annotation)
        contents = annotation.cds_file_contents
        if editor.exists(annotations_file):
            current = editor.read(annotations_file)
            if contents not in current:
                editor.write(annotations_file, f"{current}\n{contents}")
        else:
            editor.write(annotations_file, contents)

        entry_file = _entry_file(annotation, editor)
        using = _using_statement(annotation)
        if editor.exists(entry_file):
            current = editor.read(entry_file)
            if using not in current.splitlines():
                separator = "\n" if current.strip() else ""
                editor.write(entry_file, f"{current.rstrip()}{separator}{using}\n")
        else:
            editor.write(entry_file, f"{using}\n")
        logger.debug("Added CDS annotations of %s", annotation.project_name)


def remove_annotations_from_cds_files(annotations: List[CdsAnnotationsInfo], editor: ProjectEditor) -> None:
    """Strip CDS annotations and their using statements again."""
    for annotation in annotations:
        annotations_file = _annotations_file(annotation)
        contents = annotation.cds_file_contents
        if contents and editor.exists(annotations_file):
            current = editor.read(annotations_file)
            if contents in current:
                remaining = current.replace(contents, "")
                if remaining.strip():
                    editor.write(annotations_file, remaining)
                else:
                    editor.delete(annotations_file)

        using = _using_statement(annotation)
        for entry_file in (
            os.path.join(_app_dir(annotation), "index.cds"),
            os.path.join(_app_dir(annotation), "services.cds"),
        ):
            if not editor.exists(entry_file):
                continue
            lines = editor.read(entry_file).splitlines()
            kept = [line for line in lines if line.strip() != using]
            if len(kept) != len(lines):
                editor.write(entry_file, "\n".join(kept) + "\n" if kept else "")
        logger.debug("Removed CDS annotations of %s", annotation.project_name)
