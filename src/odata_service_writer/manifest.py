"""
manifest.json data source updates.

Adds a service with its annotations to sap.app.dataSources and binds it
to a model in sap.ui5.models, or removes it again.

Local file layout:
    webapp/localService/metadata.xml              single service (flat)
    webapp/localService/<service>/metadata.xml    one folder per service

The flat layout is only used while the project has a single OData
service. Adding a second service moves the files of a flat service into
its own folder and rewrites its localUri settings first. The decision is
based on the number of OData data sources only, so editing the manifest
by hand between calls can change which layout a service gets.
"""

import copy
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from odata_service_writer.data import default_model, rename_colliding_annotations
from odata_service_writer.editor import ProjectEditor
from odata_service_writer.errors import RequiredProjectFileNotFound, RequiredProjectPropertyNotFound
from odata_service_writer.project import get_manifest_path
from odata_service_writer.types import (
    MAIN_SERVICE,
    EdmxOdataService,
    LocalFilePlan,
    OdataService,
    OdataVersion,
)

logger = logging.getLogger(__name__)

LOCAL_SERVICE_DIR = "localService/"
FLAT_METADATA_URI = f"{LOCAL_SERVICE_DIR}metadata.xml"
LOCAL_ANNOTATIONS_DIR = "annotations/"

ODATA_VERSIONS = {
    OdataVersion.V2: "2.0",
    OdataVersion.V4: "4.0",
}

V4_MODEL_SETTINGS = {
    "synchronizationMode": "None",
    "operationMode": "Server",
    "autoExpandSelect": True,
    "earlyRequests": True,
}


def _load_manifest(base_path: str, editor: ProjectEditor) -> Tuple[str, Dict[str, Any]]:
    manifest_path = get_manifest_path(base_path, editor)
    if not editor.exists(manifest_path):
        raise RequiredProjectFileNotFound(os.path.relpath(manifest_path, base_path))
    return manifest_path, editor.read_json(manifest_path)


def _settings(source: Dict[str, Any]) -> Dict[str, Any]:
    settings = source.get("settings")
    if not isinstance(settings, dict):
        settings = source["settings"] = {}
    return settings


def _namespaced_dir(service_name: str) -> str:
    return f"{LOCAL_SERVICE_DIR}{service_name}/"


def _assign_service_name(service: OdataService, data_sources: Dict[str, Any]) -> str:
    """Name for a service added without one while other services exist."""
    for name, source in data_sources.items():
        if source.get("type") == "OData" and source.get("uri") == service.path:
            return name
    if MAIN_SERVICE not in data_sources:
        return MAIN_SERVICE
    index = 2
    while f"service{index}" in data_sources:
        index += 1
    return f"service{index}"


def _migrate_flat_layout(
    service_name: str,
    data_sources: Dict[str, Any],
    webapp_path: str,
    editor: ProjectEditor,
) -> Optional[List[Tuple[str, str]]]:
    """
    Move a flat layout service into localService/<service_name>/.

    Returns:
        The (old, new) localUri pairs, or None if the service is not flat
    """
    settings = _settings(data_sources[service_name])
    if settings.get("localUri") != FLAT_METADATA_URI:
        return None

    target_dir = _namespaced_dir(service_name)
    moves = [(FLAT_METADATA_URI, f"{target_dir}metadata.xml")]
    settings["localUri"] = f"{target_dir}metadata.xml"

    for annotation_name in settings.get("annotations") or []:
        annotation = data_sources.get(annotation_name)
        if not isinstance(annotation, dict):
            continue
        annotation_settings = _settings(annotation)
        local_uri = annotation_settings.get("localUri") or ""
        # only files directly in localService/ belong to the flat layout
        if local_uri.startswith(LOCAL_SERVICE_DIR) and "/" not in local_uri[len(LOCAL_SERVICE_DIR):]:
            new_uri = f"{target_dir}{local_uri[len(LOCAL_SERVICE_DIR):]}"
            annotation_settings["localUri"] = new_uri
            moves.append((local_uri, new_uri))

    for old_uri, new_uri in moves:
        old_path = os.path.join(webapp_path, old_uri)
        if editor.exists(old_path):
            editor.move(old_path, os.path.join(webapp_path, new_uri))
    logger.info("Moved local files of %s into %s", service_name, target_dir)
    return moves


def update_manifest(base_path: str, service: OdataService, editor: ProjectEditor) -> LocalFilePlan:
    """
    Merge a service and its annotations into manifest.json.

    Args:
        base_path: Root path of an existing UI5 application
        service: Enhanced service descriptor; a missing name is assigned here
        editor: Staged editor

    Returns:
        The local file locations for the service's metadata and annotations

    Raises:
        RequiredProjectFileNotFound: If manifest.json does not exist
        RequiredProjectPropertyNotFound: If sap.app.id is missing
    """
    manifest_path, manifest = _load_manifest(base_path, editor)
    app = manifest.get("sap.app") if isinstance(manifest, dict) else None
    if not isinstance(app, dict) or not app.get("id"):
        raise RequiredProjectPropertyNotFound("'sap.app'.id", manifest_path)

    before = copy.deepcopy(manifest)
    webapp_path = os.path.dirname(manifest_path)

    data_sources = app.get("dataSources")
    if not isinstance(data_sources, dict):
        data_sources = app["dataSources"] = {}
    ui5 = manifest.get("sap.ui5")
    if not isinstance(ui5, dict):
        ui5 = manifest["sap.ui5"] = {}
    models = ui5.get("models")
    if not isinstance(models, dict):
        models = ui5["models"] = {}

    if not service.name:
        service.name = _assign_service_name(service, data_sources)
        rename_colliding_annotations(service, data_sources)
    if service.model is None:
        service.model = default_model(service.name, models)

    other_services = [
        name for name, source in data_sources.items()
        if source.get("type") == "OData" and name != service.name
    ]

    plan_moves: List[Tuple[str, str]] = []
    migrated = False
    if other_services:
        for name in other_services:
            moves = _migrate_flat_layout(name, data_sources, webapp_path, editor)
            if moves is not None:
                migrated = True
                plan_moves.extend(moves)

    existing = data_sources.get(service.name)
    existing = existing if isinstance(existing, dict) else {}
    existing_settings = existing.get("settings") if isinstance(existing.get("settings"), dict) else {}
    namespaced_dir = _namespaced_dir(service.name)
    if other_services or (existing_settings.get("localUri") or "").startswith(namespaced_dir):
        local_dir = namespaced_dir
    else:
        local_dir = LOCAL_SERVICE_DIR

    annotation_entries = service.manifest_annotation_entries(local_dir)
    local_annotation = None
    if isinstance(service, EdmxOdataService) and service.local_annotations_name:
        local_uri = f"{LOCAL_ANNOTATIONS_DIR}{service.local_annotations_name}.xml"
        local_annotation = (
            service.local_annotations_name,
            {"type": "ODataAnnotation", "uri": local_uri, "settings": {"localUri": local_uri}},
        )

    annotation_names = list(existing_settings.get("annotations") or [])
    new_names = list(annotation_entries)
    if local_annotation:
        new_names.append(local_annotation[0])
    for name in new_names:
        if name not in annotation_names:
            annotation_names.append(name)

    entry = dict(existing)
    entry["uri"] = service.path
    entry["type"] = "OData"
    settings = dict(existing_settings)
    settings["annotations"] = annotation_names
    settings["localUri"] = f"{local_dir}metadata.xml"
    settings["odataVersion"] = ODATA_VERSIONS[service.version]
    entry["settings"] = settings
    data_sources[service.name] = entry

    for name, annotation in annotation_entries.items():
        data_sources[name] = annotation
    if local_annotation:
        data_sources[local_annotation[0]] = local_annotation[1]

    bound = models.get(service.model)
    if not (isinstance(bound, dict) and bound.get("dataSource") == service.name):
        models[service.model] = {
            "dataSource": service.name,
            "preload": True,
            "settings": dict(V4_MODEL_SETTINGS) if service.version is OdataVersion.V4 else {},
        }

    if manifest != before:
        editor.write_json(manifest_path, manifest)
        logger.info("Added service %s to %s", service.name, manifest_path)

    return LocalFilePlan(
        metadata=settings["localUri"],
        annotations={name: annotation["settings"]["localUri"] for name, annotation in annotation_entries.items()},
        migrated=migrated,
        moved=plan_moves,
    )


def delete_service_from_manifest(
    base_path: str, service_name: str, editor: ProjectEditor
) -> Optional[List[str]]:
    """
    Remove a service, its annotations and its models from manifest.json.

    Annotations still referenced by another data source and local
    annotations below annotations/ are kept.

    Args:
        base_path: Root path of an existing UI5 application
        service_name: Data source name of the service
        editor: Staged editor

    Returns:
        localUri values of the removed data sources that no remaining data
        source uses, relative to the webapp folder, or None if the service
        is not in manifest.json
    """
    manifest_path, manifest = _load_manifest(base_path, editor)
    data_sources = ((manifest.get("sap.app") or {}).get("dataSources") or {}) if isinstance(manifest, dict) else {}
    if service_name not in data_sources:
        logger.debug("Service %s not in %s, nothing to remove", service_name, manifest_path)
        return None

    removed = [data_sources.pop(service_name)]
    annotation_names = (removed[0].get("settings") or {}).get("annotations") or []

    still_referenced = set()
    for source in data_sources.values():
        still_referenced.update((source.get("settings") or {}).get("annotations") or [])

    for annotation_name in annotation_names:
        annotation = data_sources.get(annotation_name)
        if not isinstance(annotation, dict) or annotation_name in still_referenced:
            continue
        if (annotation.get("uri") or "").startswith(LOCAL_ANNOTATIONS_DIR):
            continue
        removed.append(data_sources.pop(annotation_name))

    models = (manifest.get("sap.ui5") or {}).get("models") or {}
    for model_name in [name for name, model in models.items()
                       if isinstance(model, dict) and model.get("dataSource") == service_name]:
        del models[model_name]

    editor.write_json(manifest_path, manifest)
    logger.info("Removed service %s from %s", service_name, manifest_path)

    in_use = {(source.get("settings") or {}).get("localUri") for source in data_sources.values()}
    local_uris = []
    for source in removed:
        local_uri = (source.get("settings") or {}).get("localUri")
        if local_uri and local_uri not in in_use:
            local_uris.append(local_uri)
    return local_uris
