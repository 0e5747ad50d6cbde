"""
Descriptor enhancement.

Fills the fields a caller may leave out of a service descriptor, using
the current manifest.json as context. Runs once per generate call, before
any project file is touched.
"""

import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, List

from odata_service_writer.editor import ProjectEditor
from odata_service_writer.project import get_manifest_path
from odata_service_writer.types import MAIN_SERVICE, EdmxOdataService, OdataService, default_preview_path

logger = logging.getLogger(__name__)

ANNOTATION_SUFFIX = "_Annotation"


def _read_manifest(base_path: str, editor: ProjectEditor) -> Dict[str, Any]:
    manifest_path = get_manifest_path(base_path, editor)
    if not editor.exists(manifest_path):
        return {}
    return editor.read_json(manifest_path) or {}


def enhance_data(base_path: str, service: OdataService, editor: ProjectEditor) -> None:
    """
    Fill in missing descriptor fields in place.

    - name: mainService when the manifest has no OData service yet,
      otherwise left empty for the manifest update to assign
    - path: always ends with '/', '/' when missing
    - preview_settings: path and url derived from the service unless given
    - annotations: renamed with an _Annotation suffix when the name is
      already taken by the service or another non-annotation data source
    - model: existing model bound to the service, else the default model ''
    """
    manifest = _read_manifest(base_path, editor)
    data_sources = (manifest.get("sap.app") or {}).get("dataSources") or {}
    models = (manifest.get("sap.ui5") or {}).get("models") or {}
    odata_services = [name for name, source in data_sources.items() if source.get("type") == "OData"]

    if not service.name and not odata_services:
        service.name = MAIN_SERVICE

    path = service.path or "/"
    service.path = path if path.endswith("/") else f"{path}/"

    preview_settings = dict(service.preview_settings or {})
    preview_settings["path"] = preview_settings.get("path") or default_preview_path(service.path)
    preview_settings["url"] = preview_settings.get("url") or service.url
    service.preview_settings = preview_settings

    rename_colliding_annotations(service, data_sources)

    if service.model is None and service.name:
        service.model = default_model(service.name, models)


def rename_colliding_annotations(service: OdataService, data_sources: Dict[str, Any]) -> None:
    """
    Suffix annotation names taken by the service or another non-annotation data source.

    Runs again once a service added without name has been given one.
    """
    taken = {name for name, source in data_sources.items() if source.get("type") != "ODataAnnotation"}
    if service.name:
        taken.add(service.name)
    for annotation in service.annotation_list:
        if annotation.key in taken:
            renamed = f"{annotation.key}{ANNOTATION_SUFFIX}"
            logger.debug("Annotation %s collides with a data source, using %s", annotation.key, renamed)
            annotation.name = renamed


def default_model(service_name: str, models: Dict[str, Any]) -> str:
    """Model name for a service that was added without one."""
    for model_name, model in models.items():
        if isinstance(model, dict) and model.get("dataSource") == service_name:
            return model_name
    unnamed = models.get("")
    if isinstance(unnamed, dict) and unnamed.get("dataSource"):
        # the default model belongs to another service
        return service_name
    return ""


def get_annotation_namespaces(service: EdmxOdataService) -> List[Dict[str, str]]:
    """
    Return the schema namespaces and aliases declared in the service metadata.

    Args:
        service: EDMX service with metadata

    Returns:
        List of {"namespace": ..., "alias": ...}, empty if the metadata is
        missing or not well-formed XML
    """
    if not service.metadata:
        return []
    try:
        root = ET.fromstring(service.metadata)
    except ET.ParseError as e:
        logger.debug("Metadata is not well-formed XML, no namespaces: %s", e)
        return []

    namespaces = []
    for element in root.iter():
        if element.tag.rsplit("}", 1)[-1] == "Schema" and element.get("Namespace"):
            namespaces.append({
                "namespace": element.get("Namespace"),
                "alias": element.get("Alias", ""),
            })
    return namespaces
