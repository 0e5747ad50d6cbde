"""
Add or remove an OData service in an existing UI5 project.

generate:
1. Service is enhanced with defaults and merged into manifest.json,
   moving a single service's local files into their own folder when a
   second service is added.
If service type is EDMX:
2. ui5.yaml, ui5-local.yaml
   - backend of the service is added to fiori-tools-proxy
3. ui5-mock.yaml (created from ui5.yaml when missing, only with metadata)
   - sap-fe-mockserver serves every OData service of manifest.json
   - the mock server block is copied into ui5-local.yaml
4. local copies of metadata and annotations are written, package.json is
   marked as a UI5 tooling project
If service type is CDS:
2. annotations are merged into the CAP project's CDS files

remove reverses the manifest, middleware, local file and CDS updates.
Neither call touches the disk: changes are staged in the returned editor.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from odata_service_writer.cds import remove_annotations_from_cds_files, update_cds_files_with_annotations
from odata_service_writer.config import get_metadata_config, get_mockserver_config, get_proxy_config, load_writer_config
from odata_service_writer.data import enhance_data, get_annotation_namespaces
from odata_service_writer.editor import ProjectEditor
from odata_service_writer.manifest import delete_service_from_manifest, update_manifest
from odata_service_writer.middleware import (
    propagate_mockserver_middleware,
    refresh_mockserver_config,
    remove_backend,
    remove_mockserver_service,
    upsert_backend,
)
from odata_service_writer.package_json import update_package_json
from odata_service_writer.project import ensure_exists, find_project_files, get_manifest_path, get_webapp_path
from odata_service_writer.types import (
    MAIN_SERVICE,
    CdsOdataService,
    EdmxOdataService,
    LocalFilePlan,
    OdataService,
    ProjectPaths,
)
from odata_service_writer.ui5_config import UI5Config
from odata_service_writer.xml_format import prettify_xml

logger = logging.getLogger(__name__)

TEMPLATE_ROOT = Path(__file__).parent / "templates"

ServiceInput = Union[OdataService, Dict[str, Any]]


def _as_service(service: ServiceInput) -> OdataService:
    if isinstance(service, OdataService):
        return service
    return OdataService.from_dict(service)


def _load_config(editor: ProjectEditor, path: str) -> UI5Config:
    return UI5Config.new_instance(editor.read(path))


def _save_config(editor: ProjectEditor, path: str, config: UI5Config) -> None:
    if config.modified:
        editor.write(path, config.to_string())
        config.modified = False


def _ensure_manifest(base_path: str, editor: ProjectEditor) -> None:
    manifest_path = get_manifest_path(base_path, editor)
    ensure_exists(base_path, [os.path.relpath(manifest_path, base_path)], editor)


def _webapp_prefix(webapp_path: str, yaml_path: str) -> str:
    relative = os.path.relpath(webapp_path, os.path.dirname(yaml_path))
    return "./" + relative.replace(os.sep, "/")


def _mock_yaml_path(ui5_yaml_path: str) -> str:
    return os.path.join(os.path.dirname(ui5_yaml_path), "ui5-mock.yaml")


def generate_mockserver_config(
    base_path: str,
    ui5_yaml_path: str,
    editor: ProjectEditor,
    mock_config: Optional[Dict[str, Any]] = None,
) -> UI5Config:
    """
    Load ui5-mock.yaml and let its mock server serve every OData service of manifest.json.

    A missing ui5-mock.yaml is created from the current ui5.yaml. The
    document is returned unsaved so further middlewares can be updated
    before it is written.
    """
    mock_yaml_path = _mock_yaml_path(ui5_yaml_path)
    if editor.exists(mock_yaml_path):
        mock_config_doc = _load_config(editor, mock_yaml_path)
    else:
        logger.info("Creating %s from %s", mock_yaml_path, ui5_yaml_path)
        mock_config_doc = _load_config(editor, ui5_yaml_path)
        mock_config_doc.mark_modified()

    manifest = editor.read_json(get_manifest_path(base_path, editor))
    webapp_prefix = _webapp_prefix(get_webapp_path(base_path, editor), mock_yaml_path)
    refresh_mockserver_config(mock_config_doc, manifest, webapp_prefix, mock_config)
    return mock_config_doc


def _write_local_service_files(
    base_path: str,
    service: EdmxOdataService,
    plan: LocalFilePlan,
    editor: ProjectEditor,
    indent: int,
) -> None:
    webapp_path = get_webapp_path(base_path, editor)
    if service.metadata:
        editor.write(os.path.join(webapp_path, plan.metadata), prettify_xml(service.metadata, indent))
        if service.local_annotations_name:
            target = os.path.join(webapp_path, "annotations", f"{service.local_annotations_name}.xml")
            if editor.exists(target):
                logger.debug("Keeping existing local annotations %s", target)
            else:
                editor.copy_tpl(
                    TEMPLATE_ROOT / "annotation.xml",
                    target,
                    {"path": service.path, "namespaces": get_annotation_namespaces(service)},
                )
    for annotation in service.annotations:
        if annotation.xml:
            editor.write(os.path.join(webapp_path, plan.annotations[annotation.key]), annotation.xml)


def _write_edmx_service_files(
    base_path: str,
    paths: ProjectPaths,
    service: EdmxOdataService,
    plan: LocalFilePlan,
    editor: ProjectEditor,
    config: Dict[str, Any],
) -> None:
    proxy_config = get_proxy_config(config)
    mock_config = get_mockserver_config(config)
    backend = service.backend_entry()
    ignore_cert_error = service.ignore_cert_error or proxy_config["ignore_cert_error"]

    if paths.ui5_yaml:
        ui5_config = _load_config(editor, paths.ui5_yaml)
        upsert_backend(ui5_config, backend, ignore_cert_error, proxy_config)
        _save_config(editor, paths.ui5_yaml, ui5_config)

        local_config = None
        if paths.ui5_local_yaml:
            local_config = _load_config(editor, paths.ui5_local_yaml)
            upsert_backend(local_config, backend, ignore_cert_error, proxy_config)

        mock_yaml_path = _mock_yaml_path(paths.ui5_yaml)
        # after a layout migration the mock server paths have to follow the moved files
        if service.has_local_payload or (plan.migrated and editor.exists(mock_yaml_path)):
            mock_config_doc = generate_mockserver_config(base_path, paths.ui5_yaml, editor, mock_config)
            if paths.ui5_mock_yaml:
                upsert_backend(mock_config_doc, backend, ignore_cert_error, proxy_config)
            _save_config(editor, mock_yaml_path, mock_config_doc)
            if local_config is not None:
                propagate_mockserver_middleware(mock_config_doc, local_config)

        if local_config is not None:
            _save_config(editor, paths.ui5_local_yaml, local_config)

    _write_local_service_files(base_path, service, plan, editor, get_metadata_config(config)["indent"])

    if paths.package_json and paths.ui5_yaml:
        update_package_json(paths.package_json, editor, service.has_local_payload)


def generate(
    base_path: str,
    service: ServiceInput,
    editor: Optional[ProjectEditor] = None,
    config: Optional[Dict[str, Any]] = None,
) -> ProjectEditor:
    """
    Write the OData service into an existing UI5 project.

    Args:
        base_path: Root path of an existing UI5 application
        service: Service descriptor, enhanced in place
        editor: Staged editor to accumulate changes in, a new one if omitted
        config: Writer settings, read from .odata-service-writer.yaml if omitted

    Returns:
        The editor holding the staged changes

    Raises:
        RequiredProjectFileNotFound: If webapp/manifest.json is missing
        RequiredProjectPropertyNotFound: If sap.app.id is missing
    """
    service = _as_service(service)
    editor = editor or ProjectEditor()
    config = load_writer_config(base_path) if config is None else config

    paths = find_project_files(base_path, editor)
    _ensure_manifest(base_path, editor)
    enhance_data(base_path, service, editor)
    plan = update_manifest(base_path, service, editor)

    if isinstance(service, EdmxOdataService):
        _write_edmx_service_files(base_path, paths, service, plan, editor, config)
    elif isinstance(service, CdsOdataService) and service.annotations:
        update_cds_files_with_annotations(service.annotations, editor)

    logger.info("Generated %s service %s at %s", service.type.value, service.name, service.path)
    return editor


def remove(
    base_path: str,
    service: ServiceInput,
    editor: Optional[ProjectEditor] = None,
) -> ProjectEditor:
    """
    Remove the OData service from an existing UI5 project.

    The service is identified by name in manifest.json, by url in the
    fiori-tools-proxy backends and by path in the mock server. A service
    whose name is not in manifest.json changes nothing, even when its url
    or path matches another configured service.

    Args:
        base_path: Root path of an existing UI5 application
        service: Descriptor with name, url, path, type and annotations
        editor: Staged editor to accumulate changes in, a new one if omitted

    Returns:
        The editor holding the staged changes
    """
    service = _as_service(service)
    editor = editor or ProjectEditor()

    paths = find_project_files(base_path, editor)
    _ensure_manifest(base_path, editor)
    service_name = service.name or MAIN_SERVICE
    local_uris = delete_service_from_manifest(base_path, service_name, editor)
    if local_uris is None:
        logger.info("Service %s is not configured, nothing removed", service_name)
        return editor

    if isinstance(service, EdmxOdataService):
        annotation_paths = service.middleware_annotation_paths()
        for path, has_mockserver in (
            (paths.ui5_yaml, False),
            (paths.ui5_local_yaml, True),
            (paths.ui5_mock_yaml, True),
        ):
            if not path:
                continue
            ui5_config = _load_config(editor, path)
            remove_backend(ui5_config, service.url)
            if has_mockserver:
                remove_mockserver_service(ui5_config, service.path or "/", annotation_paths)
            _save_config(editor, path, ui5_config)

        webapp_path = get_webapp_path(base_path, editor)
        for local_uri in local_uris:
            editor.delete(os.path.join(webapp_path, local_uri))
    elif isinstance(service, CdsOdataService) and service.annotations:
        remove_annotations_from_cds_files(service.annotations, editor)

    logger.info("Removed %s service %s", service.type.value, service_name)
    return editor
