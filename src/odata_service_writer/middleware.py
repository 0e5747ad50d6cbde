"""
Middleware synchronization for ui5*.yaml documents.

Backend entries of fiori-tools-proxy are matched by path when added and by
url when removed. Mock-server entries of sap-fe-mockserver are matched by
the service's urlPath or metadataPath and annotation entries by urlPath.
All operations are idempotent and work on one UI5Config document; reading
and writing the files is left to the caller.
"""

import logging
import posixpath
from typing import Any, Dict, Iterable, List, Optional

from odata_service_writer.errors import UI5ConfigError, YamlErrorCode
from odata_service_writer.ui5_config import FIORI_TOOLS_PROXY, MOCKSERVER, UI5Config

logger = logging.getLogger(__name__)


def _same_path(left: Optional[str], right: Optional[str]) -> bool:
    if left is None or right is None:
        return False
    return left.rstrip("/") == right.rstrip("/")


# -------------------------------------------------------------------------
# fiori-tools-proxy backends
# -------------------------------------------------------------------------

def upsert_backend(
    config: UI5Config,
    backend: Dict[str, Any],
    ignore_cert_error: bool = False,
    proxy_config: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add a backend to fiori-tools-proxy, replacing the entry with the same path.

    A missing fiori-tools-proxy middleware is created with this backend as
    its only entry; any other document error is raised unchanged.
    """
    proxy_config = proxy_config or {}
    try:
        configuration = config.get_middleware_configuration(FIORI_TOOLS_PROXY)
    except UI5ConfigError as error:
        if error.code is not YamlErrorCode.NODE_NOT_FOUND:
            raise
        logger.info("Adding %s middleware with backend %s", FIORI_TOOLS_PROXY, backend.get("path"))
        config.add_fiori_tools_proxy_middleware(
            backend=[dict(backend)],
            ignore_cert_error=ignore_cert_error,
            ui5_url=proxy_config.get("ui5_url", "https://ui5.sap.com"),
            after_middleware=proxy_config.get("after_middleware", "compression"),
        )
        return

    backends = configuration.get("backend")
    if not isinstance(backends, list):
        backends = configuration["backend"] = []
        config.mark_modified()

    for index, existing in enumerate(backends):
        if isinstance(existing, dict) and existing.get("path") == backend.get("path"):
            if existing != backend:
                logger.debug("Replacing backend for path %s", backend.get("path"))
                backends[index] = dict(backend)
                config.mark_modified()
            return

    logger.debug("Appending backend for path %s", backend.get("path"))
    backends.append(dict(backend))
    config.mark_modified()


def remove_backend(config: UI5Config, url: str) -> None:
    """Remove every fiori-tools-proxy backend pointing to url."""
    proxy = config.find_custom_middleware(FIORI_TOOLS_PROXY)
    if proxy is None:
        return
    backends = (proxy.get("configuration") or {}).get("backend")
    if not isinstance(backends, list):
        return
    remaining = [
        backend for backend in backends
        if not (isinstance(backend, dict) and backend.get("url") == url)
    ]
    if len(remaining) != len(backends):
        logger.debug("Removed %d backend(s) for %s", len(backends) - len(remaining), url)
        backends[:] = remaining
        config.mark_modified()


# -------------------------------------------------------------------------
# sap-fe-mockserver services and annotations
# -------------------------------------------------------------------------

def _mockserver_configuration(config: UI5Config, mock_config: Dict[str, Any]) -> Dict[str, Any]:
    if config.find_custom_middleware(MOCKSERVER) is None:
        logger.info("Adding %s middleware", MOCKSERVER)
        config.add_mock_server_middleware(mount_path=mock_config.get("mount_path", "/"))
    configuration = config.get_middleware_configuration(MOCKSERVER)
    for key in ("services", "annotations"):
        if not isinstance(configuration.get(key), list):
            configuration[key] = []
            config.mark_modified()
    return configuration


def _upsert(entries: List[Any], record: Dict[str, Any], matches, config: UI5Config) -> None:
    for index, existing in enumerate(entries):
        if isinstance(existing, dict) and matches(existing):
            if existing != record:
                entries[index] = record
                config.mark_modified()
            return
    entries.append(record)
    config.mark_modified()


def upsert_mockserver_service(
    config: UI5Config,
    service_name: str,
    service_path: str,
    metadata_path: str,
    annotations: Optional[Dict[str, str]] = None,
    mock_config: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Add or update a service and its annotations in sap-fe-mockserver.

    Args:
        config: ui5-mock.yaml or ui5-local.yaml document
        service_name: Data source name of the service
        service_path: Service URL path, served by the mock server
        metadata_path: Project relative path of the local metadata copy
        annotations: Annotation URL path -> project relative local file
        mock_config: Mock server settings (mount_path, generate_mock_data)
    """
    mock_config = mock_config or {}
    configuration = _mockserver_configuration(config, mock_config)

    service_record = {
        "urlPath": service_path.rstrip("/") or "/",
        "metadataPath": metadata_path,
        "mockdataPath": f"{posixpath.dirname(metadata_path)}/data",
        "generateMockData": mock_config.get("generate_mock_data", True),
    }
    _upsert(
        configuration["services"],
        service_record,
        lambda entry: _same_path(entry.get("urlPath"), service_path)
        or entry.get("metadataPath") == metadata_path,
        config,
    )

    for url_path, local_path in (annotations or {}).items():
        _upsert(
            configuration["annotations"],
            {"localPath": local_path, "urlPath": url_path},
            lambda entry, url_path=url_path: entry.get("urlPath") == url_path,
            config,
        )
    logger.debug("Mock server entries for %s at %s are up to date", service_name, service_path)


def remove_mockserver_service(config: UI5Config, service_path: str, annotation_paths: Iterable[str]) -> None:
    """Remove a service and the given annotation URL paths from sap-fe-mockserver."""
    middleware = config.find_custom_middleware(MOCKSERVER)
    if middleware is None:
        return
    configuration = middleware.get("configuration") or {}
    annotation_paths = set(annotation_paths)

    services = configuration.get("services")
    if isinstance(services, list):
        remaining = [
            entry for entry in services
            if not (isinstance(entry, dict) and _same_path(entry.get("urlPath"), service_path))
        ]
        if len(remaining) != len(services):
            services[:] = remaining
            config.mark_modified()

    annotations = configuration.get("annotations")
    if isinstance(annotations, list):
        remaining = [
            entry for entry in annotations
            if not (isinstance(entry, dict) and entry.get("urlPath") in annotation_paths)
        ]
        if len(remaining) != len(annotations):
            annotations[:] = remaining
            config.mark_modified()


def refresh_mockserver_config(
    config: UI5Config,
    manifest: Dict[str, Any],
    webapp_prefix: str,
    mock_config: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Bring sap-fe-mockserver in line with the OData services of manifest.json.

    Local metadata and annotation paths are taken from the manifest's
    localUri settings, so a changed local file layout is followed.

    Args:
        config: ui5-mock.yaml document
        manifest: Parsed manifest.json
        webapp_prefix: Webapp folder relative to the YAML file, e.g. ./webapp
        mock_config: Mock server settings
    """
    data_sources = (manifest.get("sap.app") or {}).get("dataSources") or {}
    for name, source in data_sources.items():
        if source.get("type") != "OData":
            continue
        settings = source.get("settings") or {}
        local_uri = settings.get("localUri")
        if not local_uri:
            continue
        annotations = {}
        for annotation_name in settings.get("annotations") or []:
            annotation = data_sources.get(annotation_name) or {}
            annotation_local_uri = (annotation.get("settings") or {}).get("localUri")
            uri = annotation.get("uri", "")
            # local annotation files are served by the app itself
            if uri.startswith("/") and annotation_local_uri:
                annotations[uri] = f"{webapp_prefix}/{annotation_local_uri}"
        upsert_mockserver_service(
            config,
            name,
            source.get("uri") or "/",
            f"{webapp_prefix}/{local_uri}",
            annotations,
            mock_config,
        )


def propagate_mockserver_middleware(source: UI5Config, target: UI5Config) -> None:
    """Copy the sap-fe-mockserver middleware of source into target."""
    middleware = source.find_custom_middleware(MOCKSERVER)
    if middleware is not None:
        target.update_custom_middleware(middleware)
