"""
Document model for ui5.yaml, ui5-local.yaml and ui5-mock.yaml.

Wraps one parsed YAML document and offers structural accessors for the
server's custom middlewares. Every mutating accessor marks the document
as modified so callers only rewrite files that actually changed.

Usage:
    config = UI5Config.new_instance(editor.read(ui5_yaml_path))
    proxy = config.find_custom_middleware(FIORI_TOOLS_PROXY)
    if config.modified:
        editor.write(ui5_yaml_path, config.to_string())
"""

import copy
from typing import Any, Dict, List, Optional

import yaml

from odata_service_writer.errors import MiddlewareNotFound, UI5ConfigError, YamlErrorCode

FIORI_TOOLS_PROXY = "fiori-tools-proxy"
MOCKSERVER = "sap-fe-mockserver"


class _IndentedDumper(yaml.SafeDumper):
    """Indent block sequences below their parent key."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


class UI5Config:
    """A ui5*.yaml document."""

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self.document = document if document is not None else {}
        self.modified = False

    @classmethod
    def new_instance(cls, text: str) -> "UI5Config":
        """Parse YAML text. Empty text gives an empty document."""
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise UI5ConfigError(f"Invalid YAML: {e}", YamlErrorCode.MALFORMED) from e
        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise UI5ConfigError(
                f"Expected a mapping at document root, got {type(document).__name__}",
                YamlErrorCode.MALFORMED,
            )
        return cls(document)

    def to_string(self) -> str:
        if not self.document:
            return ""
        return yaml.dump(
            self.document,
            Dumper=_IndentedDumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            width=4096,
        )

    def get_webapp_path(self) -> Optional[str]:
        """Return resources.configuration.paths.webapp if configured."""
        resources = self.document.get("resources") or {}
        paths = (resources.get("configuration") or {}).get("paths") or {}
        return paths.get("webapp")

    # -------------------------------------------------------------------------
    # Custom middleware accessors
    # -------------------------------------------------------------------------

    def _custom_middlewares(self, create: bool = False) -> List[Dict[str, Any]]:
        server = self.document.get("server")
        if not isinstance(server, dict):
            if not create:
                return []
            server = self.document["server"] = {}
        middlewares = server.get("customMiddleware")
        if not isinstance(middlewares, list):
            if not create:
                return []
            middlewares = server["customMiddleware"] = []
        return middlewares

    def find_custom_middleware(self, name: str) -> Optional[Dict[str, Any]]:
        for middleware in self._custom_middlewares():
            if isinstance(middleware, dict) and middleware.get("name") == name:
                return middleware
        return None

    def get_middleware_configuration(self, name: str) -> Dict[str, Any]:
        """Return the configuration mapping of a middleware, creating an empty one."""
        middleware = self.find_custom_middleware(name)
        if middleware is None:
            raise MiddlewareNotFound(name)
        configuration = middleware.get("configuration")
        if not isinstance(configuration, dict):
            configuration = middleware["configuration"] = {}
            self.modified = True
        return configuration

    def add_custom_middleware(self, middleware: Dict[str, Any]) -> "UI5Config":
        self._custom_middlewares(create=True).append(copy.deepcopy(middleware))
        self.modified = True
        return self

    def update_custom_middleware(self, middleware: Dict[str, Any]) -> "UI5Config":
        """Replace the middleware with the same name, or add it."""
        middlewares = self._custom_middlewares(create=True)
        for index, existing in enumerate(middlewares):
            if isinstance(existing, dict) and existing.get("name") == middleware.get("name"):
                if existing != middleware:
                    middlewares[index] = copy.deepcopy(middleware)
                    self.modified = True
                return self
        return self.add_custom_middleware(middleware)

    def mark_modified(self) -> None:
        self.modified = True

    # -------------------------------------------------------------------------
    # Well-known middlewares
    # -------------------------------------------------------------------------

    def add_fiori_tools_proxy_middleware(
        self,
        backend: Optional[List[Dict[str, Any]]] = None,
        ignore_cert_error: bool = False,
        ui5_url: str = "https://ui5.sap.com",
        after_middleware: str = "compression",
    ) -> "UI5Config":
        configuration: Dict[str, Any] = {
            "ignoreCertError": ignore_cert_error,
            "ui5": {"path": ["/resources", "/test-resources"], "url": ui5_url},
        }
        if backend:
            configuration["backend"] = backend
        return self.add_custom_middleware({
            "name": FIORI_TOOLS_PROXY,
            "afterMiddleware": after_middleware,
            "configuration": configuration,
        })

    def add_mock_server_middleware(
        self,
        services: Optional[List[Dict[str, Any]]] = None,
        annotations: Optional[List[Dict[str, Any]]] = None,
        mount_path: str = "/",
    ) -> "UI5Config":
        return self.add_custom_middleware({
            "name": MOCKSERVER,
            "beforeMiddleware": "csrfProtection",
            "configuration": {
                "mountPath": mount_path,
                "services": list(services or []),
                "annotations": list(annotations or []),
            },
        })
