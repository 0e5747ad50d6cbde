"""
odata-service-writer - keep OData services of a UI5 application in sync.

Adds or removes an OData service in manifest.json, the ui5*.yaml
middlewares and the local metadata and annotation copies of a project.
"""

__version__ = "0.1.0"

from odata_service_writer.data import enhance_data, get_annotation_namespaces
from odata_service_writer.editor import ProjectEditor
from odata_service_writer.errors import (
    DescriptorError,
    MiddlewareNotFound,
    RequiredProjectFileNotFound,
    RequiredProjectPropertyNotFound,
    ServiceWriterError,
    UI5ConfigError,
    YamlErrorCode,
)
from odata_service_writer.project import find_project_files
from odata_service_writer.types import (
    CdsAnnotationsInfo,
    CdsOdataService,
    EdmxAnnotationsInfo,
    EdmxOdataService,
    OdataService,
    OdataVersion,
    ProjectPaths,
    ServiceType,
)
from odata_service_writer.writer import generate, generate_mockserver_config, remove

__all__ = [
    "CdsAnnotationsInfo",
    "CdsOdataService",
    "DescriptorError",
    "EdmxAnnotationsInfo",
    "EdmxOdataService",
    "MiddlewareNotFound",
    "OdataService",
    "OdataVersion",
    "ProjectEditor",
    "ProjectPaths",
    "RequiredProjectFileNotFound",
    "RequiredProjectPropertyNotFound",
    "ServiceType",
    "ServiceWriterError",
    "UI5ConfigError",
    "YamlErrorCode",
    "enhance_data",
    "find_project_files",
    "generate",
    "generate_mockserver_config",
    "get_annotation_namespaces",
    "remove",
]
