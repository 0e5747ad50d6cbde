"""
Service descriptor types.

An OData service is added to a project either as EDMX (metadata and
annotations are standalone XML documents with their own manifest entries)
or as CDS (annotations are merged into CDS source files). Both variants
share the fields used for manifest.json and ui5*.yaml updates and answer
the same questions about what they contribute to each artifact.

Usage:
    service = OdataService.from_dict({
        "url": "https://services.odata.org",
        "path": "/V2/Northwind/Northwind.svc",
        "version": "2",
    })
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple
from urllib.parse import quote

MAIN_SERVICE = "mainService"

ANNOTATION_CATALOG_PATH = (
    "/sap/opu/odata/IWFND/CATALOGSERVICE;v=2/"
    "Annotations(TechnicalName='{name}',Version='0001')/$value/"
)

# Characters left unescaped by JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"


class OdataVersion(str, Enum):
    V2 = "2"
    V4 = "4"


class ServiceType(str, Enum):
    EDMX = "edmx"
    CDS = "cds"


def default_preview_path(path: Optional[str]) -> str:
    """Return the first segment of a service path, e.g. /sap/odata/x/ -> /sap."""
    segments = [segment for segment in (path or "").split("/") if segment]
    return f"/{segments[0]}" if segments else "/"


def _as_version(value: Any) -> OdataVersion:
    if value is None:
        return OdataVersion.V2
    if isinstance(value, str):
        return OdataVersion(value)
    return OdataVersion(str(value))


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


@dataclass
class EdmxAnnotationsInfo:
    """Annotation document of an EDMX service, fetched from the annotation catalog."""

    technical_name: str
    xml: Optional[str] = None
    name: Optional[str] = None

    @property
    def key(self) -> str:
        """Data source name used in manifest.json and for the local file."""
        return self.name or self.technical_name

    @property
    def catalog_path(self) -> str:
        return ANNOTATION_CATALOG_PATH.format(
            name=quote(self.technical_name, safe=_URI_COMPONENT_SAFE)
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EdmxAnnotationsInfo":
        technical_name = data.get("technicalName") or data.get("name")
        return cls(technical_name=technical_name, xml=data.get("xml"), name=data.get("name"))


@dataclass
class CdsAnnotationsInfo:
    """CDS annotations to be merged into the CAP project's source files."""

    cds_file_contents: str
    project_path: str
    project_name: str
    app_path: Optional[str] = None
    name: Optional[str] = None

    @property
    def key(self) -> str:
        return self.name or self.project_name

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CdsAnnotationsInfo":
        return cls(
            cds_file_contents=data.get("cdsFileContents", ""),
            project_path=data.get("projectPath", ""),
            project_name=data.get("projectName", ""),
            app_path=data.get("appPath"),
            name=data.get("name"),
        )


@dataclass
class OdataService(ABC):
    """Common part of a service descriptor; use one of the two variants."""

    url: str
    path: Optional[str] = None
    version: OdataVersion = OdataVersion.V2
    name: Optional[str] = None
    model: Optional[str] = None
    client: Optional[str] = None
    destination: Optional[str] = None
    preview_settings: Dict[str, Any] = field(default_factory=dict)
    ignore_cert_error: bool = False

    type: ClassVar[ServiceType]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OdataService":
        """Build the matching variant from a camelCase descriptor dictionary."""
        service_type = ServiceType(data.get("type") or ServiceType.EDMX.value)
        variant = EdmxOdataService if service_type is ServiceType.EDMX else CdsOdataService
        return variant._from_dict(data)

    @classmethod
    def _common_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        destination = data.get("destination")
        if isinstance(destination, dict):
            destination = destination.get("name")
        client = data.get("client")
        if client is not None:
            client = str(client)
        return {
            "url": data.get("url", ""),
            "path": data.get("path"),
            "version": _as_version(data.get("version")),
            "name": data.get("name"),
            "model": data.get("model"),
            "client": client,
            "destination": destination,
            "preview_settings": dict(data.get("previewSettings") or {}),
            "ignore_cert_error": bool(data.get("ignoreCertError", False)),
        }

    @classmethod
    @abstractmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "OdataService":
        """Build this variant from a camelCase descriptor dictionary."""
        pass

    @property
    def annotation_list(self) -> List[Any]:
        return []

    @property
    def has_local_payload(self) -> bool:
        return False

    @abstractmethod
    def manifest_annotation_entries(self, local_dir: str) -> Dict[str, Dict[str, Any]]:
        """ODataAnnotation data sources this service adds to manifest.json."""
        pass

    @abstractmethod
    def middleware_annotation_paths(self) -> List[str]:
        """Annotation URL paths served by the mock server for this service."""
        pass

    def backend_entry(self) -> Dict[str, Any]:
        """Backend record for the fiori-tools-proxy middleware."""
        entry = dict(self.preview_settings)
        entry.setdefault("path", default_preview_path(self.path))
        entry.setdefault("url", self.url)
        if self.client:
            entry["client"] = self.client
        if self.destination:
            entry["destination"] = self.destination
        return entry


@dataclass
class EdmxOdataService(OdataService):
    metadata: Optional[str] = None
    annotations: List[EdmxAnnotationsInfo] = field(default_factory=list)
    local_annotations_name: Optional[str] = None

    type: ClassVar[ServiceType] = ServiceType.EDMX

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "EdmxOdataService":
        return cls(
            **cls._common_fields(data),
            metadata=data.get("metadata"),
            annotations=[
                EdmxAnnotationsInfo.from_dict(item) for item in _as_list(data.get("annotations"))
            ],
            local_annotations_name=data.get("localAnnotationsName"),
        )

    @property
    def annotation_list(self) -> List[EdmxAnnotationsInfo]:
        return self.annotations

    @property
    def has_local_payload(self) -> bool:
        return bool(self.metadata)

    def manifest_annotation_entries(self, local_dir: str) -> Dict[str, Dict[str, Any]]:
        return {
            annotation.key: {
                "uri": annotation.catalog_path,
                "type": "ODataAnnotation",
                "settings": {"localUri": f"{local_dir}{annotation.key}.xml"},
            }
            for annotation in self.annotations
        }

    def middleware_annotation_paths(self) -> List[str]:
        return [annotation.catalog_path for annotation in self.annotations]


@dataclass
class CdsOdataService(OdataService):
    annotations: List[CdsAnnotationsInfo] = field(default_factory=list)

    type: ClassVar[ServiceType] = ServiceType.CDS

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "CdsOdataService":
        return cls(
            **cls._common_fields(data),
            annotations=[
                CdsAnnotationsInfo.from_dict(item) for item in _as_list(data.get("annotations"))
            ],
        )

    @property
    def annotation_list(self) -> List[CdsAnnotationsInfo]:
        return self.annotations

    def manifest_annotation_entries(self, local_dir: str) -> Dict[str, Dict[str, Any]]:
        # CDS annotations live in the CAP sources, not in manifest.json
        return {}

    def middleware_annotation_paths(self) -> List[str]:
        return []


@dataclass
class ProjectPaths:
    """Locations of the project files found above a base path."""

    package_json: Optional[str] = None
    ui5_yaml: Optional[str] = None
    ui5_local_yaml: Optional[str] = None
    ui5_mock_yaml: Optional[str] = None

    def is_complete(self) -> bool:
        return all((self.package_json, self.ui5_yaml, self.ui5_local_yaml, self.ui5_mock_yaml))


@dataclass
class LocalFilePlan:
    """
    Where the local copies of a service's payload files live.

    All paths are relative to the webapp folder, exactly as stored in the
    manifest's localUri settings.
    """

    metadata: str
    annotations: Dict[str, str] = field(default_factory=dict)
    migrated: bool = False
    moved: List[Tuple[str, str]] = field(default_factory=list)
