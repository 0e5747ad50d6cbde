"""
Configuration loading.

Project settings come from an optional .odata-service-writer.yaml next to
the project's package.json; service descriptors for the CLI come from
YAML or JSON files validated against schemas/service.schema.json.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

import jsonschema
import yaml

from odata_service_writer.errors import DescriptorError
from odata_service_writer.types import OdataService

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".odata-service-writer.yaml"
SCHEMA_PATH = Path(__file__).parent / "schemas" / "service.schema.json"


def load_writer_config(project_root: Union[str, Path]) -> Dict[str, Any]:
    """
    Load .odata-service-writer.yaml configuration file.

    Args:
        project_root: Project root path

    Returns:
        Parsed configuration dict, or empty dict if file doesn't exist

    Example config:
        proxy:
          ignore_cert_error: true
          ui5_url: https://ui5.sap.com
        mockserver:
          generate_mock_data: false
        metadata:
          indent: 2
    """
    config_path = Path(project_root) / CONFIG_FILE_NAME

    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
            return config if isinstance(config, dict) else {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return {}


def _section(config: Dict[str, Any], name: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    section = dict(config.get(name) or {})
    for key, default_value in defaults.items():
        if key not in section:
            section[key] = default_value
    return section


def get_proxy_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Settings for newly created fiori-tools-proxy middlewares."""
    return _section(config, "proxy", {
        "ignore_cert_error": False,
        "ui5_url": "https://ui5.sap.com",
        "after_middleware": "compression",
    })


def get_mockserver_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Settings for the sap-fe-mockserver middleware."""
    return _section(config, "mockserver", {
        "mount_path": "/",
        "generate_mock_data": True,
    })


def get_metadata_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Settings for local metadata copies."""
    return _section(config, "metadata", {
        "indent": 4,
    })


def load_service_descriptor(path: Union[str, Path]) -> OdataService:
    """
    Load a service descriptor from a YAML or JSON file.

    Args:
        path: Descriptor file

    Returns:
        The EDMX or CDS service variant described by the file

    Raises:
        DescriptorError: If the file is missing, unparsable or fails validation
    """
    descriptor_path = Path(path)
    if not descriptor_path.exists():
        raise DescriptorError(f"Descriptor not found: {descriptor_path}")

    text = descriptor_path.read_text(encoding="utf-8")
    try:
        if descriptor_path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DescriptorError(f"Cannot parse {descriptor_path}: {e}") from e

    with open(SCHEMA_PATH) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as e:
        location = "/".join(str(part) for part in e.absolute_path) or "<root>"
        raise DescriptorError(f"{descriptor_path}: {location}: {e.message}") from e

    # metadata and annotation payloads may be given as paths relative to the descriptor
    if "metadataFile" in data:
        data["metadata"] = (descriptor_path.parent / data.pop("metadataFile")).read_text(
            encoding="utf-8"
        )
    annotations = data.get("annotations")
    for annotation in annotations if isinstance(annotations, list) else [annotations]:
        if isinstance(annotation, dict) and "xmlFile" in annotation:
            annotation["xml"] = (descriptor_path.parent / annotation.pop("xmlFile")).read_text(
                encoding="utf-8"
            )

    return OdataService.from_dict(data)
