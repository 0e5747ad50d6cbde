"""
Errors raised while writing OData services into a UI5 project.

Missing project files and properties abort before anything is staged.
YAML errors carry a structured code so callers can recover from a missing
middleware without inspecting message text.
"""

from enum import Enum


class ServiceWriterError(Exception):
    """Base class for all odata-service-writer errors."""


class RequiredProjectFileNotFound(ServiceWriterError):
    """Raised when a mandatory project file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Required project file not found: {path}")


class RequiredProjectPropertyNotFound(ServiceWriterError):
    """Raised when a mandatory property is missing in a project file."""

    def __init__(self, property: str, path: str):
        self.property = property
        self.path = path
        super().__init__(f"Required property {property} not found in {path}")


class YamlErrorCode(Enum):
    NODE_NOT_FOUND = "node-not-found"
    MALFORMED = "malformed"


class UI5ConfigError(ServiceWriterError):
    """Raised by the ui5*.yaml document model."""

    def __init__(self, message: str, code: YamlErrorCode):
        self.code = code
        super().__init__(message)


class MiddlewareNotFound(UI5ConfigError):
    """Raised when a named custom middleware is not configured."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Could not find {name}", YamlErrorCode.NODE_NOT_FOUND)


class DescriptorError(ServiceWriterError):
    """Raised when a service descriptor file is invalid."""
