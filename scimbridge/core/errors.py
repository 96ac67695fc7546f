"""
Error taxonomy for the connector.

Classification of an HTTP response happens once, right after the call, in
``scimbridge.scim.rest``. Everything above it treats these errors as final
and only adds context before re-raising.
"""

from typing import Optional


class ConnectorError(Exception):
    """Base class of every error raised by the connector."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ConnectionFailure(ConnectorError):
    """Authentication or transport level failure. Never retried."""


class InvalidInput(ConnectorError):
    """Malformed attributes, schema violation or a classified bad request."""


class InvalidAttributeValueError(InvalidInput):
    """An attribute set does not satisfy the schema definition."""

    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(message)
        self.name = name


class ConfigurationError(InvalidInput):
    """Connector settings are missing or inconsistent."""


class AlreadyExistsError(ConnectorError):
    """Create-time conflict."""


class UnknownTargetError(ConnectorError):
    """An update, patch or delete addressed a nonexistent identifier."""

    def __init__(self, uid: str, object_class: str, message: Optional[str] = None):
        super().__init__(message or f"{object_class} '{uid}' does not exist")
        self.uid = uid
        self.object_class = object_class


class UpstreamFailure(ConnectorError):
    """Malformed response, unexpected status or classified server error."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class InvalidDeclarationError(Exception):
    """A schema definition was declared inconsistently."""

    message: str

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
