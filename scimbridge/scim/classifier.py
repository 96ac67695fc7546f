"""
HTTP response classification.

The REST client never inspects status codes itself; it asks the injected
classifier which of the six outcomes a response represents.
"""

from abc import ABC, abstractmethod
from enum import Enum

import httpx


class Classification(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INVALID_REQUEST = "invalid_request"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    OK = "ok"
    SERVER_ERROR = "server_error"


class ErrorClassifier(ABC):
    """Maps an HTTP response to exactly one ``Classification``."""

    @abstractmethod
    def classify(self, response: httpx.Response) -> Classification:
        ...


class SCIMErrorClassifier(ErrorClassifier):
    """
    Status table for SCIM 2.0 directories.

    Error bodies look like:
        {"schemas": ["urn:ietf:params:scim:api:messages:2.0:Error"],
         "status": "409", "scimType": "uniqueness"}
    Only the status code is needed to classify; the body is kept by the
    client for error messages.
    """

    OK_STATUSES = frozenset({200, 201, 204})

    def classify(self, response: httpx.Response) -> Classification:
        code = response.status_code
        if code == 401:
            return Classification.UNAUTHENTICATED
        if code == 400:
            return Classification.INVALID_REQUEST
        if code == 409:
            return Classification.ALREADY_EXISTS
        if code == 404:
            return Classification.NOT_FOUND
        if code in self.OK_STATUSES:
            return Classification.OK
        # 5xx, and anything else the directory should not have sent
        return Classification.SERVER_ERROR
