"""
Error types for the DynamoDB document store driver.

Storage errors carry an HTTP-style ``status_code`` so that a caller building
a REST API on top of the driver can map them directly to responses.
"""

import json
from enum import Enum
from typing import Any, Optional


class DocumentStoreError(Exception):
    """Base class for errors surfaced by the storage driver."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(DocumentStoreError):
    """Requested record does not exist (including a table not yet created)."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ConflictError(DocumentStoreError):
    """Optimistic concurrency violation or duplicate identity."""

    status_code = 409

    def __init__(self, message: str = "Conflict"):
        super().__init__(message)


class RetriesExhaustedError(DocumentStoreError):
    """Raised when table provisioning retries hit the configured bound."""

    status_code = 503

    def __init__(self, message: str, last_error: Optional[Exception] = None):
        super().__init__(message)
        self.last_error = last_error


class ConnectionClosedError(DocumentStoreError):
    """Operation attempted on a closed connection."""

    pass


class CredentialsError(Exception):
    """Credentials could not be resolved."""

    pass


class ProfileNotFoundError(CredentialsError):
    """Neither the requested profile nor ``default`` exists in the credentials file."""

    pass


class IncompleteCredentialsError(CredentialsError):
    """Region, access key id or secret key is missing after all sources were consulted."""

    pass


class MissingSettingError(CredentialsError):
    """A credential field required to sign a request is missing."""

    def __init__(self, name: str):
        super().__init__(f"Missing {name}")
        self.name = name


class RemoteErrorKind(Enum):
    """DynamoDB error types the driver reacts to."""

    CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
    RESOURCE_NOT_FOUND = "ResourceNotFoundException"
    RESOURCE_IN_USE = "ResourceInUseException"
    UNKNOWN = "Unknown"

    @classmethod
    def from_body(cls, body: Optional[str]) -> "RemoteErrorKind":
        """
        Decode the error type from a DynamoDB error response body.

        DynamoDB reports errors as ``{"__type": "<namespace>#<Type>", ...}``.
        Anything that does not parse into a known type maps to UNKNOWN.

        Args:
            body: Raw response body text

        Returns:
            The matching error kind
        """
        if not body:
            return cls.UNKNOWN
        try:
            payload = json.loads(body)
        except ValueError:
            return cls.UNKNOWN
        if not isinstance(payload, dict):
            return cls.UNKNOWN
        error_type = payload.get("__type")
        if not isinstance(error_type, str):
            return cls.UNKNOWN
        name = error_type.rsplit("#", 1)[-1]
        for kind in cls:
            if kind is not cls.UNKNOWN and kind.value == name:
                return kind
        return cls.UNKNOWN


class RemoteCallError(Exception):
    """
    Non-2xx response from a remote AWS service.

    The HTTP status and the raw body are kept verbatim so that callers can
    inspect service-specific error details.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str,
        target: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(f"{message}: HTTP {status_code}")
        self.message = message
        self.status_code = status_code
        self.body = body
        self.target = target
        self.details = details

    @property
    def kind(self) -> RemoteErrorKind:
        """Error type decoded from the response body."""
        return RemoteErrorKind.from_body(self.body)
