"""
DynamoDB document store driver.

Partitioned JSON documents with optimistic concurrency, lazy table creation
and range scans, spoken over DynamoDB's signed HTTP API without an AWS SDK.
"""

from .adapter import Record
from .config import DriverConfig
from .credentials import Credentials, ProfileFileCache, resolve_credentials
from .driver import Connection, Context, Driver
from .errors import (
    ConflictError,
    ConnectionClosedError,
    CredentialsError,
    DocumentStoreError,
    IncompleteCredentialsError,
    MissingSettingError,
    NotFoundError,
    ProfileNotFoundError,
    RemoteCallError,
    RemoteErrorKind,
    RetriesExhaustedError,
)
from .ranges import Between, KeyRange, Prefix
from .remote import RemoteCaller
from .signing import SignableRequest, SignatureV4, Sha256

__all__ = [
    "Driver",
    "Connection",
    "Context",
    "DriverConfig",
    "Record",
    "Credentials",
    "ProfileFileCache",
    "resolve_credentials",
    "KeyRange",
    "Prefix",
    "Between",
    "RemoteCaller",
    "SignatureV4",
    "SignableRequest",
    "Sha256",
    "DocumentStoreError",
    "NotFoundError",
    "ConflictError",
    "RetriesExhaustedError",
    "ConnectionClosedError",
    "CredentialsError",
    "ProfileNotFoundError",
    "IncompleteCredentialsError",
    "MissingSettingError",
    "RemoteCallError",
    "RemoteErrorKind",
]

__version__ = "0.1.0"
