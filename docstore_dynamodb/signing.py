"""
AWS Signature Version 4 request signing.

Implements the canonical request / string-to-sign / signing-key flow
described in the AWS SigV4 documentation on top of a small streaming hash
primitive, so that requests can be signed without an AWS SDK.

Example:
    >>> signer = SignatureV4(service="dynamodb", region="us-east-1", credentials=creds)
    >>> headers = signer.sign(SignableRequest(
    ...     method="POST",
    ...     hostname="dynamodb.us-east-1.amazonaws.com",
    ...     path="/",
    ...     headers={"host": "dynamodb.us-east-1.amazonaws.com"},
    ...     body="{}",
    ... ))
"""

import hashlib
import hmac
import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union
from urllib.parse import quote

from .credentials import Credentials

ALGORITHM = "AWS4-HMAC-SHA256"
AMZ_DATE_HEADER = "x-amz-date"
TOKEN_HEADER = "x-amz-security-token"
AUTH_HEADER = "authorization"
SHA256_HEADER = "x-amz-content-sha256"
KEY_TYPE_IDENTIFIER = "aws4_request"

# Headers that proxies and clients are known to rewrite; never signed.
UNSIGNABLE_HEADERS = frozenset({
    "authorization",
    "cache-control",
    "connection",
    "expect",
    "from",
    "keep-alive",
    "max-forwards",
    "pragma",
    "referer",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "user-agent",
    "x-amzn-trace-id",
})

SourceData = Union[str, bytes, bytearray, memoryview]


def to_bytes(data: SourceData) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


@dataclass
class HashState:
    """
    Accumulated state of one hash computation.

    Plain SHA-256 when ``secret`` is None, HMAC-SHA-256 keyed with
    ``secret`` otherwise.
    """

    secret: Optional[bytes] = None
    hasher: Any = field(init=False)

    def __post_init__(self) -> None:
        self.hasher = self._new_hasher()

    def _new_hasher(self) -> Any:
        if self.secret:
            return hmac.new(self.secret, digestmod=hashlib.sha256)
        return hashlib.sha256()

    def update(self, chunk: SourceData) -> None:
        self.hasher.update(to_bytes(chunk))

    def digest(self) -> bytes:
        return self.hasher.digest()

    def reset(self) -> None:
        self.hasher = self._new_hasher()


class Sha256:
    """
    Streaming SHA-256 / HMAC-SHA-256 primitive used by the signer.

    Args:
        secret: HMAC key; when omitted the primitive computes a plain digest
    """

    def __init__(self, secret: Optional[SourceData] = None):
        self.state = HashState(to_bytes(secret) if secret else None)

    def update(self, chunk: SourceData) -> None:
        self.state.update(chunk)

    def digest(self) -> bytes:
        return self.state.digest()

    def reset(self) -> None:
        self.state.reset()


HashFactory = Callable[..., Sha256]


@dataclass
class SignableRequest:
    """An outgoing HTTP request as seen by the signer."""

    method: str
    hostname: str
    path: str = "/"
    query: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: SourceData = b""


def format_amz_date(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def escape_uri(value: str, safe: str = "") -> str:
    """Percent-encode everything except the RFC 3986 unreserved characters."""
    return quote(value, safe=safe + "~")


class SignatureV4:
    """
    AWS Signature Version 4 signer.

    One instance signs requests for a single service, region and set of
    credentials. Hash primitives come from the ``sha256`` factory: keyed
    ones for the HMAC chain, and a single unkeyed one per signature that is
    reset between digests.
    """

    def __init__(
        self,
        service: str,
        region: str,
        credentials: Credentials,
        sha256: HashFactory = Sha256,
    ):
        self.service = service
        self.region = region
        self.credentials = credentials
        self.sha256 = sha256

    def sign(
        self,
        request: SignableRequest,
        signing_date: Optional[datetime] = None,
    ) -> dict[str, str]:
        """
        Sign a request.

        Args:
            request: Request to sign; must include a ``host`` header
            signing_date: Signing time (defaults to now, UTC)

        Returns:
            The request headers plus x-amz-date, x-amz-security-token (when a
            session token is set) and authorization. These are the headers
            that must be sent.
        """
        amz_date = format_amz_date(signing_date or datetime.now(timezone.utc))
        short_date = amz_date[:8]
        scope = f"{short_date}/{self.region}/{self.service}/{KEY_TYPE_IDENTIFIER}"

        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in (AMZ_DATE_HEADER, TOKEN_HEADER, AUTH_HEADER)
        }
        headers[AMZ_DATE_HEADER] = amz_date
        if self.credentials.session_token:
            headers[TOKEN_HEADER] = self.credentials.session_token

        # One unkeyed primitive serves both the payload and the canonical request digests.
        digest = self.sha256()
        canonical_headers = self.canonical_headers(headers)
        signed_headers = ";".join(sorted(canonical_headers))
        canonical_request = self.canonical_request(
            request, canonical_headers, signed_headers, self.payload_hash(request, headers, digest)
        )
        string_to_sign = self.string_to_sign(amz_date, scope, canonical_request, digest)
        signature = self.hmac(self.signing_key(short_date), string_to_sign).hex()

        headers[AUTH_HEADER] = (
            f"{ALGORITHM} Credential={self.credentials.access_key_id}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )
        return headers

    def canonical_headers(self, headers: dict[str, str]) -> dict[str, str]:
        canonical = {}
        for name, value in headers.items():
            lowered = name.lower()
            if lowered in UNSIGNABLE_HEADERS:
                continue
            canonical[lowered] = " ".join(str(value).split())
        return canonical

    def canonical_request(
        self,
        request: SignableRequest,
        canonical_headers: dict[str, str],
        signed_headers: str,
        payload_hash: str,
    ) -> str:
        header_lines = "".join(
            f"{name}:{canonical_headers[name]}\n" for name in sorted(canonical_headers)
        )
        return "\n".join([
            request.method.upper(),
            self.canonical_path(request.path),
            self.canonical_query(request.query),
            header_lines,
            signed_headers,
            payload_hash,
        ])

    def canonical_path(self, path: str) -> str:
        if not path or path == "/":
            return "/"
        normalized = posixpath.normpath(path)
        if normalized in (".", "//"):
            normalized = "/"
        if not normalized.startswith("/"):
            normalized = "/" + normalized
        if path.endswith("/") and not normalized.endswith("/"):
            normalized += "/"
        return escape_uri(normalized, safe="/")

    def canonical_query(self, query: dict[str, str]) -> str:
        pairs = sorted(
            (escape_uri(key), escape_uri(str(value)))
            for key, value in query.items()
            if key.lower() != "x-amz-signature"
        )
        return "&".join(f"{key}={value}" for key, value in pairs)

    def payload_hash(
        self, request: SignableRequest, headers: dict[str, str], digest: Sha256
    ) -> str:
        for name, value in headers.items():
            if name.lower() == SHA256_HEADER:
                return value
        return self.hash(digest, request.body).hex()

    def string_to_sign(
        self, amz_date: str, scope: str, canonical_request: str, digest: Sha256
    ) -> str:
        return "\n".join([
            ALGORITHM,
            amz_date,
            scope,
            self.hash(digest, canonical_request).hex(),
        ])

    def signing_key(self, short_date: str) -> bytes:
        key = self.hmac(f"AWS4{self.credentials.secret_access_key}", short_date)
        for part in (self.region, self.service, KEY_TYPE_IDENTIFIER):
            key = self.hmac(key, part)
        return key

    def hash(self, primitive: Sha256, data: SourceData) -> bytes:
        primitive.reset()
        primitive.update(data)
        return primitive.digest()

    def hmac(self, secret: SourceData, data: SourceData) -> bytes:
        primitive = self.sha256(secret)
        primitive.update(data)
        return primitive.digest()
