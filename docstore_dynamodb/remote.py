"""
Signed JSON calls to AWS services.

Builds the request URL, signs it with SigV4, sends it with httpx and decodes
the JSON response. Non-2xx responses raise RemoteCallError with the raw body,
leaving service-specific error interpretation to the caller.
"""

import json
import logging
from typing import Any, Optional
from urllib.parse import parse_qsl, urlsplit

import httpx

from .credentials import Credentials
from .errors import MissingSettingError, RemoteCallError
from .signing import SignableRequest, SignatureV4

logger = logging.getLogger(__name__)

DYNAMODB_SERVICE = "dynamodb"
DYNAMODB_TARGET_PREFIX = "DynamoDB_20120810"


class BorrowedTransport(httpx.AsyncBaseTransport):
    """
    Delegates to a caller-owned transport without closing it.

    Lets each call open and close its own client while the injected
    transport stays usable for the next call.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport):
        self.transport = transport

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.transport.handle_async_request(request)

    async def aclose(self) -> None:
        pass


class RemoteCaller:
    """
    Sends signed requests to AWS service endpoints.

    A new httpx.AsyncClient is opened per call; no sockets are kept between
    calls.

    Args:
        endpoint_url: Overrides https://<service>.<region>.amazonaws.com
        transport: httpx transport (e.g. httpx.MockTransport in tests)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        self.transport = transport
        self.timeout = timeout

    def url_for(self, service: str, region: str, path: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url}{path}"
        return f"https://{service}.{region}.amazonaws.com{path}"

    async def call(
        self,
        credentials: Credentials,
        method: str,
        service: str,
        path: str,
        body: str,
        content_type: str,
        target: Optional[str] = None,
    ) -> Any:
        """
        Sign and send a request, returning the decoded JSON response.

        Args:
            credentials: Credentials and region to sign with
            method: HTTP method
            service: AWS service name used for the endpoint and signing scope
            path: Request path, optionally with a query string
            body: Serialized request body
            content_type: Content-Type of the body
            target: X-Amz-Target operation header, for services that dispatch on it

        Returns:
            Decoded JSON response body

        Raises:
            RemoteCallError: On a non-2xx response
            httpx.HTTPError: On transport failures
        """
        url = self.url_for(service, credentials.region, path)
        parts = urlsplit(url)
        headers = {
            "host": parts.netloc,
            "content-type": content_type,
            "accept": "application/json",
        }
        if target:
            headers["X-Amz-Target"] = target

        signer = SignatureV4(service=service, region=credentials.region, credentials=credentials)
        signed_headers = signer.sign(SignableRequest(
            method=method,
            hostname=parts.netloc,
            path=parts.path or "/",
            query=dict(parse_qsl(parts.query, keep_blank_values=True)),
            headers=headers,
            body=body,
        ))

        transport = None if self.transport is None else BorrowedTransport(self.transport)
        async with httpx.AsyncClient(transport=transport, timeout=self.timeout) as client:
            response = await client.request(
                method,
                url,
                headers=signed_headers,
                content=body.encode("utf-8"),
            )

        if not response.is_success:
            logger.debug(f"{target or method} failed with HTTP {response.status_code}")
            raise RemoteCallError(
                f"Error fetching {service}",
                status_code=response.status_code,
                body=response.text,
                target=target,
            )
        if not response.content:
            return {}
        return response.json()

    async def db_request(
        self,
        credentials: Credentials,
        operation: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Call a DynamoDB JSON API operation.

        Args:
            credentials: Credentials and region
            operation: Operation name, e.g. "PutItem"
            payload: Request parameters

        Returns:
            Decoded response
        """
        for name, value in (
            ("AWS_REGION", credentials.region),
            ("AWS_ACCESS_KEY_ID", credentials.access_key_id),
            ("AWS_SECRET_ACCESS_KEY", credentials.secret_access_key),
        ):
            if not value:
                raise MissingSettingError(name)

        result: dict[str, Any] = await self.call(
            credentials,
            "POST",
            DYNAMODB_SERVICE,
            "/",
            json.dumps(payload),
            "application/json",
            f"{DYNAMODB_TARGET_PREFIX}.{operation}",
        )
        return result
