"""
In-memory DynamoDB emulation for httpx.MockTransport.

Understands exactly the operations and expressions the driver emits and
verifies every request signature with botocore's SigV4 implementation, so a
signing mistake fails the call the same way real DynamoDB would.
"""

import hmac
import json
import re
from typing import Any, Optional

import httpx
from botocore.auth import SigV4Auth  # type: ignore[import-untyped]
from botocore.awsrequest import AWSRequest  # type: ignore[import-untyped]
from botocore.credentials import Credentials as BotoCredentials  # type: ignore[import-untyped]

ERROR_NAMESPACE = "com.amazonaws.dynamodb.v20120810"

AUTHORIZATION_PATTERN = re.compile(
    r"AWS4-HMAC-SHA256 Credential=(?P<access_key>[^/]+)/(?P<date>\d{8})/(?P<region>[^/]+)/"
    r"(?P<service>[^/]+)/aws4_request, SignedHeaders=(?P<signed>[^,]+), "
    r"Signature=(?P<signature>[0-9a-f]{64})$"
)


def aws_error(error_type: str, message: str = "", status_code: int = 400) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"__type": f"{ERROR_NAMESPACE}#{error_type}", "message": message or error_type},
    )


def signature_is_valid(request: httpx.Request, secret_key: str) -> bool:
    """Recompute the request signature with botocore and compare."""
    match = AUTHORIZATION_PATTERN.match(request.headers.get("authorization", ""))
    if not match:
        return False
    signed = match.group("signed").split(";")
    if any(name not in request.headers for name in signed):
        return False

    aws_request = AWSRequest(
        method=request.method,
        url=str(request.url),
        data=request.content,
        headers={name: request.headers[name] for name in signed},
    )
    aws_request.context["timestamp"] = request.headers["x-amz-date"]
    signer = SigV4Auth(
        BotoCredentials(match.group("access_key"), secret_key),
        match.group("service"),
        match.group("region"),
    )
    canonical_request = signer.canonical_request(aws_request)
    string_to_sign = signer.string_to_sign(aws_request, canonical_request)
    expected = signer.signature(string_to_sign, aws_request)
    return hmac.compare_digest(expected, match.group("signature"))


class FakeDynamoDB:
    """
    Minimal DynamoDB for driver tests.

    Query results are cut into pages of ``page_size`` items, standing in for
    DynamoDB's 1 MB pages, so pagination is exercised without large data.

    Args:
        secret_key: Secret used to verify request signatures
        page_size: Maximum items per Query page
    """

    def __init__(self, secret_key: str, page_size: int = 2):
        self.secret_key = secret_key
        self.page_size = page_size
        self.tables: dict[str, dict[str, Any]] = {}
        self.operations: list[str] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        if not signature_is_valid(request, self.secret_key):
            return aws_error("InvalidSignatureException", status_code=403)

        operation = request.headers.get("x-amz-target", "").rsplit(".", 1)[-1]
        self.operations.append(operation)
        handler = getattr(self, f"op_{operation}", None)
        if handler is None:
            return aws_error("UnknownOperationException")
        payload = json.loads(request.content)
        result = handler(payload)
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)

    def _items(self, payload: dict[str, Any]) -> Optional[dict[tuple[str, str], dict[str, Any]]]:
        table = self.tables.get(payload["TableName"])
        return None if table is None else table["items"]

    @staticmethod
    def _identity(item: dict[str, Any]) -> tuple[str, str]:
        return item["partition"]["S"], item["key"]["S"]

    @staticmethod
    def _revision_matches(item: Optional[dict[str, Any]], payload: dict[str, Any]) -> bool:
        expected = payload["ExpressionAttributeValues"][":oldRevision"]["S"]
        return item is not None and item.get("revision", {}).get("S") == expected

    def op_CreateTable(self, payload: dict[str, Any]) -> Any:
        name = payload["TableName"]
        if name in self.tables:
            return aws_error("ResourceInUseException", f"Table already exists: {name}")
        self.tables[name] = {"definition": payload, "items": {}}
        return {"TableDescription": {"TableName": name, "TableStatus": "ACTIVE"}}

    def op_PutItem(self, payload: dict[str, Any]) -> Any:
        items = self._items(payload)
        if items is None:
            return aws_error("ResourceNotFoundException")
        identity = self._identity(payload["Item"])
        if "ConditionExpression" in payload and identity in items:
            return aws_error("ConditionalCheckFailedException")
        items[identity] = payload["Item"]
        return {}

    def op_GetItem(self, payload: dict[str, Any]) -> Any:
        items = self._items(payload)
        if items is None:
            return aws_error("ResourceNotFoundException")
        item = items.get(self._identity(payload["Key"]))
        return {"Item": item} if item else {}

    def op_UpdateItem(self, payload: dict[str, Any]) -> Any:
        items = self._items(payload)
        if items is None:
            return aws_error("ResourceNotFoundException")
        identity = self._identity(payload["Key"])
        item = items.get(identity)
        if not self._revision_matches(item, payload):
            return aws_error("ConditionalCheckFailedException")
        values = payload["ExpressionAttributeValues"]
        assert item is not None
        items[identity] = {
            **item,
            "seq": {"N": str(int(item["seq"]["N"]) + int(values[":one"]["N"]))},
            "revision": values[":newRevision"],
            "updated": values[":now"],
            "document": values[":document"],
        }
        return {}

    def op_DeleteItem(self, payload: dict[str, Any]) -> Any:
        items = self._items(payload)
        if items is None:
            return aws_error("ResourceNotFoundException")
        identity = self._identity(payload["Key"])
        if "ConditionExpression" in payload and not self._revision_matches(items.get(identity), payload):
            return aws_error("ConditionalCheckFailedException")
        items.pop(identity, None)
        return {}

    def op_Query(self, payload: dict[str, Any]) -> Any:
        items = self._items(payload)
        if items is None:
            return aws_error("ResourceNotFoundException")
        values = payload["ExpressionAttributeValues"]
        partition = values[":p"]["S"]
        condition = payload["KeyConditionExpression"]

        def selected(key: str) -> bool:
            if ":withPrefix" in values:
                return key.startswith(values[":withPrefix"]["S"])
            if "BETWEEN" in condition:
                return values[":after"]["S"] <= key <= values[":before"]["S"]
            if ":after" in values:
                return key >= values[":after"]["S"]
            if ":before" in values:
                return key < values[":before"]["S"]
            return True

        keys = sorted(key for (p, key) in items if p == partition and selected(key))
        start = payload.get("ExclusiveStartKey")
        if start:
            keys = [key for key in keys if key > start["key"]["S"]]
        limit = min(payload.get("Limit", self.page_size), self.page_size)
        page = keys[:limit]
        result: dict[str, Any] = {
            "Items": [items[(partition, key)] for key in page],
            "Count": len(page),
            "ScannedCount": len(page),
        }
        if len(keys) > limit:
            result["LastEvaluatedKey"] = {
                "partition": {"S": partition},
                "key": {"S": page[-1]},
            }
        return result
