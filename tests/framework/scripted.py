"""
Scripted DynamoDB responses for exercising error paths.

Each request pops the next canned response, so a test can describe exactly
which errors DynamoDB reports and in what order.
"""

import json
from typing import Any

import httpx

from .fake_dynamodb import aws_error


def ok(body: Any = None) -> httpx.Response:
    return httpx.Response(200, json=body if body is not None else {})


class DynamoDBScript:
    """Replays canned responses and records the requests that consumed them."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.headers.get('x-amz-target')}")
        return self.responses.pop(0)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def operations(self) -> list[str]:
        return [
            request.headers.get("x-amz-target", "").rsplit(".", 1)[-1]
            for request in self.requests
        ]

    def payload(self, index: int) -> dict[str, Any]:
        result: dict[str, Any] = json.loads(self.requests[index].content)
        return result


__all__ = ["DynamoDBScript", "aws_error", "ok"]
