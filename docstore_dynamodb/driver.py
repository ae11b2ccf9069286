"""
DynamoDB document store driver.

Provides partitioned key/value records with optimistic concurrency on top of
DynamoDB conditional writes:
- Revisions checked with condition expressions (compare-and-swap)
- Tables created lazily on first write
- Retry while a table is still being provisioned
- Partition scans with key ranges and cursor pagination
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from functools import partial
from typing import Any, AsyncIterator, Mapping, Optional
from uuid import uuid4

import httpx

from .adapter import Record, item_to_record, key_item, new_item, serialize_document, timestamp
from .config import DriverConfig
from .credentials import Credentials, resolve_credentials
from .errors import (
    ConflictError,
    ConnectionClosedError,
    NotFoundError,
    RemoteCallError,
    RemoteErrorKind,
    RetriesExhaustedError,
)
from .ranges import KEY_ATTRIBUTE, PARTITION_ATTRIBUTE, KeyRange, match_range, query_from_range
from .remote import RemoteCaller

logger = logging.getLogger(__name__)

TABLE_NOT_READY = (RemoteErrorKind.RESOURCE_NOT_FOUND, RemoteErrorKind.RESOURCE_IN_USE)


@dataclass
class Context:
    """
    Per-connection collaborators.

    Attributes:
        env: Environment mapping for configuration and credentials (defaults to os.environ)
        credentials: Pre-resolved credentials; resolved from env when omitted
        logger: Logger for retry and provisioning messages
        transport: httpx transport used for every remote call
    """

    env: Optional[Mapping[str, str]] = None
    credentials: Optional[Credentials] = None
    logger: Optional[logging.Logger] = None
    transport: Optional[httpx.AsyncBaseTransport] = None


def new_revision() -> str:
    return uuid4().hex


class Driver:
    """
    Entry point of the document store.

    Example:
        >>> driver = Driver(DriverConfig(table_prefix="Docs."))
        >>> async with await driver.connect() as connection:
        ...     revision = await connection.add("todos", "user-1", "todo-1", {"title": "Write"})
        ...     record = await connection.get("todos", "user-1", "todo-1")
    """

    def __init__(self, config: Optional[DriverConfig] = None):
        """
        Initialize driver.

        Args:
            config: Driver configuration; read from the connection's
                environment when omitted
        """
        self.config = config

    async def connect(self, context: Optional[Context] = None) -> "Connection":
        context = context or Context()
        env = os.environ if context.env is None else context.env
        config = self.config or DriverConfig.from_env(env)
        return Connection(config, context)


class Connection:
    """
    A logical session against DynamoDB.

    Operations share no mutable state besides the lazily resolved
    credentials. Concurrent writers are arbitrated by DynamoDB condition
    expressions on the ``revision`` attribute.
    """

    def __init__(self, config: DriverConfig, context: Optional[Context] = None):
        self.config = config
        self.context = context or Context()
        self.logger = self.context.logger or logger
        self.remote = RemoteCaller(
            endpoint_url=config.endpoint_url,
            transport=self.context.transport,
            timeout=config.request_timeout,
        )
        self._credentials = self.context.credentials
        self._credentials_lock = asyncio.Lock()
        self._closed = False

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    async def credentials(self) -> Credentials:
        """
        Credentials for this connection, resolved on first use.

        Resolution may read the shared credentials file, so it runs in the
        default executor. Concurrent first calls share one resolution.
        """
        if self._credentials is None:
            async with self._credentials_lock:
                if self._credentials is None:
                    env = os.environ if self.context.env is None else self.context.env
                    loop = asyncio.get_running_loop()
                    self._credentials = await loop.run_in_executor(
                        None, partial(resolve_credentials, env=env)
                    )
        return self._credentials

    async def add(self, table: str, partition: str, key: str, document: Any) -> str:
        """
        Create a new record.

        Creates the table on first use and retries while it is provisioned.

        Args:
            table: Logical table name
            partition: Partition of the record
            key: Key of the record within the partition
            document: JSON-serializable document

        Returns:
            Revision of the new record

        Raises:
            ConflictError: If a record with this identity already exists
            RetriesExhaustedError: If max_attempts is configured and provisioning did not converge
        """
        self._check_open()
        attempt = 0
        while True:
            attempt += 1
            revision = new_revision()
            try:
                await self._request("PutItem", {
                    "TableName": self.table_name(table),
                    "Item": new_item(partition, key, revision, document),
                    "ConditionExpression": "attribute_not_exists(#revision)",
                    "ExpressionAttributeNames": {"#revision": "revision"},
                })
            except RemoteCallError as e:
                kind = e.kind
                if kind is RemoteErrorKind.RESOURCE_NOT_FOUND:
                    await self._create_table(table)
                    await self._wait_for_table(table, attempt, e)
                    continue
                if kind is RemoteErrorKind.RESOURCE_IN_USE:
                    self.logger.debug(
                        f"Table {self.table_name(table)} in use; retrying assuming it is being created."
                    )
                    await self._wait_for_table(table, attempt, e)
                    continue
                if kind is RemoteErrorKind.CONDITIONAL_CHECK_FAILED:
                    raise ConflictError() from e
                raise
            return revision

    async def get(self, table: str, partition: str, key: str) -> Record:
        """
        Get a record by identity.

        Raises:
            NotFoundError: If the record or its table does not exist
        """
        self._check_open()
        try:
            result = await self._request("GetItem", {
                "TableName": self.table_name(table),
                "Key": key_item(partition, key),
            })
        except RemoteCallError as e:
            if e.kind in TABLE_NOT_READY:
                raise NotFoundError() from e
            raise

        item = result.get("Item")
        if not item:
            raise NotFoundError()
        return item_to_record(item, partition=partition, key=key)

    async def get_partition(
        self,
        table: str,
        partition: str,
        key_range: Optional[KeyRange] = None,
    ) -> AsyncIterator[Record]:
        """
        Iterate over the records of a partition in key order.

        Each call starts a fresh scan and follows DynamoDB's
        LastEvaluatedKey cursor until the partition is exhausted. A missing
        table yields nothing.

        Args:
            table: Logical table name
            partition: Partition to scan
            key_range: Optional Prefix or Between filter on keys

        Yields:
            Records whose keys match the range
        """
        self._check_open()
        matches = match_range(key_range)
        query: dict[str, Any] = {
            "TableName": self.table_name(table),
            **query_from_range(partition, key_range),
        }
        if self.config.page_size:
            query["Limit"] = self.config.page_size

        cursor: Optional[dict[str, Any]] = None
        while True:
            params = dict(query)
            if cursor is not None:
                params["ExclusiveStartKey"] = cursor
            try:
                result = await self._request("Query", params)
            except RemoteCallError as e:
                if e.kind in TABLE_NOT_READY:
                    return
                raise

            for item in result.get("Items", []):
                item_key = (item.get(KEY_ATTRIBUTE) or {}).get("S")
                if not item_key or not matches(item_key):
                    continue
                yield item_to_record(item)

            cursor = result.get("LastEvaluatedKey")
            if not cursor:
                break

    async def update(
        self,
        table: str,
        partition: str,
        key: str,
        current_revision: str,
        document: Any,
    ) -> str:
        """
        Replace the document of an existing record.

        Args:
            table: Logical table name
            partition: Partition of the record
            key: Key of the record
            current_revision: Revision the caller last observed
            document: New document

        Returns:
            The new revision

        Raises:
            ConflictError: If the revision is stale or the table does not exist
        """
        self._check_open()
        attempt = 0
        while True:
            attempt += 1
            revision = new_revision()
            try:
                await self._request("UpdateItem", {
                    "TableName": self.table_name(table),
                    "Key": key_item(partition, key),
                    "UpdateExpression": (
                        "ADD #seq :one "
                        "SET #revision = :newRevision, #updated = :now, #document = :document"
                    ),
                    "ConditionExpression": "#revision = :oldRevision",
                    "ExpressionAttributeNames": {
                        "#seq": "seq",
                        "#revision": "revision",
                        "#updated": "updated",
                        "#document": "document",
                    },
                    "ExpressionAttributeValues": {
                        ":one": {"N": "1"},
                        ":oldRevision": {"S": str(current_revision)},
                        ":newRevision": {"S": revision},
                        ":now": {"S": timestamp()},
                        ":document": serialize_document(document),
                    },
                })
            except RemoteCallError as e:
                kind = e.kind
                if kind is RemoteErrorKind.CONDITIONAL_CHECK_FAILED:
                    raise ConflictError() from e
                if kind is RemoteErrorKind.RESOURCE_IN_USE:
                    self.logger.debug(
                        f"Table {self.table_name(table)} in use; retrying assuming it is being created."
                    )
                    await self._wait_for_table(table, attempt, e)
                    continue
                if kind is RemoteErrorKind.RESOURCE_NOT_FOUND:
                    # No table means no record could have had this revision.
                    raise ConflictError() from e
                raise
            return revision

    async def delete(
        self,
        table: str,
        partition: str,
        key: str,
        current_revision: Optional[str] = None,
    ) -> None:
        """
        Delete a record, optionally only if its revision matches.

        Deleting an absent record without a revision succeeds silently.

        Raises:
            ConflictError: If current_revision is given and does not match
        """
        self._check_open()
        params: dict[str, Any] = {
            "TableName": self.table_name(table),
            "Key": key_item(partition, key),
        }
        if current_revision is not None:
            params["ConditionExpression"] = "#revision = :oldRevision"
            params["ExpressionAttributeNames"] = {"#revision": "revision"}
            params["ExpressionAttributeValues"] = {":oldRevision": {"S": str(current_revision)}}

        try:
            await self._request("DeleteItem", params)
        except RemoteCallError as e:
            kind = e.kind
            if kind is RemoteErrorKind.CONDITIONAL_CHECK_FAILED:
                raise ConflictError() from e
            if kind is RemoteErrorKind.RESOURCE_IN_USE:
                return
            if kind is RemoteErrorKind.RESOURCE_NOT_FOUND:
                if current_revision is not None:
                    raise ConflictError() from e
                return
            raise

    async def close(self) -> None:
        self._closed = True

    def table_name(self, table: str) -> str:
        return self.config.table_name(table)

    async def _request(self, operation: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.remote.db_request(await self.credentials(), operation, payload)

    async def _create_table(self, table: str) -> None:
        name = self.table_name(table)
        self.logger.info(f"Creating DynamoDB table {name}")
        try:
            await self._request("CreateTable", {
                "TableName": name,
                "AttributeDefinitions": [
                    {"AttributeName": PARTITION_ATTRIBUTE, "AttributeType": "S"},
                    {"AttributeName": KEY_ATTRIBUTE, "AttributeType": "S"},
                ],
                "KeySchema": [
                    {"AttributeName": PARTITION_ATTRIBUTE, "KeyType": "HASH"},
                    {"AttributeName": KEY_ATTRIBUTE, "KeyType": "RANGE"},
                ],
                **self.config.table_options(),
            })
        except RemoteCallError as e:
            if e.kind is RemoteErrorKind.RESOURCE_IN_USE:
                self.logger.debug(f"Table {name} is already being created")
                return
            raise

    async def _wait_for_table(self, table: str, attempt: int, error: RemoteCallError) -> None:
        max_attempts = self.config.max_attempts
        if max_attempts is not None and attempt >= max_attempts:
            raise RetriesExhaustedError(
                f"Table {self.table_name(table)} not ready after {attempt} attempts",
                last_error=error,
            ) from error
        await asyncio.sleep(self.config.retry_delay)

    def _check_open(self) -> None:
        if self._closed:
            raise ConnectionClosedError("Connection is closed")
