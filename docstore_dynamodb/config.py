"""
Driver configuration.

Environment Variables:
    TABLE_PREFIX: Prepended to every logical table name (default: "")
    TABLE_POSTFIX: Appended to every logical table name (default: "")
    AWS_DYNAMODB_BILLING_METHOD: "PROVISIONED" or anything else for on-demand
    AWS_DYNAMODB_RCU: Provisioned read capacity units (default: 1)
    AWS_DYNAMODB_WCU: Provisioned write capacity units (default: 1)
    AWS_ENDPOINT_URL_DYNAMODB: Custom endpoint (e.g. DynamoDB Local or moto)
    DOCSTORE_RETRY_DELAY: Seconds between provisioning retries (default: 1)
    DOCSTORE_MAX_ATTEMPTS: Bound on provisioning retries (default: unbounded)
    DOCSTORE_PAGE_SIZE: Query page size (default: DynamoDB's own 1 MB pages)
    DOCSTORE_REQUEST_TIMEOUT: HTTP timeout in seconds (default: 30)

Example:
    # Isolate test tables and use provisioned capacity
    TABLE_PREFIX=DocsTests.
    AWS_DYNAMODB_BILLING_METHOD=PROVISIONED
    AWS_DYNAMODB_RCU=5
"""

import os
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, Field

BillingMode = Literal["PROVISIONED", "PAY_PER_REQUEST"]

ENV_FIELDS = {
    "TABLE_PREFIX": "table_prefix",
    "TABLE_POSTFIX": "table_postfix",
    "AWS_DYNAMODB_RCU": "read_capacity",
    "AWS_DYNAMODB_WCU": "write_capacity",
    "AWS_ENDPOINT_URL_DYNAMODB": "endpoint_url",
    "DOCSTORE_RETRY_DELAY": "retry_delay",
    "DOCSTORE_MAX_ATTEMPTS": "max_attempts",
    "DOCSTORE_PAGE_SIZE": "page_size",
    "DOCSTORE_REQUEST_TIMEOUT": "request_timeout",
}


class DriverConfig(BaseModel):
    """Settings for a DynamoDB document store driver."""

    table_prefix: str = ""
    table_postfix: str = ""
    billing_mode: BillingMode = "PAY_PER_REQUEST"
    read_capacity: int = Field(1, ge=1)
    write_capacity: int = Field(1, ge=1)
    endpoint_url: Optional[str] = None
    retry_delay: float = Field(1.0, ge=0)
    max_attempts: Optional[int] = Field(None, ge=1)
    page_size: Optional[int] = Field(None, ge=1)
    request_timeout: float = Field(30.0, gt=0)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, **overrides: Any) -> "DriverConfig":
        """
        Build a configuration from environment variables.

        Args:
            env: Environment mapping (defaults to os.environ)
            **overrides: Field values that take precedence over the environment

        Returns:
            Validated configuration
        """
        env = os.environ if env is None else env
        values: dict[str, Any] = {
            field_name: env[name]
            for name, field_name in ENV_FIELDS.items()
            if env.get(name)
        }
        # Anything other than PROVISIONED means on-demand billing.
        if env.get("AWS_DYNAMODB_BILLING_METHOD") == "PROVISIONED":
            values["billing_mode"] = "PROVISIONED"
        values.update(overrides)
        return cls(**values)

    def table_name(self, table: str) -> str:
        return f"{self.table_prefix}{table}{self.table_postfix}"

    def table_options(self) -> dict[str, Any]:
        """Billing parameters for CreateTable."""
        if self.billing_mode == "PROVISIONED":
            return {
                "BillingMode": "PROVISIONED",
                "ProvisionedThroughput": {
                    "ReadCapacityUnits": self.read_capacity,
                    "WriteCapacityUnits": self.write_capacity,
                },
            }
        return {"BillingMode": "PAY_PER_REQUEST"}
