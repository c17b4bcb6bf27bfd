"""DynamoDB access for the registration and payment tables.

Tables (suffixes appended to ``<prefix>-``):

- ``programs`` / ``membership-packages``: catalog, read-only here
- ``program-registrations``: ``email`` + ``program_id``
- ``members`` / ``users``: keyed by ``email``
- ``payments``: keyed by ``order_id``
- ``payment-intents``: keyed by ``cache_key``, TTL on ``expires_at``

Settlement writes go through ``transact_write`` built from ``put_op`` /
``update_op`` / ``condition_check_op``; everything else uses the table
resource API.
"""

import os
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

_dynamodb_service_instance: "DynamoDBService | None" = None


def get_dynamodb_service(environment: str | None = None) -> "DynamoDBService":
    """Get or create the shared DynamoDBService.

    Args:
        environment: Environment name. Only used on first call.
    """
    global _dynamodb_service_instance
    if _dynamodb_service_instance is None:
        _dynamodb_service_instance = DynamoDBService(environment)
    return _dynamodb_service_instance


def reset_dynamodb_service() -> None:
    """Drop the shared instance so tests can rebuild it inside mock_aws."""
    global _dynamodb_service_instance
    _dynamodb_service_instance = None


def _condition_failed(error: ClientError, code: str = "ConditionalCheckFailedException") -> bool:
    return bool(error.response["Error"]["Code"] == code)


class DynamoDBService:
    """Table operations with environment-prefixed table names."""

    def __init__(self, environment: str | None = None) -> None:
        self.environment = environment or os.getenv("ENVIRONMENT", "dev")
        # DYNAMODB_TABLE_PREFIX wins over the environment-derived prefix
        self.name_prefix = os.getenv("DYNAMODB_TABLE_PREFIX", f"regpay-{self.environment}")
        self._dynamodb = boto3.resource("dynamodb")
        self._client = boto3.client("dynamodb")
        self._serializer = TypeSerializer()

    def table_name(self, table: str) -> str:
        return f"{self.name_prefix}-{table}"

    def _get_table(self, table: str) -> Any:
        return self._dynamodb.Table(self.table_name(table))

    def get_item(
        self, table: str, key: dict[str, Any], consistent_read: bool = True
    ) -> dict[str, Any] | None:
        """Read one item, strongly consistent unless told otherwise."""
        response = self._get_table(table).get_item(Key=key, ConsistentRead=consistent_read)
        item: dict[str, Any] | None = response.get("Item")
        return item

    def put_item(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
    ) -> bool:
        """Write an item.

        Returns:
            False when ``condition_expression`` rejected the write
        """
        kwargs: dict[str, Any] = {"Item": item}
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression
        try:
            self._get_table(table).put_item(**kwargs)
        except ClientError as e:
            if _condition_failed(e):
                return False
            raise
        return True

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Apply an update expression.

        Returns:
            The item after the update, or None when the condition failed
        """
        kwargs: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": expression_attribute_values,
            "ReturnValues": "ALL_NEW",
        }
        if expression_attribute_names:
            kwargs["ExpressionAttributeNames"] = expression_attribute_names
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression
        try:
            response = self._get_table(table).update_item(**kwargs)
        except ClientError as e:
            if _condition_failed(e):
                return None
            raise
        attrs: dict[str, Any] | None = response.get("Attributes")
        return attrs

    def delete_item(self, table: str, key: dict[str, Any]) -> None:
        self._get_table(table).delete_item(Key=key)

    def query_by_partition(
        self, table: str, partition_key_name: str, partition_key_value: str
    ) -> list[dict[str, Any]]:
        """Every item sharing one partition key value."""
        response = self._get_table(table).query(
            KeyConditionExpression=Key(partition_key_name).eq(partition_key_value)
        )
        items: list[dict[str, Any]] = response.get("Items", [])
        return items

    # Transactions

    def put_op(
        self, table: str, item: dict[str, Any], condition_expression: str | None = None
    ) -> dict[str, Any]:
        op: dict[str, Any] = {"TableName": self.table_name(table), "Item": self._serialize(item)}
        if condition_expression:
            op["ConditionExpression"] = condition_expression
        return {"Put": op}

    def update_op(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        op: dict[str, Any] = {
            "TableName": self.table_name(table),
            "Key": self._serialize(key),
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": self._serialize(expression_attribute_values),
        }
        if expression_attribute_names:
            op["ExpressionAttributeNames"] = expression_attribute_names
        if condition_expression:
            op["ConditionExpression"] = condition_expression
        return {"Update": op}

    def condition_check_op(
        self, table: str, key: dict[str, Any], condition_expression: str
    ) -> dict[str, Any]:
        return {
            "ConditionCheck": {
                "TableName": self.table_name(table),
                "Key": self._serialize(key),
                "ConditionExpression": condition_expression,
            }
        }

    def transact_write(self, items: list[dict[str, Any]]) -> bool:
        """Run a write transaction.

        Args:
            items: Operations from put_op / update_op / condition_check_op

        Returns:
            False when DynamoDB cancelled the transaction (a condition failed
            or a concurrent transaction touched the same items)
        """
        try:
            self._client.transact_write_items(TransactItems=items)  # type: ignore[arg-type]
        except ClientError as e:
            if _condition_failed(e, "TransactionCanceledException"):
                return False
            raise
        return True

    def _serialize(self, values: dict[str, Any]) -> dict[str, Any]:
        return {k: self._serializer.serialize(v) for k, v in values.items()}
