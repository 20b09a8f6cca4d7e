"""Base repository class for DynamoDB operations."""

import os
import threading
from typing import Any, Generic, TypeVar

import boto3
import structlog
from botocore.exceptions import ClientError

from pathwise.models.base import BaseModel
from pathwise.utils.exceptions import ConflictError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

# Key attribute names per index
INDEX_KEYS = {
    None: ("PK", "SK"),
    "GSI1": ("GSI1PK", "GSI1SK"),
    "GSI2": ("GSI2PK", "GSI2SK"),
}


class BaseRepository(Generic[T]):
    """Base repository for DynamoDB single-table design.

    Provides the append and query operations the attribution store needs.
    """

    def __init__(
        self,
        model_class: type[T],
        table_name: str | None = None,
    ):
        """Initialize repository.

        Args:
            model_class: The Pydantic model class for this repository.
            table_name: DynamoDB table name. Defaults to TABLE_NAME env var.
        """
        self.model_class = model_class
        self.table_name = table_name or os.environ.get("TABLE_NAME", "pathwise-dev")
        self._local = threading.local()

    @property
    def dynamodb(self):
        """Get this thread's DynamoDB resource (lazy initialization).

        boto3 resources are not thread-safe, so each thread builds its own
        from a dedicated session.
        """
        resource = getattr(self._local, "dynamodb", None)
        if resource is None:
            resource = boto3.Session().resource("dynamodb")
            self._local.dynamodb = resource
        return resource

    @property
    def table(self):
        """Get this thread's DynamoDB table (lazy initialization)."""
        table = getattr(self._local, "table", None)
        if table is None:
            table = self.dynamodb.Table(self.table_name)
            self._local.table = table
        return table

    def _build_key(self, pk: str, sk: str) -> dict[str, str]:
        """Build key dictionary for DynamoDB operations."""
        return {"PK": pk, "SK": sk}

    def get(self, pk: str, sk: str) -> T | None:
        """Get an item by its primary key.

        Args:
            pk: Partition key value.
            sk: Sort key value.

        Returns:
            Model instance or None if not found.
        """
        try:
            response = self.table.get_item(Key=self._build_key(pk, sk))
            item = response.get("Item")

            if not item:
                return None

            return self.model_class.from_dynamodb(item)

        except ClientError as e:
            logger.error("DynamoDB get_item failed", error=str(e), pk=pk, sk=sk)
            raise

    def create(self, item: T, gsi_keys: dict[str, str] | None = None) -> T:
        """Create a new item (fails if exists).

        Args:
            item: Model instance to save.
            gsi_keys: Optional GSI key values to add.

        Returns:
            The saved model instance.

        Raises:
            ConflictError: If an item with the same keys already exists.
        """
        try:
            item.update_timestamp()

            db_item = item.to_dynamodb()
            db_item.update(item.get_keys())

            if gsi_keys:
                db_item.update(gsi_keys)

            self.table.put_item(
                Item=db_item,
                ConditionExpression="attribute_not_exists(PK)",
            )

            logger.debug(
                "Item saved",
                pk=db_item["PK"],
                sk=db_item["SK"],
                model=self.model_class.__name__,
            )

            return item

        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ConflictError("Item already exists")
            logger.error("DynamoDB put_item failed", error=str(e))
            raise

    def query(
        self,
        pk: str,
        sk_begins_with: str | None = None,
        sk_from: str | None = None,
        index_name: str | None = None,
        limit: int | None = None,
        scan_forward: bool = True,
        filter_expression: str | None = None,
        expression_values: dict | None = None,
        last_key: dict | None = None,
    ) -> tuple[list[T], dict | None]:
        """Query items by partition key.

        Args:
            pk: Partition key value.
            sk_begins_with: Sort key prefix for begins_with condition.
            sk_from: Inclusive lower bound on the sort key (ignored when
                sk_begins_with is given).
            index_name: Optional GSI name.
            limit: Maximum items to evaluate.
            scan_forward: Sort direction (True = ascending).
            filter_expression: Optional filter expression.
            expression_values: Expression attribute values.
            last_key: Last evaluated key for pagination.

        Returns:
            Tuple of (items, last_evaluated_key).
        """
        pk_attr, sk_attr = INDEX_KEYS[index_name]

        try:
            key_condition = f"{pk_attr} = :pk"
            expr_values: dict[str, Any] = {":pk": pk}

            if sk_begins_with:
                key_condition += f" AND begins_with({sk_attr}, :sk)"
                expr_values[":sk"] = sk_begins_with
            elif sk_from:
                key_condition += f" AND {sk_attr} >= :sk"
                expr_values[":sk"] = sk_from

            if expression_values:
                expr_values.update(expression_values)

            kwargs: dict[str, Any] = {
                "KeyConditionExpression": key_condition,
                "ExpressionAttributeValues": expr_values,
                "ScanIndexForward": scan_forward,
            }

            if index_name:
                kwargs["IndexName"] = index_name
            if limit:
                kwargs["Limit"] = limit
            if filter_expression:
                kwargs["FilterExpression"] = filter_expression
            if last_key:
                kwargs["ExclusiveStartKey"] = last_key

            response = self.table.query(**kwargs)

            items = [self.model_class.from_dynamodb(item) for item in response.get("Items", [])]
            last_evaluated_key = response.get("LastEvaluatedKey")

            return items, last_evaluated_key

        except ClientError as e:
            logger.error("DynamoDB query failed", error=str(e), pk=pk, index=index_name)
            raise

    def query_all(self, pk: str, max_items: int | None = None, **kwargs: Any) -> list[T]:
        """Query every page of a partition (or index partition).

        Args:
            pk: Partition key value.
            max_items: Stop once this many items were collected.
            **kwargs: Passed through to query().

        Returns:
            All matching model instances in key order.
        """
        items: list[T] = []
        last_key = None

        while True:
            page, last_key = self.query(pk, last_key=last_key, **kwargs)
            items.extend(page)

            if not last_key:
                break
            if max_items is not None and len(items) >= max_items:
                break

        if max_items is not None:
            return items[:max_items]
        return items
