"""Base repository class for DynamoDB operations."""

import os
from typing import Any, Generic, TypeVar

import boto3
import structlog
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from designvault.models.base import BaseModel
from designvault.utils.exceptions import ConflictError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


def is_conditional_check_failure(exc: ClientError) -> bool:
    """Whether a ClientError is a failed ConditionExpression."""
    return exc.response["Error"]["Code"] == "ConditionalCheckFailedException"


class BaseRepository(Generic[T]):
    """Base repository for DynamoDB single-table design."""

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
        self.table_name = table_name or os.environ.get("TABLE_NAME", "designvault-dev")
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            self._dynamodb = boto3.resource("dynamodb")
        return self._dynamodb

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            self._table = self.dynamodb.Table(self.table_name)
        return self._table

    def get(self, pk: str, sk: str, consistent: bool = True) -> T | None:
        """Get an item by its primary key.

        Args:
            pk: Partition key value.
            sk: Sort key value.
            consistent: Use a strongly consistent read.

        Returns:
            Model instance or None if not found.
        """
        try:
            response = self.table.get_item(
                Key={"PK": pk, "SK": sk},
                ConsistentRead=consistent,
            )
        except ClientError as e:
            logger.error("DynamoDB get_item failed", error=str(e), pk=pk, sk=sk)
            raise

        item = response.get("Item")
        if not item:
            return None
        return self.model_class.from_dynamodb(item)

    def put(self, item: T, condition_expression: str | None = None) -> T:
        """Put an item into DynamoDB.

        Args:
            item: Model instance to save.
            condition_expression: Optional condition expression.

        Returns:
            The saved model instance.

        Raises:
            ConflictError: If the condition expression fails.
        """
        item.update_timestamp()
        db_item = item.to_dynamodb()

        kwargs: dict[str, Any] = {"Item": db_item}
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression

        try:
            self.table.put_item(**kwargs)
        except ClientError as e:
            if is_conditional_check_failure(e):
                raise ConflictError("Item already exists", conflict_type=self.model_class.__name__)
            logger.error("DynamoDB put_item failed", error=str(e))
            raise

        logger.debug(
            "Item saved",
            pk=db_item["PK"],
            sk=db_item["SK"],
            model=self.model_class.__name__,
        )
        return item

    def create(self, item: T) -> T:
        """Create a new item (fails if it exists)."""
        return self.put(item, condition_expression="attribute_not_exists(PK)")

    def query_gsi1(
        self,
        gsi1pk: str,
        sk_begins_with: str | None = None,
        filter_expression: Any = None,
        limit: int | None = None,
        projection: str | None = None,
        last_key: dict | None = None,
    ) -> tuple[list[dict], dict | None]:
        """Query raw items from GSI1.

        GSI reads are eventually consistent; callers that aggregate across
        items accept that a very recent write may not be visible yet.

        Args:
            gsi1pk: GSI1 partition key value.
            sk_begins_with: Optional GSI1 sort key prefix.
            filter_expression: Optional boto3 condition applied after the key match.
            limit: Maximum items to evaluate.
            projection: Optional ProjectionExpression.
            last_key: Pagination cursor.

        Returns:
            Tuple of (raw items, last_evaluated_key).
        """
        key_condition = Key("GSI1PK").eq(gsi1pk)
        if sk_begins_with:
            key_condition = key_condition & Key("GSI1SK").begins_with(sk_begins_with)

        kwargs: dict[str, Any] = {
            "IndexName": "GSI1",
            "KeyConditionExpression": key_condition,
        }
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        if limit:
            kwargs["Limit"] = limit
        if projection:
            kwargs["ProjectionExpression"] = projection
        if last_key:
            kwargs["ExclusiveStartKey"] = last_key

        try:
            response = self.table.query(**kwargs)
        except ClientError as e:
            logger.error("DynamoDB query failed", error=str(e), gsi1pk=gsi1pk)
            raise

        return response.get("Items", []), response.get("LastEvaluatedKey")

    def query_gsi1_all(self, gsi1pk: str, **kwargs: Any) -> list[dict]:
        """Query every page of GSI1 items for a partition."""
        items: list[dict] = []
        last_key = None
        while True:
            page, last_key = self.query_gsi1(gsi1pk, last_key=last_key, **kwargs)
            items.extend(page)
            if not last_key:
                return items
