"""DynamoDB repository for user directory records.

The directory is consulted when issuing credentials and when verifying them.
Following the repository convention of this service, expected failures return
None/False rather than raising exceptions.
"""

import logging

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from food_ordering_core.models.identity_models import User

logger = logging.getLogger(__name__)


class UserRepository:
    """Read-only repository for user directory records.

    Records live in DynamoDB with id as partition key and are provisioned
    outside this service.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_user(self, user_id: str) -> User | None:
        """Retrieve a user by ID.

        Args:
            user_id: User identifier

        Returns:
            User if found, None otherwise (including on read failure)
        """
        try:
            response = self.table.get_item(Key={"id": user_id})
        except ClientError as e:
            logger.error(f"Failed to get user {user_id}: {e}")  # pragma: no cover
            return None

        if "Item" not in response:
            return None

        try:
            return User.from_dynamodb_item(response["Item"])
        except (KeyError, ValueError) as e:
            logger.error(f"Stored user record {user_id} is invalid: {e}")
            return None

    def find_user_by_email(self, email: str) -> User | None:
        """Find a user by email address, ignoring case.

        Args:
            email: Email address used at sign-in

        Returns:
            User if exactly one record matches, None otherwise
        """
        normalized = email.strip().lower()
        scan_kwargs = {"FilterExpression": Attr("email_normalized").eq(normalized)}

        try:
            response = self.table.scan(**scan_kwargs)
            items = response.get("Items", [])

            while "LastEvaluatedKey" in response:
                response = self.table.scan(
                    ExclusiveStartKey=response["LastEvaluatedKey"], **scan_kwargs
                )
                items.extend(response.get("Items", []))

        except ClientError as e:
            logger.error(f"Failed to look up user by email: {e}")  # pragma: no cover
            return None

        if len(items) != 1:
            if items:
                logger.error(f"Email {normalized} matches {len(items)} user records")
            return None

        try:
            return User.from_dynamodb_item(items[0])
        except (KeyError, ValueError) as e:
            logger.error(f"Stored user record for {normalized} is invalid: {e}")
            return None
