from typing import Any, Dict, List, Tuple
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
import logging

from app.image_service.models import GALLERY_PARTITION, Identity, StoredImage
from app.settings import Settings
from app.storage.session import aws_session

log = logging.getLogger(__name__)

UPLOADED_AT_INDEX = "UploadedAtIndex"

def _connect(settings: Settings):
    session, kwargs = aws_session(settings)
    return session.resource("dynamodb", **kwargs)

# -------------------------
# DynamoDB Metadata Store
# -------------------------
class DynamoDBMetadataStore:
    def __init__(self, settings: Settings):
        self.table_name = settings.dynamodb_table
        self.resource = _connect(settings)
        log.info("Initialized DynamoDB resource")

        # Ensure table exists at initialization
        self.ensure_table()

    # Refer here: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/create_table.html
    def ensure_table(self):
        try:
            table = self.resource.Table(self.table_name)
            table.load()
        except ClientError:
            table = self.resource.create_table(
                TableName=self.table_name,
                KeySchema=[{"AttributeName": "image_id", "KeyType": "HASH"}],
                AttributeDefinitions=[
                    {"AttributeName": "image_id", "AttributeType": "S"},
                    {"AttributeName": "gallery", "AttributeType": "S"},
                    {"AttributeName": "uploaded_at", "AttributeType": "S"},
                ],
                GlobalSecondaryIndexes=[
                    {
                        "IndexName": UPLOADED_AT_INDEX,
                        "KeySchema": [
                            {"AttributeName": "gallery", "KeyType": "HASH"},
                            {"AttributeName": "uploaded_at", "KeyType": "RANGE"},
                        ],
                        "Projection": {"ProjectionType": "ALL"},
                        "ProvisionedThroughput": {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
                    }
                ],
                ProvisionedThroughput={"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
            )
            table.wait_until_exists()
            log.info("Created table %s", self.table_name)

    def create_record(self, image: StoredImage) -> StoredImage:
        table = self.resource.Table(self.table_name)
        table.put_item(
            Item=image.to_item(),
            ConditionExpression="attribute_not_exists(image_id)",
        )
        log.debug("Inserted metadata %s", image.image_id)
        return image

    def list_records(self, limit: int, offset: int) -> Tuple[List[StoredImage], int]:
        """Returns one page of records, newest first, and the total record count."""
        table = self.resource.Table(self.table_name)
        total = self.count_records()

        query_kwargs: Dict[str, Any] = {
            "IndexName": UPLOADED_AT_INDEX,
            "KeyConditionExpression": Key("gallery").eq(GALLERY_PARTITION),
            "ScanIndexForward": False,
        }
        items: List[Dict[str, Any]] = []
        while len(items) < offset + limit:
            resp = table.query(**query_kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            query_kwargs["ExclusiveStartKey"] = last_key

        page = [StoredImage.from_item(it) for it in items[offset:offset + limit]]
        return page, total

    def count_records(self) -> int:
        table = self.resource.Table(self.table_name)
        query_kwargs: Dict[str, Any] = {
            "IndexName": UPLOADED_AT_INDEX,
            "KeyConditionExpression": Key("gallery").eq(GALLERY_PARTITION),
            "Select": "COUNT",
        }
        total = 0
        while True:
            resp = table.query(**query_kwargs)
            total += int(resp.get("Count", 0))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return total
            query_kwargs["ExclusiveStartKey"] = last_key

    def ping(self):
        self.resource.Table(self.table_name).load()

    def close(self):
        log.info("Closed DynamoDB resource")

# -------------------------
# DynamoDB Identity Provider
# -------------------------
class DynamoDBIdentityProvider:
    def __init__(self, settings: Settings):
        self.table_name = settings.dynamodb_users_table
        self.default_username = settings.demo_username
        self.default_email = settings.demo_user_email
        self.resource = _connect(settings)
        self.ensure_table()

    def ensure_table(self):
        try:
            table = self.resource.Table(self.table_name)
            table.load()
        except ClientError:
            table = self.resource.create_table(
                TableName=self.table_name,
                KeySchema=[{"AttributeName": "email", "KeyType": "HASH"}],
                AttributeDefinitions=[{"AttributeName": "email", "AttributeType": "S"}],
                ProvisionedThroughput={"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
            )
            table.wait_until_exists()
            log.info("Created table %s", self.table_name)

    def username_for(self, key: str) -> str:
        if key == self.default_email:
            return self.default_username
        return key.split("@", 1)[0]

    def resolve_or_create_identity(self, key: str) -> Identity:
        """Creates the identity for `key` on first use, otherwise returns the stored one."""
        table = self.resource.Table(self.table_name)
        identity = Identity(email=key, username=self.username_for(key))
        try:
            table.put_item(
                Item=identity.to_item(),
                ConditionExpression="attribute_not_exists(email)",
            )
            log.info("Created identity %s for %s", identity.user_id, key)
            return identity
        except ClientError as e:
            if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                raise

        resp = table.get_item(Key={"email": key}, ConsistentRead=True)
        return Identity.from_item(resp["Item"])

    def close(self):
        log.info("Closed DynamoDB identity provider")
