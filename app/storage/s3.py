from io import BytesIO
from typing import BinaryIO
from botocore.exceptions import ClientError
import logging

from app.exceptions import StorageNameTaken
from app.settings import Settings
from app.storage.session import aws_session

log = logging.getLogger(__name__)

# -------------------------
# S3 Byte Store
# -------------------------
class S3ByteStore:
    def __init__(self, settings: Settings):
        self.bucket = settings.s3_bucket
        session, kwargs = aws_session(settings)
        self.client = session.client("s3", **kwargs)
        log.info("Initialized S3 client")

        # Ensure bucket exists at initialization
        self.ensure_bucket()

    def ensure_bucket(self):
        try:
            self.client.head_bucket(Bucket=self.bucket)
            log.debug("Bucket %s already exists", self.bucket)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code in ("404", "NoSuchBucket"):
                self.client.create_bucket(Bucket=self.bucket)
                log.info("Created bucket %s", self.bucket)
            else:
                log.error("Failed to check/create bucket: %s", e)
                raise

    def write(self, name: str, data: bytes, content_type: str):
        if self.exists(name):
            raise StorageNameTaken(name)
        self.client.upload_fileobj(
            Fileobj=BytesIO(data),
            Bucket=self.bucket,
            Key=name,
            ExtraArgs={"ContentType": content_type},
        )
        log.debug("Uploaded %s to s3://%s/%s", name, self.bucket, name)

    def open(self, name: str) -> BinaryIO:
        resp = self.client.get_object(Bucket=self.bucket, Key=name)
        return BytesIO(resp["Body"].read())

    def exists(self, name: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=name)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
                return False
            raise

    def delete(self, name: str):
        self.client.delete_object(Bucket=self.bucket, Key=name)
        log.debug("Deleted s3://%s/%s", self.bucket, name)

    def ping(self):
        self.client.head_bucket(Bucket=self.bucket)

    def close(self):
        log.info("Closed S3 client")
