import io
import os
import pytest
from moto import mock_aws
from fastapi.testclient import TestClient
from PIL import Image

# Dummy AWS credentials for moto
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
# Clear the AWS_ENDPOINT_URL so moto mocks are used instead of localstack
os.environ.pop("AWS_ENDPOINT_URL", None)

from app.main import create_app
from app.settings import Settings
from app.image_service.models import StoredImage


def make_image_bytes(width=10, height=10, fmt="PNG", color="red", pad_to=None):
    """Generate a valid image in-memory, optionally padded to an exact byte size."""
    img = Image.new("RGB", (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    data = buf.getvalue()
    if pad_to is not None:
        assert len(data) <= pad_to
        data += b"\x00" * (pad_to - len(data))
    return data


def stored_record(metadata, image_id):
    """Reads a metadata record straight from its DynamoDB table."""
    item = metadata.resource.Table(metadata.table_name).get_item(Key={"image_id": image_id}).get("Item")
    return StoredImage.from_item(item) if item else None


@pytest.fixture(scope="function")
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"


@pytest.fixture(scope="function")
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        aws_region="us-east-1",
        aws_endpoint_url=None,
        upload_path=str(tmp_path / "uploads"),
        public_url="http://testserver",
        s3_bucket="image-gallery-bucket",
        dynamodb_table="Images",
        dynamodb_users_table="Users",
        max_file_size=10 * 1024 * 1024,
    )


@pytest.fixture(scope="function")
def test_app(aws_credentials, test_settings):
    with mock_aws():
        yield create_app(test_settings)


@pytest.fixture(scope="function")
def test_client(test_app):
    # Tables and the upload directory are created by the app lifespan
    with TestClient(test_app) as client:
        yield client


@pytest.fixture(scope="function")
def upload_dir(test_settings):
    return test_settings.upload_path
