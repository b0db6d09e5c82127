from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Literal, Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    app_title: str = Field("Image Gallery Service")
    port: int = Field(8000)
    log_level: str = Field("INFO")

    # Public base used to build image URLs, e.g. https://gallery.example.com
    public_url: Optional[str] = Field(None)
    # Comma separated list of browser origins allowed by CORS
    frontend_origin: str = Field("http://localhost:5173")

    storage_backend: Literal["local", "s3"] = Field("local")
    upload_path: str = Field("uploads")
    max_file_size: int = Field(10 * 1024 * 1024, gt=0)

    aws_region: str = Field("us-east-1")
    aws_endpoint_url: Optional[str] = Field(None)
    aws_access_key_id: str = Field("test")
    aws_secret_access_key: str = Field("test")
    s3_bucket: str = Field("image-gallery-bucket")
    dynamodb_table: str = Field("Images")
    dynamodb_users_table: str = Field("Users")

    # Placeholder identity until authentication exists
    demo_user_email: str = Field("demo@example.com")
    demo_username: str = Field("demo")

    @property
    def public_base(self) -> str:
        return (self.public_url or f"http://localhost:{self.port}").rstrip("/")

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.frontend_origin.split(",") if o.strip()]

settings = Settings()
