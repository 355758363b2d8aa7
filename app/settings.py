from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional

class Settings(BaseSettings):
    app_title: str = Field("Image Upload Service")
    base_url: str = Field("http://localhost:5000")
    port: int = Field(5000)

    # Comma separated list of exact-match origins, "*" allows any
    cors_origins: str = Field("*")

    upload_dir: str = Field("uploads")
    metadata_dir: str = Field("metadata")

    max_upload_files: int = Field(50)
    max_upload_bytes: int = Field(10 * 1024 * 1024)
    allowed_content_types: str = Field("image/jpeg,image/png,image/gif")
    compress_uploads: bool = Field(True)
    jpeg_quality: int = Field(80, ge=1, le=95)
    upload_requires_auth: bool = Field(False)

    display_width: int = Field(900, gt=0)
    default_page_size: int = Field(15)
    max_page_size: int = Field(100)

    # Path to, or inline JSON of, a Firebase service account
    firebase_credentials: Optional[str] = Field(None)
    firebase_project_id: Optional[str] = Field(None)

    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def allowed_content_type_set(self) -> set:
        return {t.strip().lower() for t in self.allowed_content_types.split(",") if t.strip()}

settings = Settings()
