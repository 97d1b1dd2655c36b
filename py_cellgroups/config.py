"""Configuration management."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Dataset
    data_dir: Path = Field(default=Path("./data"), description="Directory holding the shapefile ZIP archive")
    extract_dir: Path = Field(default=Path("./temp_shp"), description="Scratch directory the archive is extracted into")
    cell_key_field: str = Field(default="CELL_KEY_I", description="Attribute carrying the cell identifier")

    # Areas
    area_label: str = Field(default="509188", description="Label stamped on every published area")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=3000, description="API port")
    static_dir: Path = Field(default=Path("./static"), description="Directory served at the site root")
    allowed_origins: str = Field(default="*", description="Comma separated CORS origins")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (plain, json)")

    @property
    def cors_origins(self) -> list[str]:
        """Split the configured origins into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


settings = Settings()
