"""Configuration management for the prototype store."""

import logging
import sys
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import StoreConfiguration


class ServerConfig(BaseSettings):
    """Server configuration loaded from ``PROTO_STORE_*`` environment variables (or ``.env``)."""

    model_config = SettingsConfigDict(
        env_prefix="PROTO_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Field(default=Path("public/data"), description="Directory holding <module>.json files")
    merge_dir: Path | None = Field(default=None, description="Merge drop folder (default <data_dir>/merge)")
    archive_dir_name: str = Field(default="_archive", description="Archive folder name inside data_dir")
    log_dir_name: str = Field(default="_log", description="Activity log folder name inside data_dir")
    json_indent: int | None = Field(default=None, ge=0, description="Indent for written JSON")
    merge_poll_interval: float = Field(default=2.0, gt=0, description="Seconds between merge folder scans")
    log_level: str = Field(default="INFO", description="Root logging level")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    def get_store_config(self) -> StoreConfiguration:
        """Build the StoreConfiguration the client is constructed from."""
        return StoreConfiguration(
            data_dir=self.data_dir,
            merge_dir=self.merge_dir,
            archive_dir_name=self.archive_dir_name,
            log_dir_name=self.log_dir_name,
            json_indent=self.json_indent,
        )


def setup_logging(level: str = "INFO") -> None:
    """Route the stdlib root logger to stderr (stdout belongs to the stdio transport)."""
    root = logging.getLogger()
    root.setLevel(level)
    has_console = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr for h in root.handlers
    )
    if not has_console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root.addHandler(handler)
