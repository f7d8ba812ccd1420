from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


class SearchMode(str, Enum):
    ALL_SHEETS = "all_sheets"
    SINGLE_SHEET = "single_sheet"


class SheetsConfig(BaseModel):
    credentials_file: Optional[Path] = Field(
        None,
        description=(
            "Path to the Google service account JSON credentials; "
            "application default credentials are used when omitted"
        ),
    )

    @field_validator("credentials_file")
    @classmethod
    def _expand_credentials_path(cls, value: Path | None) -> Path | None:
        if value is None:
            return None
        return value.expanduser().resolve()


class SearchConfig(BaseModel):
    mode: SearchMode = Field(
        SearchMode.ALL_SHEETS,
        description="Search every tab of the workbook or only a fixed tab",
    )
    sheet_name: str = Field(
        "Events",
        description="Tab searched when mode is single_sheet",
    )
    name_column: str = Field(
        "Username",
        description="Column holding person names, as a letter or header text",
    )

    @field_validator("sheet_name", "name_column")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class ServerConfig(BaseModel):
    host: str = Field("0.0.0.0", description="Interface the HTTP service binds to")
    port: int = Field(8080, gt=0, lt=65536, description="Port the HTTP service listens on")
    api_token: str | None = Field(
        None,
        description="Explicit API token; if omitted the token is read from api_token_env",
    )
    api_token_env: str | None = Field(
        "API_TOKEN",
        description="Environment variable with the API token",
    )

    def resolve_api_token(self) -> str | None:
        token = self.api_token
        if not token and self.api_token_env:
            token = os.environ.get(self.api_token_env)
        return token or None


class NotificationsConfig(BaseModel):
    discord_webhook_url: str | None = Field(
        None,
        description="Explicit Discord webhook URL",
    )
    discord_webhook_url_env: str | None = Field(
        "DISCORD_WEBHOOK_URL",
        description="Environment variable with the Discord webhook URL",
    )
    timeout: float = Field(10.0, gt=0, description="Timeout in seconds for webhook calls")

    def resolve_webhook_url(self) -> str | None:
        url = self.discord_webhook_url
        if not url and self.discord_webhook_url_env:
            url = os.environ.get(self.discord_webhook_url_env)
        return url or None


class AppConfig(BaseModel):
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)
    departments: Dict[str, str] = Field(
        ...,
        description="Mapping of department code -> spreadsheet ID",
    )
    field_aliases: Dict[str, str] = Field(
        default_factory=dict,
        description="Mapping of short field codes -> full column header text",
    )
    search: SearchConfig = Field(default_factory=SearchConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)

    @field_validator("departments")
    @classmethod
    def _validate_departments(cls, value: Dict[str, str]) -> Dict[str, str]:
        if not value:
            raise ValueError("At least one department must be configured")
        for department, spreadsheet_id in value.items():
            if not department.strip() or not str(spreadsheet_id).strip():
                raise ValueError("Department codes and spreadsheet IDs must not be empty")
        return value

    @model_validator(mode="after")
    def _validate_aliases(self) -> "AppConfig":
        for alias, target in self.field_aliases.items():
            if not alias.strip() or not target.strip():
                msg = "Field aliases and their targets must not be empty"
                raise ValueError(msg)
        return self


def load_env_files(config_path: Path) -> None:
    """Load environment variables from .env files."""

    # Load default .env in current working directory if present
    load_dotenv(override=False)

    # Load .env placed next to the config file if it exists
    config_env = config_path.parent / ".env"
    if config_env.exists():
        load_dotenv(dotenv_path=config_env, override=False)


def load_config(path: str | Path) -> AppConfig:
    """Load configuration from a YAML file and return a validated object."""

    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if data is None:
        msg = f"Configuration file is empty: {config_path}"
        raise ValueError(msg)

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
