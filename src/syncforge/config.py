"""
Configuration system for syncforge using Pydantic.

Saved connection profiles, comparison settings and logging live in one
YAML file, by default ``~/.syncforge/config.yaml``.
"""

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError
from .statements import Dialect, resolve_dialect


DEFAULT_PORTS: Dict[Dialect, int] = {
    Dialect.MYSQL: 3306,
    Dialect.POSTGRESQL: 5432,
    Dialect.SQLITE: 0,
    Dialect.SQLSERVER: 1433,
}


class ConnectionTarget(BaseModel):
    """Where a database lives and how to log in to it."""

    dialect: Dialect = Field(Dialect.MYSQL, description="Database type")
    host: str = Field("localhost", description="Database host")
    port: Optional[int] = Field(None, description="Database port")
    user: str = Field("", description="Database user")
    password: str = Field("", description="Database password")
    database: str = Field("", description="Database name")
    file_path: Optional[str] = Field(None, description="SQLite database file")
    connect_timeout: float = Field(10.0, description="Connection timeout in seconds")
    odbc_driver: str = Field(
        "ODBC Driver 18 for SQL Server", description="ODBC driver name (SQL Server)"
    )

    @field_validator("dialect", mode="before")
    @classmethod
    def validate_dialect(cls, v):
        try:
            return resolve_dialect(v)
        except Exception as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def check_target(self) -> "ConnectionTarget":
        if self.dialect == Dialect.SQLITE:
            if not self.file_path:
                raise ValueError("SQLite requires a file path")
        elif self.port is None:
            self.port = DEFAULT_PORTS[self.dialect]
        return self

    @property
    def display_name(self) -> str:
        """Short human-readable location of the database."""
        if self.dialect == Dialect.SQLITE:
            return f"sqlite:{self.file_path}"
        return f"{self.dialect.value}://{self.host}:{self.port}/{self.database}"


class DiffSettings(BaseModel):
    """Comparison settings."""

    sort_data_diff: bool = Field(
        True, description="Sort data differences by kind and primary key"
    )
    sync_insert: bool = Field(True, description="Report rows missing from the target")
    sync_update: bool = Field(True, description="Report rows that differ")
    sync_delete: bool = Field(True, description="Report rows missing from the source")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class SyncForgeConfig(BaseSettings):
    """Main syncforge configuration."""

    connections: Dict[str, ConnectionTarget] = Field(
        default_factory=dict, description="Saved connection profiles"
    )
    diff: DiffSettings = Field(
        default_factory=DiffSettings, description="Comparison settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = ConfigDict(
        env_file=".env",
        env_prefix="SYNCFORGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def default_path() -> Path:
        """Location of the per-user configuration file."""
        return Path.home() / ".syncforge" / "config.yaml"

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SyncForgeConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            # Expand environment variables in the data
            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def load_or_create(cls, path: Union[str, Path, None] = None) -> "SyncForgeConfig":
        """Load the configuration file, or return an empty one if it does not exist."""
        path = Path(path) if path else cls.default_path()
        if not path.exists():
            return cls()
        return cls.from_yaml(path)

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def get_connection(self, name: str) -> ConnectionTarget:
        """Get a saved connection profile by name."""
        if name not in self.connections:
            raise ConfigurationError(f"Connection profile '{name}' not found")
        return self.connections[name]

    def save_connection(self, name: str, target: ConnectionTarget) -> None:
        """Add or replace a connection profile."""
        self.connections[name] = target

    def delete_connection(self, name: str) -> bool:
        """Remove a connection profile. Returns False if it did not exist."""
        return self.connections.pop(name, None) is not None

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                self.model_dump(mode="json", exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )
        # profiles hold passwords
        os.chmod(path, 0o600)
