"""Pydantic models for SafeSQL configuration."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import (
    BaseModel,
    Field,
    field_validator,
    model_validator,
    AliasChoices,
    ConfigDict,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError


class DatabaseType(str, Enum):
    """Supported database types."""
    MYSQL = "mysql"
    SQLITE = "sqlite"


class ConnectionPolicy(BaseModel):
    """Connection lifecycle, retry and diagnostics settings for one connection."""
    # Lifecycle
    idle_threshold: float = Field(default=60.0, ge=0, description="Seconds of inactivity before the connection is pinged")
    retry_attempts: int = Field(default=2, ge=1, le=20, description="Connection attempts before giving up")
    retry_delay: float = Field(default=0.15, ge=0, le=60.0, description="Delay between connection attempts in seconds")
    connect_timeout: int = Field(default=10, ge=1, le=3600, description="Driver connect timeout in seconds")

    # Statistics
    collect_stats: bool = Field(default=True, description="Record execution statistics")
    stats_capacity: int = Field(default=100, ge=1, le=100000, description="Maximum number of statistics records kept")

    # Diagnostics
    fail_on_nodata: bool = Field(default=False, description="Report an error when single-row helpers find no data")
    log_sql: Optional[str] = Field(default=None, description="File receiving every executed statement")
    log_sql_debug: bool = Field(default=False, description="Append the calling stack to logged statements")
    error_log: Optional[str] = Field(default=None, description="File receiving failed statements")


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    model_config = ConfigDict(populate_by_name=True)

    type: DatabaseType = Field(default=DatabaseType.MYSQL, validation_alias=AliasChoices("type", "driver"))
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = Field(default=None, validation_alias=AliasChoices("username", "user"))
    password: Optional[str] = None
    charset: Optional[str] = None
    socket: Optional[str] = None
    path: Optional[str] = None  # For SQLite
    url: Optional[str] = None
    policy: str = "default"
    options: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('port')
    def validate_port(cls, v):
        """Validate port number range."""
        if v is not None and (v < 1 or v > 65535):
            raise ValueError("Port must be between 1 and 65535")
        return v

    @model_validator(mode='after')
    def apply_url(self):
        """Fill unset connection fields from a SQLAlchemy-style URL."""
        if not self.url:
            return self
        try:
            url = make_url(self.url)
        except ArgumentError as e:
            raise ValueError(f"Invalid database url: {e}") from e

        backend = url.get_backend_name()
        try:
            object.__setattr__(self, "type", DatabaseType(backend))
        except ValueError as e:
            raise ValueError(f"Unsupported database url backend: {backend}") from e

        if self.type == DatabaseType.SQLITE:
            if not self.path:
                object.__setattr__(self, "path", url.database or ":memory:")
            return self

        fields = {
            "host": url.host,
            "port": url.port,
            "database": url.database,
            "username": url.username,
            "password": url.password,
            "charset": url.query.get("charset"),
            "socket": url.query.get("unix_socket"),
        }
        for name, value in fields.items():
            if getattr(self, name) is None and value is not None:
                object.__setattr__(self, name, value)
        return self

    @model_validator(mode='after')
    def validate_database_config(self):
        """Validate database-specific required fields."""
        if self.type == DatabaseType.SQLITE:
            if not (self.path or self.database):
                raise ValueError("SQLite databases require a 'path' or 'database' field")
            if not self.path:
                object.__setattr__(self, "path", self.database)
            return self
        if not (self.host or self.socket):
            raise ValueError(f"{self.type.value} databases require 'host' or 'socket' field")
        if not self.username:
            raise ValueError(f"{self.type.value} databases require 'username' field")
        return self

    def display_url(self) -> str:
        """Render the connection as a URL with the password masked."""
        if self.type == DatabaseType.SQLITE:
            return URL.create("sqlite", database=self.path).render_as_string()
        query = {"charset": self.charset} if self.charset else {}
        url = URL.create(
            "mysql+pymysql",
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
            query=query,
        )
        return url.render_as_string(hide_password=True)


class SafeSQLConfig(BaseModel):
    """Main configuration model for SafeSQL."""
    databases: Dict[str, DatabaseConfig]
    connection_policies: Dict[str, ConnectionPolicy] = Field(
        default_factory=lambda: {"default": ConnectionPolicy()}
    )
    default_database: Optional[str] = None

    @model_validator(mode='after')
    def validate_default_database(self):
        """Ensure default_database exists in databases."""
        if self.default_database and self.default_database not in self.databases:
            raise ValueError(f"default_database '{self.default_database}' not found in databases")
        return self

    @model_validator(mode='after')
    def set_default_database(self):
        """Set default database if not specified."""
        if not self.default_database and self.databases:
            self.default_database = next(iter(self.databases))
        return self

    @model_validator(mode='after')
    def validate_policies(self):
        """Ensure every database refers to a known connection policy."""
        if "default" not in self.connection_policies:
            self.connection_policies["default"] = ConnectionPolicy()
        for name, db_config in self.databases.items():
            if db_config.policy not in self.connection_policies:
                raise ValueError(
                    f"Database '{name}' refers to unknown connection policy '{db_config.policy}'"
                )
        return self

    def policy_for(self, db_name: str) -> ConnectionPolicy:
        return self.connection_policies[self.databases[db_name].policy]


class EnvironmentSettings(BaseSettings):
    """Environment-specific settings."""
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)
    config_file: Optional[str] = Field(default=None)
    default_database: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(env_prefix="SAFESQL_", case_sensitive=False)
