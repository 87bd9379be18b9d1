"""Configuration management for the nodeflow service.

Every field of ``AppConfig`` can be set from the environment as
``NODEFLOW_<FIELD NAME IN UPPER CASE>``; a ``.env`` file is read first
when present.
"""

import os
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, field_validator
from enum import Enum

ENV_PREFIX = "NODEFLOW_"

TRUTHY = ("true", "1", "yes", "on")


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StoreBackend(str, Enum):
    """Supported workflow store backends."""
    MEMORY = "memory"
    DATABASE = "database"


class AppConfig(BaseModel):
    """Application configuration settings."""

    # Application
    app_name: str = Field(default="nodeflow", description="Service name reported by /health")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False, description="Enable debug mode and access logs")

    # Server
    host: str = Field(default="0.0.0.0", description="Interface to bind")
    port: int = Field(default=8080, description="TCP port to bind")
    reload: bool = Field(default=False, description="Restart the server on code changes")

    # Workflow store
    store_backend: StoreBackend = Field(default=StoreBackend.MEMORY)
    database_url: str = Field(
        default="sqlite:///./nodeflow.db",
        description="SQLAlchemy URL, used by the database store backend"
    )
    database_echo: bool = Field(default=False, description="Log every SQL statement")

    # Execution
    max_parallel_nodes: int = Field(
        default=1,
        description="Worker threads per execution; 1 runs nodes sequentially in plan order"
    )
    timer_max_interval: float = Field(
        default=300.0,
        description="Upper bound in seconds for timer node waits"
    )

    # Logging
    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_format: Optional[str] = Field(default=None, description="Plain text format string override")
    log_file: Optional[str] = Field(default=None, description="Rotating log file path")
    log_max_size: int = Field(default=10 * 1024 * 1024, description="Bytes before the log file rotates")
    log_backup_count: int = Field(default=5)
    log_structured: bool = Field(default=False, description="Emit JSON log lines")

    cors_origins: List[str] = Field(default=["*"], description="Allowed CORS origins")

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v):
        if '://' not in v:
            raise ValueError("Database URL must be of the form scheme://...")
        return v

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator('max_parallel_nodes')
    @classmethod
    def validate_max_parallel_nodes(cls, v):
        if v < 1:
            raise ValueError("Maximum parallel nodes must be at least 1")
        return v

    @field_validator('timer_max_interval')
    @classmethod
    def validate_timer_max_interval(cls, v):
        if v < 0:
            raise ValueError("Timer maximum interval cannot be negative")
        return v

    @field_validator('store_backend', mode='before')
    @classmethod
    def normalize_store_backend(cls, v):
        return v.lower() if isinstance(v, str) else v

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator('cors_origins', mode='before')
    @classmethod
    def split_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.lower().startswith('sqlite')

    @property
    def is_production(self) -> bool:
        return not self.debug and not self.reload

    def get_uvicorn_config(self) -> Dict[str, Any]:
        """Keyword arguments for ``uvicorn.run``."""
        return {
            "host": self.host,
            "port": self.port,
            "reload": self.reload,
            "log_level": self.log_level.value.lower(),
            "access_log": self.debug
        }

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Build a configuration from ``NODEFLOW_*`` environment variables.

        Unset variables fall back to the field defaults. Boolean fields
        accept true/1/yes/on; anything else is false.
        """
        values: Dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            values[name] = raw.lower() in TRUTHY if field.annotation is bool else raw
        return cls.model_validate(values)


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, reading the environment once."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Read a dotenv file (``.env`` by default) into the environment and reload."""
    global _config
    from dotenv import load_dotenv

    path = config_file if config_file and os.path.exists(config_file) else '.env'
    if os.path.exists(path):
        load_dotenv(path)

    _config = AppConfig.from_env()
    return _config


def reset_config():
    global _config
    _config = None


def _ensure_directory(path: str, purpose: str, errors: List[str]) -> None:
    directory = os.path.dirname(path)
    if not directory or os.path.isdir(directory):
        return
    try:
        os.makedirs(directory, exist_ok=True)
    except OSError as e:
        errors.append(f"Cannot create {purpose} directory {directory}: {e}")


def validate_config(config: AppConfig) -> None:
    """Prepare directories the configuration points at.

    Raises:
        ConfigurationError: If a required directory cannot be created
    """
    from .core.exceptions import ConfigurationError

    errors: List[str] = []

    if config.store_backend == StoreBackend.DATABASE and config.is_sqlite:
        db_path = config.database_url.split(":///", 1)[-1]
        if db_path != ":memory:":
            _ensure_directory(db_path, "database", errors)

    if config.log_file:
        _ensure_directory(config.log_file, "log", errors)

    if errors:
        raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")


def get_development_config() -> AppConfig:
    return AppConfig(
        debug=True,
        reload=True,
        log_level=LogLevel.DEBUG,
        database_echo=True
    )


def get_production_config() -> AppConfig:
    return AppConfig(
        store_backend=StoreBackend.DATABASE,
        log_structured=True,
        cors_origins=[]
    )


def get_testing_config() -> AppConfig:
    return AppConfig(
        debug=True,
        store_backend=StoreBackend.MEMORY,
        database_url="sqlite:///:memory:",
        log_level=LogLevel.WARNING,
        timer_max_interval=1.0
    )
