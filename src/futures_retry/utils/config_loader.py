"""Configuration loader."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator


class HandlerConfig(BaseModel):
    """Error handler settings."""

    model_config = ConfigDict(validate_assignment=True)

    strategy: Literal["io", "exponential"] = Field(
        "io", description="IoErrorHandler or ExponentialBackoff"
    )
    max_attempts: int = Field(3, ge=1, description="Failures tolerated before giving up")
    min_wait: float = Field(0.005, ge=0, description="First delay of the io strategy (s)")
    max_wait: float = Field(1.0, ge=0, description="Delay bound of the io strategy (s)")
    base_delay: float = Field(1.0, ge=0, description="First delay of the exponential strategy (s)")
    max_delay: float = Field(30.0, ge=0, description="Delay cap of the exponential strategy (s)")

    @model_validator(mode="after")
    def check_wait_bounds(self) -> "HandlerConfig":
        if self.max_wait < self.min_wait:
            raise ValueError("max_wait must not be lower than min_wait")
        return self


class ServerConfig(BaseModel):
    """Echo server/client address."""

    model_config = ConfigDict(validate_assignment=True)

    host: str = "127.0.0.1"
    port: int = Field(12345, ge=0, le=65535)


class LoggingConfig(BaseModel):
    """Logging settings."""

    model_config = ConfigDict(validate_assignment=True)

    level: str = "INFO"
    json_output: bool = False


class RetryConfig(BaseModel):
    """Top-level configuration model."""

    model_config = ConfigDict(validate_assignment=True)

    handler: HandlerConfig = Field(default_factory=HandlerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: str | Path | None = None) -> RetryConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file, None for the defaults

    Returns:
        Loaded configuration

    Raises:
        FileNotFoundError: If config file not found
        yaml.YAMLError: If config file is invalid
        pydantic.ValidationError: If a value is out of range
    """
    if config_path is None:
        return RetryConfig()

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f)

    return RetryConfig.model_validate({} if config_data is None else config_data)
