"""Application settings and configuration management using Pydantic."""

import json
from functools import lru_cache
from typing import Annotated, Dict, List, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode

from ..core.models import Horizon

# Momentum strategy universe
DEFAULT_MOMENTUM_TICKERS = [
    "SPY",
    "QQQ",
    "IWM",
    "VTI",
    "VEA",
    "VWO",
    "TLT",
    "BWX",
    "BND",
    "PDBC",
    "GLDM",
    "IBIT",
]

DEFAULT_HOT_TICKERS = ["SPY", "QQQ", "VTI", "IWM"]


class Settings(BaseSettings):
    """Main application settings combining all configuration sections."""

    # Environment and deployment
    environment: str = "development"
    debug: bool = False

    # API settings
    endpoint_host: str = "0.0.0.0"
    endpoint_port: int = 8000
    api_reload: bool = False
    api_log_level: str = "INFO"

    # Distributed cache (Redis) settings; an empty host means fallback-only
    redis_host: Optional[str] = None
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0
    redis_timeout_seconds: float = 2.0

    # Cache settings
    cache_ttl_seconds: int = 86400
    cache_key_prefix: str = "momentum"
    fallback_cache_max_entries: int = 1000
    cache_warm_on_startup: bool = True
    hot_tickers: Annotated[List[str], NoDecode] = DEFAULT_HOT_TICKERS

    # Scheduler settings; an interval of 0 disables the job
    health_check_interval_seconds: int = 30
    cache_warm_interval_minutes: int = 360

    # Momentum settings
    momentum_tickers: Annotated[List[str], NoDecode] = DEFAULT_MOMENTUM_TICKERS
    momentum_horizon_weeks: Annotated[List[int], NoDecode] = [1, 4, 12, 26, 52]
    # Composite weighting table keyed by horizon name, e.g. {"12w": 0.6, "52w": 0.4}
    momentum_weights: Optional[Dict[str, float]] = None
    history_years: int = 2
    upstream_timeout_seconds: float = 15.0

    # Rate limit settings
    rate_limit_global_per_minute: int = 100
    rate_limit_read_per_minute: int = 60
    rate_limit_compute_per_minute: int = 30
    rate_limit_admin_requests: int = 10
    rate_limit_admin_window_seconds: int = 900

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "structured"  # 'structured' or 'plain'
    log_file_enabled: bool = False
    log_file_path: str = "data/momentum_rider.log"
    log_max_file_size: str = "10MB"
    log_backup_count: int = 5

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",  # Ignore extra environment variables
    }

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        valid_environments = ["development", "testing", "production"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v.lower()

    @field_validator("endpoint_port", "redis_port")
    @classmethod
    def validate_port(cls, v):
        """Validate port number is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator(
        "cache_ttl_seconds",
        "fallback_cache_max_entries",
        "history_years",
        "rate_limit_global_per_minute",
        "rate_limit_read_per_minute",
        "rate_limit_compute_per_minute",
        "rate_limit_admin_requests",
        "rate_limit_admin_window_seconds",
    )
    @classmethod
    def validate_positive_int(cls, v):
        """Validate counts, quotas and durations are positive."""
        if v < 1:
            raise ValueError("Value must be a positive integer")
        return v

    @field_validator("health_check_interval_seconds", "cache_warm_interval_minutes")
    @classmethod
    def validate_interval(cls, v):
        """Validate scheduler intervals are not negative."""
        if v < 0:
            raise ValueError("Interval must not be negative")
        return v

    @field_validator("redis_timeout_seconds", "upstream_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v):
        """Validate timeouts are bounded and positive."""
        if v <= 0 or v > 120:
            raise ValueError("Timeout must be between 0 and 120 seconds")
        return v

    @field_validator("hot_tickers", "momentum_tickers", "momentum_horizon_weeks", mode="before")
    @classmethod
    def split_comma_separated(cls, v):
        """Accept 'SPY,QQQ' or a JSON array from the environment."""
        if isinstance(v, str):
            text = v.strip()
            if text.startswith("["):
                return json.loads(text)
            return [item.strip() for item in text.split(",") if item.strip()]
        return v

    @field_validator("momentum_horizon_weeks")
    @classmethod
    def validate_horizons(cls, v):
        """Validate horizons are unique positive week counts."""
        if not v:
            raise ValueError("At least one momentum horizon is required")
        if any(weeks < 1 for weeks in v):
            raise ValueError("Horizons must be positive week counts")
        if len(set(v)) != len(v):
            raise ValueError("Horizons must be unique")
        return sorted(v)

    @field_validator("hot_tickers", "momentum_tickers")
    @classmethod
    def validate_tickers(cls, v):
        """Normalize ticker lists to upper case."""
        return [ticker.strip().upper() for ticker in v if ticker.strip()]

    @field_validator("log_level", "api_log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format."""
        valid_formats = ["structured", "plain"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    @model_validator(mode="after")
    def validate_weights(self):
        """Weights must name configured horizons and carry some positive weight."""
        if self.momentum_weights is None:
            return self
        horizon_names = {Horizon(weeks).name for weeks in self.momentum_horizon_weeks}
        unknown = sorted(set(self.momentum_weights) - horizon_names)
        if unknown:
            raise ValueError(f"Weights reference unknown horizons: {unknown}")
        if any(weight < 0 for weight in self.momentum_weights.values()):
            raise ValueError("Weights must not be negative")
        if sum(self.momentum_weights.values()) <= 0:
            raise ValueError("Weights must assign a positive total weight")
        return self

    def is_redis_configured(self) -> bool:
        """Check whether a distributed cache host was supplied."""
        return bool(self.redis_host and self.redis_host.strip())

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
