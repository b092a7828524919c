from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, PrivateAttr, model_validator
from typing import Optional
from dotenv import load_dotenv, find_dotenv

from hlvs.utils.error_handler import RetryPolicy


class GeminiConfig(BaseSettings):
    """Gemini inference endpoint configuration."""

    api_key: Optional[str] = Field(default=None)
    model_name: str = Field(default="gemini-2.5-flash-preview-09-2025")
    base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta/models")
    operation: str = Field(default="generateContent")
    timeout: Optional[float] = Field(default=None, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False,
        protected_namespaces=()
    )

    def __init__(self, **kwargs):
        # Force load environment variables before validation
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)


class RetryConfig(BaseSettings):
    """Backoff schedule for remote calls."""

    max_attempts: int = Field(default=5, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="RETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False
    )

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            multiplier=self.multiplier,
        )


class SamplingConfig(BaseSettings):
    """
    Frame sampling and segmentation.

    scale is applied to the native resolution, jpeg_quality is on a 0-1 scale.
    """

    frame_count: int = Field(default=12, ge=1)
    segment_count: int = Field(default=3, ge=1)
    scale: float = Field(default=0.5, gt=0, le=1)
    jpeg_quality: float = Field(default=0.6, gt=0, le=1)

    model_config = SettingsConfigDict(
        env_prefix="SAMPLING_",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False
    )

    def __init__(self, **kwargs):
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)

    @model_validator(mode="after")
    def check_segments_fit_frames(self):
        if self.segment_count > self.frame_count:
            raise ValueError(
                f"segment_count ({self.segment_count}) cannot exceed frame_count ({self.frame_count})"
            )
        return self


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    enable_console: bool = Field(default=True)
    log_file: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False
    )


class HLVSConfig(BaseSettings):
    """Main configuration class."""

    # Application settings
    app_name: str = Field(default="HLVS")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
        extra="ignore",
        case_sensitive=False
    )

    # Cached sub-configurations
    _gemini: Optional[GeminiConfig] = PrivateAttr(default=None)
    _retry: Optional[RetryConfig] = PrivateAttr(default=None)
    _sampling: Optional[SamplingConfig] = PrivateAttr(default=None)
    _logging: Optional[LoggingConfig] = PrivateAttr(default=None)

    def __init__(self, **kwargs):
        # Force load environment variables before initializing
        load_dotenv(find_dotenv())
        super().__init__(**kwargs)

    @property
    def gemini(self) -> GeminiConfig:
        if self._gemini is None:
            self._gemini = GeminiConfig()
        return self._gemini

    @property
    def retry(self) -> RetryConfig:
        if self._retry is None:
            self._retry = RetryConfig()
        return self._retry

    @property
    def sampling(self) -> SamplingConfig:
        if self._sampling is None:
            self._sampling = SamplingConfig()
        return self._sampling

    @property
    def logging(self) -> LoggingConfig:
        if self._logging is None:
            self._logging = LoggingConfig()
        return self._logging
