"""Configuration management with Pydantic Settings."""

import os
from typing import Any, Mapping, Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from s3du.models import ClientMode, ObjectVersions, Region, SizeUnit
from s3du.providers.base import ConfigurationError
from s3du.region import resolve_region
from s3du.utils.validators import (
    validate_bucket_name,
    validate_endpoint_url,
    validate_region_name,
)


class S3duConfig(BaseSettings):
    """s3du configuration, read from S3DU_* environment variables or .env."""

    mode: ClientMode = Field(default=ClientMode.CLOUDWATCH, validation_alias="S3DU_MODE")
    region: Optional[str] = Field(default=None, validation_alias="S3DU_REGION")
    endpoint: Optional[str] = Field(default=None, validation_alias="S3DU_ENDPOINT")
    bucket: Optional[str] = Field(default=None, validation_alias="S3DU_BUCKET")
    object_versions: ObjectVersions = Field(
        default=ObjectVersions.CURRENT, validation_alias="S3DU_OBJECT_VERSIONS"
    )
    include_multipart: bool = Field(default=False, validation_alias="S3DU_INCLUDE_MULTIPART")
    unit: SizeUnit = Field(default=SizeUnit.BINARY, validation_alias="S3DU_UNIT")
    concurrency: int = Field(default=4, ge=1, validation_alias="S3DU_CONCURRENCY")
    timeout: Optional[float] = Field(default=None, gt=0, validation_alias="S3DU_TIMEOUT")
    rate_limit: int = Field(default=100, ge=0, validation_alias="S3DU_RATE_LIMIT")
    log_file: Optional[str] = Field(default=None, validation_alias="LOG_FILE")
    verbose: bool = Field(default=False, validation_alias="VERBOSE")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    @field_validator("region")
    @classmethod
    def _check_region(cls, value: Optional[str]) -> Optional[str]:
        return validate_region_name(value) if value else None

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, value: Optional[str]) -> Optional[str]:
        return validate_endpoint_url(value) if value else None

    @field_validator("bucket")
    @classmethod
    def _check_bucket(cls, value: Optional[str]) -> Optional[str]:
        return validate_bucket_name(value) if value else None

    @model_validator(mode="after")
    def _check_mode_options(self) -> "S3duConfig":
        if self.mode is not ClientMode.S3:
            if self.endpoint:
                raise ValueError("--endpoint is only supported in s3 mode")
            if self.include_multipart:
                raise ValueError("--include-multipart is only supported in s3 mode")

        if self.include_multipart and self.object_versions is ObjectVersions.MULTIPART:
            raise ValueError(
                "--include-multipart cannot be combined with --object-versions multipart"
            )

        return self

    def client_region(self, environ: Optional[Mapping[str, str]] = None) -> Region:
        """Resolve the region AWS clients are created in.

        Args:
            environ: Environment to read AWS_REGION from, os.environ if None.

        Raises:
            ConfigurationError: If the region cannot be parsed.
        """
        region = resolve_region(self.region, os.environ if environ is None else environ)
        return region.with_endpoint(self.endpoint)


def load_config(**overrides: Any) -> S3duConfig:
    """Load configuration, letting explicit values override the environment.

    Args:
        overrides: Field values from the command line. None values are
            ignored so that the environment still applies.

    Returns:
        Validated configuration.

    Raises:
        ConfigurationError: If any value is invalid or values contradict.
    """
    values = {key: value for key, value in overrides.items() if value is not None}

    try:
        return S3duConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration:\n{e}") from e
