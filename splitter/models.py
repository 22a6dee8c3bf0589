"""Pydantic models for run parameters."""

import hashlib
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from common.constants import (
    DEFAULT_DIGEST_ALGORITHM,
    DEFAULT_PREFIX,
    DEFAULT_SUFFIX_LENGTH,
    MAX_SUFFIX_LENGTH,
)
from splitter.exceptions import ConfigError


class RemoteTarget(BaseModel):
    """Remote bucket and name prefix that chunks are synced to."""
    model_config = ConfigDict(frozen=True)

    bucket: str = Field(min_length=1)
    path: str = ""

    def object_name(self, filename: str) -> str:
        return f"{self.path}{filename}"


class RunConfiguration(BaseModel):
    """Validated parameters for one split run."""
    model_config = ConfigDict(frozen=True)

    source_path: Path
    output_dir: Path
    prefix: str = Field(default=DEFAULT_PREFIX, min_length=1)
    chunk_size_bytes: int = Field(gt=0)
    safety_buffer_bytes: int = Field(default=0, ge=0)
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM
    suffix_length: int = Field(default=DEFAULT_SUFFIX_LENGTH, ge=1, le=MAX_SUFFIX_LENGTH)
    remote: Optional[RemoteTarget] = None

    @field_validator("prefix")
    @classmethod
    def _prefix_is_a_filename(cls, value: str) -> str:
        if "/" in value or "\\" in value:
            raise ValueError("prefix must not contain path separators")
        return value

    @field_validator("digest_algorithm")
    @classmethod
    def _digest_is_known(cls, value: str) -> str:
        value = value.lower()
        if value not in hashlib.algorithms_available:
            raise ValueError(f"unknown digest algorithm: {value}")
        if value.startswith("shake_"):
            raise ValueError("variable-length digests are not supported")
        return value

    @property
    def sync_enabled(self) -> bool:
        return self.remote is not None

    @property
    def digest_extension(self) -> str:
        return self.digest_algorithm


def load_run_configuration(**params) -> RunConfiguration:
    """
    Build a RunConfiguration, converting validation errors to ConfigError.

    Raises:
        ConfigError: If any parameter is missing or out of range
    """
    try:
        return RunConfiguration(**params)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid run configuration: {problems}") from e
