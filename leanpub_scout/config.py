"""
Loading and validation of the LeanpubScout configuration.
Pydantic describes the schema and checks the values.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator, model_validator


class ScoutConfig(BaseModel):
    """Settings for a single scraping run."""
    model_config = ConfigDict(extra="forbid", frozen=True, validate_default=True)

    base_url: HttpUrl = Field("https://leanpub.com", description="Root URL of the publishing site.")
    timeout: float = Field(10.0, gt=0, description="Timeout for a single request (seconds).")
    user_agent: str = Field("LeanpubScout/0.1", min_length=1, description="User-Agent header.")
    rate_limit: float = Field(2.0, gt=0, description="Maximum requests per second.")
    retry_times: int = Field(3, ge=0, description="Retries on timeouts, network errors, 5xx and 429.")
    backoff_base: float = Field(1.0, ge=0, description="First retry delay, doubled on every retry.")
    backoff_max: float = Field(30.0, ge=0, description="Upper bound for a single retry delay.")
    concurrency: int = Field(4, ge=1, description="Category fetches in flight at once.")
    session_max_age: float = Field(1800.0, gt=0, description="Session freshness threshold (seconds).")
    reauth_limit: int = Field(1, ge=0, description="Re-authentications allowed per aggregation run.")
    session_cookie: str = Field("_leanpub_session", min_length=1, description="Session cookie name.")
    cookie_file: Optional[Path] = Field(None, description="Where to persist the session cookie.")

    @field_validator("base_url", mode="before")
    def _strip_trailing_slash(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("cookie_file", mode="before")
    def _expand_cookie_file(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    @model_validator(mode="after")
    def _check_backoff(self) -> ScoutConfig:
        if self.backoff_max < self.backoff_base:
            raise ValueError("backoff_max must be >= backoff_base")
        return self

    @property
    def site_root(self) -> str:
        """Base URL as a string without the trailing slash pydantic appends."""
        return str(self.base_url).rstrip("/")


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None] = None) -> ScoutConfig:
    """
    Read YAML or JSON and return a validated ScoutConfig.

    Without *path* the default ``configs/default.yaml`` is used when present,
    otherwise the built-in defaults.  An explicit path that does not exist
    raises FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return ScoutConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    return ScoutConfig(**data)
