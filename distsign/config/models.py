"""
Pydantic models for distsign configuration validation.

The configuration file (``~/.distsign/config.yaml``) only tunes the
client transport. Root keys are deliberately NOT configurable: they are
compiled into the package (see ``distsign.config.root_keys``).
"""

from __future__ import annotations

import urllib.parse
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from distsign import __version__


class DistsignConfig(BaseModel):
    """Top-level configuration file schema."""
    base_url: Optional[str] = None
    timeout_seconds: float = Field(default=30.0, gt=0)
    user_agent: str = Field(default=f"distsign/{__version__}", min_length=1)
    chunk_size: int = Field(default=1024 * 1024, gt=0, le=64 * 1024 * 1024)

    model_config = {"extra": "forbid"}

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        parts = urllib.parse.urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"base_url must be an http(s) URL with a host, got {v!r}")
        return v
