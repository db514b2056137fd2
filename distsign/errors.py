#!/usr/bin/env python3
"""
distsign error taxonomy

Transport and file-system problems (FetchError, KeyLoadError) are kept
apart from cryptographic failures (SecurityError and its subclasses) so an
operator can tell a flaky network from a server that is serving forged
content.
"""
from __future__ import annotations

from typing import Optional


class DistsignError(Exception):
    """Base class for all distsign errors."""


class ConfigError(DistsignError):
    """Raised when the configuration file is missing fields or invalid."""


class KeyLoadError(DistsignError):
    """Raised when a private key file cannot be read or parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"failed to load key {path!r}: {reason}")


class FetchError(DistsignError):
    """Raised on transport or local file-system failure during a fetch."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"fetching {url!r} failed: {reason}")


class ResponseTooLargeError(FetchError):
    """Raised when a response body is larger than the allowed limit."""

    def __init__(self, url: str, limit: int):
        self.limit = limit
        super().__init__(url, f"response body exceeds {limit} bytes")


class SecurityError(DistsignError):
    """Base class for cryptographic failures. Never retry these."""


class TrustError(SecurityError):
    """The signing-key bundle is not signed by any trusted root key."""

    def __init__(self, reason: str, key_url: str = "", signature_url: str = ""):
        self.reason = reason
        self.key_url = key_url
        self.signature_url = signature_url
        super().__init__(reason)


class ParseError(SecurityError):
    """Malformed key encoding, or a bundle that contains no keys."""

    def __init__(self, reason: str, url: str = ""):
        self.reason = reason
        self.url = url
        super().__init__(f"{url}: {reason}" if url else reason)


class VerificationError(SecurityError):
    """An artifact signature does not validate with any signing key."""

    def __init__(self, reason: str, url: str = "", signature_url: str = ""):
        self.reason = reason
        self.url = url
        self.signature_url = signature_url
        super().__init__(reason)
