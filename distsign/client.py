#!/usr/bin/env python3
"""
distsign download client

Downloads files from an untrusted distribution server and validates them:

    root keys (compiled in) -(sign)-> distsign.pub -(sign)-> files

The signing-key bundle is fetched and re-validated before EVERY download;
nothing is cached between calls, so a rotated-out signing key stops being
trusted as soon as the server stops publishing it.

Server layout under the base URL:
    distsign.pub        newline-joined public signing key blocks
    distsign.pub.sig    raw Ed25519 signature of distsign.pub by a root key
    <path>              any distributable file
    <path>.sig          Ed25519ph signature of SHA-512(<path>) by a signing key
"""
from __future__ import annotations

import logging
import posixpath
import threading
import urllib.parse
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Type, Union

from distsign import modes
from distsign.errors import (
    ParseError,
    ResponseTooLargeError,
    SecurityError,
    TrustError,
    VerificationError,
)
from distsign.fetch import Fetcher, ProgressCallback
from distsign.keys import SIGNATURE_SIZE, compute_key_id, parse_bundle
from distsign.signer import BUNDLE_SIZE_LIMIT
from distsign.trust import TrustStore, default_trust_store

logger = logging.getLogger(__name__)

SIGNING_KEYS_PATH = "distsign.pub"
SIGNATURE_SUFFIX = ".sig"

SIGNING_KEYS_SIZE_LIMIT = BUNDLE_SIZE_LIMIT
DOWNLOAD_SIZE_LIMIT = 1 << 29  # 512 MiB
SIGNATURE_SIZE_LIMIT = SIGNATURE_SIZE


@dataclass(frozen=True)
class DownloadResult:
    """A download whose signature has been validated."""

    url: str
    signature_url: str
    path: Path
    sha512: str
    size: int


class Client:
    """Downloads and validates files from one distribution server.

    The client holds no per-call state, so one instance can serve
    concurrent downloads from several threads.
    """

    def __init__(
        self,
        base_url: str,
        trust_store: TrustStore,
        fetcher: Optional[Fetcher] = None,
    ):
        parts = urllib.parse.urlsplit(base_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"invalid base URL {base_url!r}: need an http(s) URL with a host")
        self._base = parts._replace(query="", fragment="")
        self.trust_store = trust_store
        self.fetcher = fetcher or Fetcher()

    @classmethod
    def from_config(cls, config, trust_store: Optional[TrustStore] = None) -> "Client":
        """Build a client from a ``DistsignConfig``, trusting the compiled-in roots by default."""
        if not config.base_url:
            raise ValueError("base_url is not configured")
        fetcher = Fetcher(
            timeout=config.timeout_seconds,
            user_agent=config.user_agent,
            chunk_size=config.chunk_size,
        )
        return cls(config.base_url, trust_store or default_trust_store(), fetcher=fetcher)

    @property
    def base_url(self) -> str:
        return urllib.parse.urlunsplit(self._base)

    def url(self, path: str) -> str:
        """Resolve *path* against the base URL.

        ``.`` and ``..`` segments are cleaned first and cannot climb above
        the base path.
        """
        cleaned = posixpath.normpath("/" + path.lstrip("/"))
        if cleaned == "/":
            raise ValueError(f"invalid source path {path!r}")
        joined = self._base.path.rstrip("/") + cleaned
        return urllib.parse.urlunsplit(self._base._replace(path=joined))

    def signing_keys(
        self,
        *,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> List[bytes]:
        """Fetch the current signing keys and validate them against the roots.

        Raises:
            FetchError: If the bundle or its signature cannot be fetched.
            TrustError: If no root key validates the bundle.
            ParseError: If the bundle is malformed or holds no keys.
        """
        key_url = self.url(SIGNING_KEYS_PATH)
        sig_url = key_url + SIGNATURE_SUFFIX

        raw = self.fetcher.fetch_to_memory(
            key_url, SIGNING_KEYS_SIZE_LIMIT, cancel=cancel, deadline=deadline
        )
        sig = self._fetch_signature(sig_url, key_url, TrustError, cancel, deadline)

        if not self.trust_store.verify_bundle(raw, sig):
            logger.warning(
                "SECURITY: signing key bundle %s failed root key validation", key_url
            )
            raise TrustError(
                f"signature {sig_url!r} for key {key_url!r} does not validate with any "
                f"known root key; either you are under attack, or running a very old "
                f"release with outdated root keys",
                key_url=key_url,
                signature_url=sig_url,
            )

        try:
            keys = parse_bundle(raw)
        except ParseError as e:
            logger.warning("SECURITY: signed key bundle %s is malformed: %s", key_url, e.reason)
            raise ParseError(e.reason, url=key_url) from e

        logger.info(
            "Validated %d signing key(s) from %s: %s",
            len(keys), key_url, ", ".join(compute_key_id(k) for k in keys),
        )
        return keys

    def download(
        self,
        source_path: str,
        dest_path: Union[str, Path],
        *,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> DownloadResult:
        """Download *source_path* to *dest_path* and validate its signature.

        The detached signature is fetched before the file, so a missing or
        malformed signature leaves *dest_path* untouched, and a failed file
        transfer removes what it wrote. Only on VerificationError has
        *dest_path* been fully written; it must be treated as untrusted and
        deleting it is up to the caller.

        Raises:
            FetchError: On transport or file-system failure.
            TrustError, ParseError: If the signing keys cannot be trusted.
            VerificationError: If no signing key validates the file.
        """
        # Always fetch fresh signing keys.
        signing_keys = self.signing_keys(cancel=cancel, deadline=deadline)

        src_url = self.url(source_path)
        sig_url = src_url + SIGNATURE_SUFFIX
        dest_path = Path(dest_path)

        # Signature first: dest_path is never written without one to check.
        sig = self._fetch_signature(sig_url, src_url, VerificationError, cancel, deadline)
        digest = self.fetcher.fetch_to_file(
            src_url, dest_path, DOWNLOAD_SIZE_LIMIT,
            cancel=cancel, deadline=deadline, progress=progress,
        )

        if not modes.verify_any(signing_keys, digest, sig, modes.PREHASH_SHA512):
            logger.warning("SECURITY: signature %s does not validate %s", sig_url, src_url)
            raise VerificationError(
                f"signature {sig_url!r} for {src_url!r} does not validate with the current "
                f"signing keys; either you are under attack, or attempting to download an "
                f"old release which was signed with an older signing key",
                url=src_url,
                signature_url=sig_url,
            )

        result = DownloadResult(
            url=src_url,
            signature_url=sig_url,
            path=dest_path,
            sha512=digest.hexdigest(),
            size=dest_path.stat().st_size,
        )
        logger.info("Downloaded and verified %s (%d bytes)", src_url, result.size)
        return result

    def _fetch_signature(
        self,
        sig_url: str,
        signed_url: str,
        error_cls: Type[SecurityError],
        cancel: Optional[threading.Event],
        deadline: Optional[float],
    ) -> bytes:
        """Fetch a detached signature; any length but the exact size is malformed."""
        try:
            sig = self.fetcher.fetch_to_memory(
                sig_url, SIGNATURE_SIZE_LIMIT, cancel=cancel, deadline=deadline
            )
        except ResponseTooLargeError as e:
            logger.warning("SECURITY: oversized signature at %s", sig_url)
            raise self._malformed(error_cls, sig_url, signed_url, "longer") from e
        if len(sig) != SIGNATURE_SIZE:
            logger.warning("SECURITY: truncated signature at %s", sig_url)
            raise self._malformed(error_cls, sig_url, signed_url, "shorter")
        return sig

    @staticmethod
    def _malformed(error_cls, sig_url: str, signed_url: str, how: str) -> SecurityError:
        reason = f"signature {sig_url!r} is {how} than {SIGNATURE_SIZE} bytes"
        if error_cls is TrustError:
            return TrustError(reason, key_url=signed_url, signature_url=sig_url)
        return VerificationError(reason, url=signed_url, signature_url=sig_url)
