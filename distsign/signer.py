#!/usr/bin/env python3
"""
distsign signers

A Signer wraps one private key loaded from disk. Two roles exist:

- RootKey signs signing-key bundles (raw mode).
- SigningKey signs SHA-512 digests of artifacts (pre-hash mode).
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from distsign import modes
from distsign.errors import KeyLoadError, ParseError
from distsign.keys import (
    PRIVATE_KEY_SIZE,
    SEED_SIZE,
    compute_key_id,
    parse_bundle,
    parse_private_key,
)

logger = logging.getLogger(__name__)

BUNDLE_SIZE_LIMIT = 1 << 20  # 1 MiB

_FILE_CHUNK_SIZE = 1024 * 1024


class Signer:
    """Signs messages or digests with a single Ed25519 private key."""

    def __init__(self, private_key: bytes):
        if len(private_key) != PRIVATE_KEY_SIZE:
            raise ValueError("private key has incorrect length for an Ed25519 private key")
        self._private_key = bytes(private_key)

    @classmethod
    def load(cls, path: Union[str, Path]):
        """Load a private key from a file written by ``generate_keypair``.

        Raises:
            KeyLoadError: If the file is unreadable or not a valid key.
        """
        path = Path(path)
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise KeyLoadError(str(path), e.strerror or str(e)) from e
        try:
            private_key = parse_private_key(raw)
        except ParseError as e:
            raise KeyLoadError(str(path), e.reason) from e
        signer = cls(private_key)
        logger.debug("Loaded %s %s from %s", cls.__name__, signer.key_id, path)
        return signer

    @property
    def public_key(self) -> bytes:
        return self._private_key[SEED_SIZE:]

    @property
    def key_id(self) -> str:
        return compute_key_id(self.public_key)

    def sign_raw(self, message: bytes) -> bytes:
        """Sign *message* directly, without pre-hashing."""
        return modes.sign(self._private_key, message, modes.RAW)

    def sign_prehashed(self, digest) -> bytes:
        """Sign a ``Crypto.Hash.SHA512`` digest with Ed25519ph."""
        return modes.sign(self._private_key, digest, modes.PREHASH_SHA512)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key_id={self.key_id!r})"


class RootKey(Signer):
    """Root signer. Only signs bundles of public signing keys."""

    def sign_signing_keys(self, bundle: bytes) -> bytes:
        """Sign a signing-key bundle (newline-joined public-key blocks).

        The bundle is parsed first so a root key never vouches for
        something clients would reject anyway.
        """
        if len(bundle) > BUNDLE_SIZE_LIMIT:
            raise ValueError(f"signing key bundle is larger than {BUNDLE_SIZE_LIMIT} bytes")
        keys = parse_bundle(bundle)
        logger.info("Root key %s signing bundle of %d key(s)", self.key_id, len(keys))
        return self.sign_raw(bundle)


class SigningKey(Signer):
    """Artifact signer. Signs SHA-512 digests of distributable files."""

    def sign_package_hash(self, digest) -> bytes:
        return self.sign_prehashed(digest)

    def sign_file(self, path: Union[str, Path]) -> bytes:
        """Stream *path* through SHA-512 and sign the digest."""
        digest = sha512_file(path)
        return self.sign_package_hash(digest)


def sha512_file(path: Union[str, Path]):
    """Compute a ``Crypto.Hash.SHA512`` digest of a file, in chunks."""
    digest = modes.PREHASH_SHA512.new_digest()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(_FILE_CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
    return digest
