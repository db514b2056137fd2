#!/usr/bin/env python3
"""
Ed25519 signing modes

Two modes are used, and they are not interchangeable:

- ``Raw``: pure Ed25519 over the message bytes. Root keys sign the small,
  fully-buffered signing-key bundle this way.
- ``Prehash("sha512")``: Ed25519ph (RFC 8032) over a SHA-512 digest that was
  accumulated incrementally. Signing keys sign artifacts this way so large
  files never have to be held in memory.

Raw mode runs on ``cryptography``. Ed25519ph is not exposed by
``cryptography``, so pre-hash mode runs on PyCryptodome's RFC 8032 EdDSA,
whose pre-hash input is a live ``Crypto.Hash.SHA512`` object.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from Crypto.Hash import SHA512
from Crypto.Signature import eddsa

from distsign.keys import PRIVATE_KEY_SIZE, PUBLIC_KEY_SIZE, SEED_SIZE, SIGNATURE_SIZE

_PREHASH_ALGORITHMS = {"sha512": SHA512}


@dataclass(frozen=True)
class Raw:
    """Sign and verify the message bytes directly."""


@dataclass(frozen=True)
class Prehash:
    """Sign and verify a digest of the message (Ed25519ph)."""

    algorithm: str = "sha512"

    def __post_init__(self) -> None:
        if self.algorithm not in _PREHASH_ALGORITHMS:
            raise ValueError(f"Ed25519ph is defined for sha512 only, not {self.algorithm!r}")

    def new_digest(self, data: bytes = b""):
        """Start a digest accumulator for this mode."""
        return _PREHASH_ALGORITHMS[self.algorithm].new(data)

    def check_digest(self, digest) -> None:
        module = _PREHASH_ALGORITHMS[self.algorithm]
        # SHA-512/224 and SHA-512/256 share the class; only the full digest is valid.
        if not isinstance(digest, module.SHA512Hash) or digest.digest_size != 64:
            raise TypeError(
                f"pre-hash mode expects a Crypto.Hash.SHA512 object, got {type(digest).__name__}"
            )


SigningMode = Union[Raw, Prehash]

RAW = Raw()
PREHASH_SHA512 = Prehash("sha512")


def sign(private_key: bytes, message, mode: SigningMode) -> bytes:
    """Sign *message* (bytes for Raw, a digest object for Prehash)."""
    if len(private_key) != PRIVATE_KEY_SIZE:
        raise ValueError("private key has incorrect length for an Ed25519 private key")
    seed = private_key[:SEED_SIZE]
    if isinstance(mode, Raw):
        return Ed25519PrivateKey.from_private_bytes(seed).sign(bytes(message))
    if isinstance(mode, Prehash):
        mode.check_digest(message)
        signer = eddsa.new(eddsa.import_private_key(seed), "rfc8032")
        return signer.sign(message)
    raise TypeError(f"unknown signing mode {mode!r}")


def verify(public_key: bytes, message, signature: bytes, mode: SigningMode) -> bool:
    """Return True iff *signature* is valid for *message* under *public_key*."""
    if len(public_key) != PUBLIC_KEY_SIZE or len(signature) != SIGNATURE_SIZE:
        return False
    if isinstance(mode, Raw):
        try:
            Ed25519PublicKey.from_public_bytes(public_key).verify(signature, bytes(message))
            return True
        except (InvalidSignature, ValueError):
            return False
    if isinstance(mode, Prehash):
        mode.check_digest(message)
        try:
            verifier = eddsa.new(eddsa.import_public_key(public_key), "rfc8032")
            verifier.verify(message, signature)
            return True
        except ValueError:
            return False
    raise TypeError(f"unknown signing mode {mode!r}")


def verify_any(
    public_keys: Iterable[bytes], message, signature: bytes, mode: SigningMode
) -> bool:
    """Return True if any of *public_keys* validates *signature*."""
    for public_key in public_keys:
        if verify(public_key, message, signature, mode):
            return True
    return False
