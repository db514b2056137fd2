#!/usr/bin/env python3
"""
distsign key material

Ed25519 key pairs, their text encoding, and the signing-key bundle
(a newline-joined sequence of public-key blocks).

Private keys are 64 bytes, ``seed || public``. Public keys are the raw
32-byte curve point.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from distsign import pem
from distsign.errors import ParseError

SEED_SIZE = 32
PUBLIC_KEY_SIZE = 32
PRIVATE_KEY_SIZE = SEED_SIZE + PUBLIC_KEY_SIZE
SIGNATURE_SIZE = 64


@dataclass(frozen=True)
class KeyPair:
    """An Ed25519 key pair in raw form."""

    private_key: bytes
    public_key: bytes

    @property
    def private_pem(self) -> bytes:
        return pem.encode(pem.PRIVATE_KEY_TAG, self.private_key)

    @property
    def public_pem(self) -> bytes:
        return pem.encode(pem.PUBLIC_KEY_TAG, self.public_key)


def generate_keypair() -> KeyPair:
    """Generate a new random Ed25519 key pair."""
    private_key = Ed25519PrivateKey.generate()
    seed = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public = public_from_seed(seed)
    return KeyPair(private_key=seed + public, public_key=public)


def public_from_seed(seed: bytes) -> bytes:
    """Derive the raw public key from a 32-byte private seed."""
    return Ed25519PrivateKey.from_private_bytes(seed).public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def compute_key_id(public_key: bytes) -> str:
    """Short identifier for a raw public key (first 16 hex chars of SHA-256)."""
    return hashlib.sha256(public_key).hexdigest()[:16]


# --- Parsing ---


def parse_private_key(data: bytes) -> bytes:
    """Parse a single private-key block.

    Raises:
        ParseError: On a missing block, trailing data, a wrong tag, a wrong
            length, or a public half that does not match the seed.
    """
    block, rest = pem.decode(data)
    if rest:
        raise ParseError("trailing PEM data")
    if block.tag != pem.PRIVATE_KEY_TAG:
        raise ParseError(f"PEM type is {block.tag!r}, want {pem.PRIVATE_KEY_TAG!r}")
    if len(block.data) != PRIVATE_KEY_SIZE:
        raise ParseError("private key has incorrect length for an Ed25519 private key")
    seed, public = block.data[:SEED_SIZE], block.data[SEED_SIZE:]
    if public_from_seed(seed) != public:
        raise ParseError("public half of the private key does not match its seed")
    return block.data


def parse_public_key(data: bytes) -> Tuple[bytes, bytes]:
    """Parse the first public-key block in *data*.

    Returns:
        (public_key, rest)
    """
    block, rest = pem.decode(data)
    if block.tag != pem.PUBLIC_KEY_TAG:
        raise ParseError(f"PEM type is {block.tag!r}, want {pem.PUBLIC_KEY_TAG!r}")
    if len(block.data) != PUBLIC_KEY_SIZE:
        raise ParseError("public key has incorrect length for an Ed25519 public key")
    return block.data, rest


def parse_single_public_key(data: bytes) -> bytes:
    """Parse exactly one public-key block with nothing after it."""
    public, rest = parse_public_key(data)
    if rest:
        raise ParseError("trailing PEM data")
    return public


def parse_bundle(data: bytes) -> List[bytes]:
    """Parse a signing-key bundle into its public keys.

    Whitespace between or after blocks is ignored; anything else that is
    not a well-formed public-key block is an error. A bundle with no keys
    is an error too, even if it was correctly signed.
    """
    keys: List[bytes] = []
    rest = data
    while rest.strip():
        rest = rest.lstrip()
        if not rest.startswith(b"-----BEGIN "):
            raise ParseError("unexpected data between public key blocks")
        public, rest = parse_public_key(rest)
        keys.append(public)
    if not keys:
        raise ParseError("no signing keys found in bundle")
    return keys


def encode_bundle(public_keys: Iterable[bytes]) -> bytes:
    """Join raw public keys into bundle bytes."""
    blocks = []
    for public in public_keys:
        if len(public) != PUBLIC_KEY_SIZE:
            raise ParseError("public key has incorrect length for an Ed25519 public key")
        blocks.append(pem.encode(pem.PUBLIC_KEY_TAG, public))
    return b"\n".join(blocks)
