#!/usr/bin/env python3
"""
PEM-style text blocks for raw key bytes.

    -----BEGIN PUBLIC KEY-----
    <base64 of the raw key, wrapped at 64 columns>
    -----END PUBLIC KEY-----

Unlike the PKCS#8 / SubjectPublicKeyInfo files produced by most tooling,
the body carries the bare Ed25519 key bytes with no ASN.1 wrapping.
"""
from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Tuple

from distsign.errors import ParseError

PRIVATE_KEY_TAG = "PRIVATE KEY"
PUBLIC_KEY_TAG = "PUBLIC KEY"

_LINE_WIDTH = 64

# BEGIN must start a line; anything before it is skipped.
_BLOCK_RE = re.compile(
    rb"(?:\A|(?<=\n))-----BEGIN (?P<tag>[^\r\n-]+)-----[ \t]*\r?\n"
    rb"(?P<body>[^-]*)"
    rb"-----END (?P<end>[^\r\n-]+)-----[ \t]*(?:\r?\n|\Z)"
)


@dataclass(frozen=True)
class Block:
    """A decoded text block."""

    tag: str
    data: bytes


def encode(tag: str, data: bytes) -> bytes:
    """Encode raw bytes as a single tagged block, newline-terminated."""
    b64 = base64.b64encode(data).decode("ascii")
    lines = [b64[i:i + _LINE_WIDTH] for i in range(0, len(b64), _LINE_WIDTH)]
    body = "".join(line + "\n" for line in lines)
    return f"-----BEGIN {tag}-----\n{body}-----END {tag}-----\n".encode("ascii")


def decode(data: bytes) -> Tuple[Block, bytes]:
    """Decode the first block in *data*.

    Returns:
        (block, rest) where *rest* is everything after the END line.

    Raises:
        ParseError: If no well-formed block is found.
    """
    m = _BLOCK_RE.search(data)
    if m is None:
        raise ParseError("failed to decode PEM data")
    tag = m.group("tag").decode("ascii", errors="replace")
    if m.group("end") != m.group("tag"):
        raise ParseError(f"PEM block {tag!r} has mismatched END line")
    body = b"".join(m.group("body").split())
    try:
        raw = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ParseError(f"PEM block {tag!r} has invalid base64 body: {e}") from e
    return Block(tag=tag, data=raw), data[m.end():]
