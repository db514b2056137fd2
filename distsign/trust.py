#!/usr/bin/env python3
"""
distsign trust store

The fixed set of root public keys a client trusts. Root keys sign the
signing-key bundle; a bundle is accepted if ANY root key validates it, so a
root can be retired in a new release while older releases keep working.
"""
from __future__ import annotations

import hashlib
import logging
from typing import Iterable, Iterator, Tuple, Union

from distsign import modes
from distsign.errors import TrustError
from distsign.keys import compute_key_id, parse_single_public_key

logger = logging.getLogger(__name__)


class TrustStore:
    """Immutable, non-empty, ordered set of root public keys."""

    __slots__ = ("_keys",)

    def __init__(self, root_keys: Iterable[bytes]):
        keys = []
        for key in root_keys:
            key = bytes(key)
            if key not in keys:
                keys.append(key)
        if not keys:
            raise TrustError("trust store has no root keys")
        object.__setattr__(self, "_keys", tuple(keys))

    def __setattr__(self, name, value):
        raise AttributeError("TrustStore is immutable")

    @classmethod
    def from_pems(cls, pems: Iterable[Union[str, bytes]]) -> "TrustStore":
        """Build a trust store from public-key text blocks."""
        keys = []
        for block in pems:
            if isinstance(block, str):
                block = block.encode("ascii")
            keys.append(parse_single_public_key(block.strip() + b"\n"))
        return cls(keys)

    @property
    def keys(self) -> Tuple[bytes, ...]:
        return self._keys

    @property
    def key_ids(self) -> Tuple[str, ...]:
        return tuple(compute_key_id(k) for k in self._keys)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: bytes) -> bool:
        return key in self._keys

    def verify_bundle(self, bundle: bytes, signature: bytes) -> bool:
        """True iff any root key validates *signature* over *bundle* (raw mode)."""
        return modes.verify_any(self._keys, bundle, signature, modes.RAW)

    def __repr__(self) -> str:
        return f"TrustStore(key_ids={list(self.key_ids)!r})"


def default_trust_store() -> TrustStore:
    """The root keys compiled into this package."""
    from distsign.config.root_keys import PLACEHOLDER_LABELS, ROOT_PUBLIC_KEYS

    store = TrustStore.from_pems(ROOT_PUBLIC_KEYS)
    placeholders = {hashlib.sha256(label.encode("ascii")).digest() for label in PLACEHOLDER_LABELS}
    if any(key in placeholders for key in store):
        logger.warning(
            "Compiled-in root keys are build placeholders; no signing key bundle "
            "will validate until the publisher's root keys are installed"
        )
    return store
