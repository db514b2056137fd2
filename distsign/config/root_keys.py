#!/usr/bin/env python3
"""
distsign Root Public Keys

Ed25519 root public keys compiled into the client. They validate the
signing-key bundle (distsign.pub) served by the distribution server.

The keys shipped here are PLACEHOLDERS. Each one is the SHA-256 of a label
in PLACEHOLDER_LABELS, so nobody holds a matching private key and no bundle
validates against them. A release build replaces this list with the public
halves of the publisher's own offline root keys (``distsign keygen``).

Key rotation: a root key can only be removed by shipping a new release.
Publish new bundle signatures with a remaining root BEFORE dropping a key
from this list, and never sign anything new with a removed key.
"""

PLACEHOLDER_LABELS = (
    "distsign placeholder root key 1",
    "distsign placeholder root key 2",
)

# Bundles signed by ANY of these keys are trusted.
ROOT_PUBLIC_KEYS = [
    # Placeholder 1: sha256("distsign placeholder root key 1")
    """-----BEGIN PUBLIC KEY-----
wLckC9O2w1u4SSo9HJNiXAIpIXPMromqfNJi7wY/ztQ=
-----END PUBLIC KEY-----""",
    # Placeholder 2: sha256("distsign placeholder root key 2")
    """-----BEGIN PUBLIC KEY-----
FS9OgMjnw5/Rt4Uku/AbpSveBMs8a3xmcOPE7CphMU0=
-----END PUBLIC KEY-----""",
]
