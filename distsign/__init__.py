"""
distsign - signed distribution of release artifacts.

Files served by an untrusted distribution server are validated through a
two-tier key hierarchy:

- Root keys, kept offline and compiled into clients, sign a bundle of
  signing public keys (distsign.pub).
- Signing keys sign individual distributable files.
"""

__version__ = "0.1.0"

from distsign.errors import (  # noqa: E402
    ConfigError,
    DistsignError,
    FetchError,
    KeyLoadError,
    ParseError,
    ResponseTooLargeError,
    SecurityError,
    TrustError,
    VerificationError,
)
from distsign.keys import KeyPair, generate_keypair  # noqa: E402
from distsign.signer import RootKey, Signer, SigningKey  # noqa: E402
from distsign.trust import TrustStore, default_trust_store  # noqa: E402
from distsign.client import Client, DownloadResult  # noqa: E402

__all__ = [
    "Client", "DownloadResult", "KeyPair", "RootKey", "Signer", "SigningKey",
    "TrustStore", "default_trust_store", "generate_keypair",
    "ConfigError", "DistsignError", "FetchError", "KeyLoadError", "ParseError",
    "ResponseTooLargeError", "SecurityError", "TrustError", "VerificationError",
]
