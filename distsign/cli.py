#!/usr/bin/env python3
"""
distsign CLI

Usage:
    distsign keygen --private PATH --public PATH [--force]
    distsign bundle PUBKEY... --output distsign.pub
    distsign sign-keys --root-key PATH distsign.pub
    distsign sign --signing-key PATH FILE...
    distsign download SOURCE DEST [--base-url URL] [--timeout S]

Exit codes for download: 0 verified, 1 transport/config error,
2 security failure (untrusted keys, malformed bundle, bad signature).
"""
from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Optional, Tuple

import click

from distsign import __version__
from distsign.cli_helpers import (
    configure_logging,
    console,
    print_error,
    print_success,
    print_warning,
    write_private_file,
)
from distsign.errors import (
    ConfigError,
    FetchError,
    KeyLoadError,
    ParseError,
    SecurityError,
    VerificationError,
)

EXIT_ERROR = 1
EXIT_SECURITY = 2


@click.group()
@click.version_option(__version__, prog_name="distsign")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Config file (default: ~/.distsign/config.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """Sign and securely download distributable files."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command("keygen")
@click.option("--private", "private_path", required=True, type=click.Path(dir_okay=False),
              help="Where to write the private key")
@click.option("--public", "public_path", required=True, type=click.Path(dir_okay=False),
              help="Where to write the public key")
@click.option("--force", is_flag=True, help="Overwrite existing key files")
def keygen(private_path: str, public_path: str, force: bool):
    """Generate a new Ed25519 key pair (root or signing)."""
    from distsign.keys import compute_key_id, generate_keypair

    priv, pub = Path(private_path), Path(public_path)
    for path in (priv, pub):
        if path.exists() and not force:
            print_error(f"Refusing to overwrite existing {path}", "Use --force to overwrite.")
            sys.exit(EXIT_ERROR)

    pair = generate_keypair()
    write_private_file(priv, pair.private_pem)
    pub.parent.mkdir(parents=True, exist_ok=True)
    pub.write_bytes(pair.public_pem)

    print_success(f"Generated key {compute_key_id(pair.public_key)}")
    console.print(f"  Private: {priv}")
    console.print(f"  Public:  {pub}")


@main.command("bundle")
@click.argument("public_keys", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", required=True, type=click.Path(dir_okay=False),
              help="Bundle file to write (usually distsign.pub)")
def bundle(public_keys: Tuple[str, ...], output: str):
    """Join public signing keys into a signing-key bundle."""
    from distsign.keys import encode_bundle, parse_single_public_key

    keys = []
    for key_path in public_keys:
        try:
            keys.append(parse_single_public_key(Path(key_path).read_bytes()))
        except ParseError as e:
            print_error(f"{key_path}: {e.reason}")
            sys.exit(EXIT_ERROR)

    Path(output).write_bytes(encode_bundle(keys))
    print_success(f"Wrote bundle of {len(keys)} key(s) to {output}")


@main.command("sign-keys")
@click.argument("bundle_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--root-key", required=True, type=click.Path(dir_okay=False),
              help="Root private key")
def sign_keys(bundle_path: str, root_key: str):
    """Sign a signing-key bundle with a root key (writes BUNDLE.sig)."""
    from distsign.signer import RootKey

    try:
        signer = RootKey.load(root_key)
    except KeyLoadError as e:
        print_error(str(e))
        sys.exit(EXIT_ERROR)

    data = Path(bundle_path).read_bytes()
    try:
        sig = signer.sign_signing_keys(data)
    except (ParseError, ValueError) as e:
        print_error(f"{bundle_path}: {e}")
        sys.exit(EXIT_ERROR)

    sig_path = Path(bundle_path + ".sig")
    sig_path.write_bytes(sig)
    print_success(f"Signed {bundle_path} with root key {signer.key_id} -> {sig_path}")


@main.command("sign")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--signing-key", required=True, type=click.Path(dir_okay=False),
              help="Signing private key")
def sign(files: Tuple[str, ...], signing_key: str):
    """Sign distributable files with a signing key (writes FILE.sig)."""
    from distsign.signer import SigningKey

    try:
        signer = SigningKey.load(signing_key)
    except KeyLoadError as e:
        print_error(str(e))
        sys.exit(EXIT_ERROR)

    for file_path in files:
        try:
            sig = signer.sign_file(file_path)
        except OSError as e:
            print_error(f"Cannot read {file_path}: {e.strerror or e}")
            sys.exit(EXIT_ERROR)
        sig_path = Path(file_path + ".sig")
        sig_path.write_bytes(sig)
        print_success(f"Signed {file_path} with key {signer.key_id} -> {sig_path}")


@main.command("download")
@click.argument("source")
@click.argument("dest", type=click.Path(dir_okay=False))
@click.option("--base-url", help="Distribution server URL (overrides config)")
@click.option("--timeout", type=float, help="Overall deadline in seconds")
@click.pass_context
def download(ctx: click.Context, source: str, dest: str,
             base_url: Optional[str], timeout: Optional[float]):
    """Download SOURCE from the distribution server to DEST and verify it.

    DEST is removed if its signature does not validate.
    """
    from distsign.client import Client
    from distsign.config import load_config

    try:
        config = load_config(ctx.obj.get("config_path"))
        if base_url:
            config = config.model_copy(update={"base_url": base_url})
        client = Client.from_config(config)
    except (ConfigError, ValueError) as e:
        print_error(str(e), "Set base_url in the config file or pass --base-url.")
        sys.exit(EXIT_ERROR)

    deadline = time.monotonic() + timeout if timeout else None
    dest_path = Path(dest)
    try:
        result = client.download(source, dest_path, deadline=deadline)
    except FetchError as e:
        print_error(f"Download failed (transport): {e}")
        sys.exit(EXIT_ERROR)
    except SecurityError as e:
        if isinstance(e, VerificationError):
            dest_path.unlink(missing_ok=True)
            print_warning(f"Removed untrusted file {dest_path}")
        print_error(f"Download REJECTED (security): {e}")
        sys.exit(EXIT_SECURITY)

    print_success(f"Verified {result.url}")
    console.print(f"  Saved to: {result.path} ({result.size} bytes)")
    console.print(f"  SHA-512:  {result.sha512}", highlight=False)


if __name__ == "__main__":
    main()
