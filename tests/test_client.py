"""End-to-end tests for the download client against a local server."""

import threading

import pytest
from Crypto.Hash import SHA512

from distsign.client import Client, DownloadResult
from distsign.config.models import DistsignConfig
from distsign.errors import (
    FetchError,
    ParseError,
    SecurityError,
    TrustError,
    VerificationError,
)
from distsign.fetch import Fetcher
from distsign.keys import encode_bundle, generate_keypair
from distsign.signer import RootKey, SigningKey
from distsign.trust import TrustStore

pytestmark = [pytest.mark.security, pytest.mark.network]


@pytest.fixture
def client(dist_server, root_pair):
    return Client(
        dist_server.base_url,
        TrustStore([root_pair.public_key]),
        fetcher=Fetcher(timeout=5.0),
    )


class TestURL:
    def test_joins_paths(self):
        c = Client("https://pkgs.example.com/stable/", TrustStore([generate_keypair().public_key]))
        assert c.url("distsign.pub") == "https://pkgs.example.com/stable/distsign.pub"
        assert c.url("/a/b.tgz") == "https://pkgs.example.com/stable/a/b.tgz"

    def test_cleans_dot_segments_within_base(self):
        c = Client("https://pkgs.example.com/stable", TrustStore([generate_keypair().public_key]))
        assert c.url("a/./b/../c.tgz") == "https://pkgs.example.com/stable/a/c.tgz"
        assert c.url("../../etc/passwd") == "https://pkgs.example.com/stable/etc/passwd"

    def test_rejects_empty_path(self):
        c = Client("https://pkgs.example.com", TrustStore([generate_keypair().public_key]))
        with pytest.raises(ValueError):
            c.url("/")

    @pytest.mark.parametrize("base", ["pkgs.example.com", "ftp://pkgs.example.com", "https://"])
    def test_rejects_bad_base(self, base):
        with pytest.raises(ValueError):
            Client(base, TrustStore([generate_keypair().public_key]))

    def test_from_config(self, root_pair):
        config = DistsignConfig(base_url="https://pkgs.example.com", timeout_seconds=3)
        c = Client.from_config(config, TrustStore([root_pair.public_key]))
        assert c.base_url == "https://pkgs.example.com"
        assert c.fetcher.timeout == 3

    def test_from_config_requires_base_url(self):
        with pytest.raises(ValueError):
            Client.from_config(DistsignConfig())


class TestDownload:
    def test_hello_scenario(self, published, client, tmp_path):
        dest = tmp_path / "hello"
        result = client.download("hello", dest)
        assert isinstance(result, DownloadResult)
        assert dest.read_bytes() == b"hello"
        assert result.size == 5
        assert result.sha512 == SHA512.new(b"hello").hexdigest()
        assert result.url == published.url("hello")
        assert result.signature_url == published.url("hello.sig")

    def test_mutated_signature_rejected(self, published, client, signing_key, tmp_path):
        sig = bytearray(signing_key.sign_package_hash(SHA512.new(b"hello")))
        sig[0] ^= 0xFF
        published.put("hello.sig", bytes(sig))
        with pytest.raises(VerificationError) as exc_info:
            client.download("hello", tmp_path / "hello")
        err = exc_info.value
        assert err.url == published.url("hello")
        assert err.signature_url == published.url("hello.sig")
        assert published.url("hello") in str(err)
        assert published.url("hello.sig") in str(err)

    def test_mutated_file_rejected(self, published, client, tmp_path):
        published.put("hello", b"jello")
        with pytest.raises(VerificationError):
            client.download("hello", tmp_path / "hello")

    def test_any_signing_key_in_bundle(self, dist_server, client, root_key, tmp_path):
        pairs = [generate_keypair() for _ in range(4)]
        dist_server.publish_keys(root_key, [p.public_key for p in pairs])
        dist_server.publish_file("pkg", b"payload", SigningKey(pairs[2].private_key))
        client.download("pkg", tmp_path / "pkg")

    def test_key_not_in_bundle_rejected(self, dist_server, client, root_key, signing_pair, tmp_path):
        dist_server.publish_keys(root_key, [signing_pair.public_key])
        outsider = SigningKey(generate_keypair().private_key)
        dist_server.publish_file("pkg", b"payload", outsider)
        with pytest.raises(VerificationError):
            client.download("pkg", tmp_path / "pkg")

    def test_rotated_out_signing_key(self, published, client, root_key, tmp_path):
        client.download("hello", tmp_path / "first")
        # The publisher rotates to a new signing key without re-signing hello.
        published.publish_keys(root_key, [generate_keypair().public_key])
        with pytest.raises(VerificationError):
            client.download("hello", tmp_path / "second")

    def test_bundle_fetched_before_every_download(self, published, client, tmp_path):
        client.download("hello", tmp_path / "a")
        client.download("hello", tmp_path / "b")
        assert published.hits.count("/pkgs/distsign.pub") == 2
        assert published.hits.count("/pkgs/distsign.pub.sig") == 2

    def test_concurrent_downloads(self, published, client, tmp_path):
        errors = []

        def worker(i):
            try:
                client.download("hello", tmp_path / f"hello-{i}")
            except Exception as e:  # pragma: no cover - reported below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)
        assert errors == []
        assert all((tmp_path / f"hello-{i}").read_bytes() == b"hello" for i in range(4))

    def test_missing_file_is_fetch_error(self, published, client, tmp_path):
        with pytest.raises(FetchError) as exc_info:
            client.download("nope", tmp_path / "nope")
        assert not isinstance(exc_info.value, SecurityError)

    def test_missing_file_signature(self, published, client, tmp_path):
        published.put("unsigned", b"data")
        dest = tmp_path / "unsigned"
        with pytest.raises(FetchError) as exc_info:
            client.download("unsigned", dest)
        assert exc_info.value.status == 404
        assert not dest.exists()
        assert "/pkgs/unsigned" not in published.hits

    def test_malformed_signature_writes_nothing(self, published, client, tmp_path):
        published.put("hello.sig", b"\x00" * 63)
        dest = tmp_path / "hello"
        with pytest.raises(VerificationError):
            client.download("hello", dest)
        assert not dest.exists()

    def test_existing_dest_untouched_when_signature_missing(self, published, client, tmp_path):
        published.remove("hello.sig")
        dest = tmp_path / "hello"
        dest.write_bytes(b"previous release")
        with pytest.raises(FetchError):
            client.download("hello", dest)
        assert dest.read_bytes() == b"previous release"

    def test_short_file_signature(self, published, client, tmp_path):
        published.put("hello.sig", b"\x00" * 63)
        with pytest.raises(VerificationError, match="shorter"):
            client.download("hello", tmp_path / "hello")

    def test_long_file_signature(self, published, client, signing_key, tmp_path):
        sig = signing_key.sign_package_hash(SHA512.new(b"hello"))
        published.put("hello.sig", sig + b"\x00")
        with pytest.raises(VerificationError, match="longer"):
            client.download("hello", tmp_path / "hello")

    def test_signed_with_raw_mode_rejected(self, published, client, signing_key, tmp_path):
        published.put("hello.sig", signing_key.sign_raw(SHA512.new(b"hello").digest()))
        with pytest.raises(VerificationError):
            client.download("hello", tmp_path / "hello")


class TestSigningKeys:
    def test_returns_bundle_keys(self, published, client, signing_pair):
        assert client.signing_keys() == [signing_pair.public_key]

    def test_untrusted_root(self, dist_server, client, signing_pair, tmp_path):
        impostor = RootKey(generate_keypair().private_key)
        dist_server.publish_keys(impostor, [signing_pair.public_key])
        with pytest.raises(TrustError) as exc_info:
            client.download("hello", tmp_path / "hello")
        assert exc_info.value.key_url == dist_server.url("distsign.pub")
        assert exc_info.value.signature_url == dist_server.url("distsign.pub.sig")
        assert not (tmp_path / "hello").exists()

    def test_tampered_bundle(self, published, client, signing_pair):
        published.put("distsign.pub", encode_bundle([generate_keypair().public_key]))
        with pytest.raises(TrustError):
            client.signing_keys()

    def test_bundle_signed_in_prehash_mode_rejected(self, dist_server, client, root_pair, signing_pair):
        bundle = encode_bundle([signing_pair.public_key])
        dist_server.put("distsign.pub", bundle)
        root_as_signer = SigningKey(root_pair.private_key)
        dist_server.put("distsign.pub.sig", root_as_signer.sign_package_hash(SHA512.new(bundle)))
        with pytest.raises(TrustError):
            client.signing_keys()

    def test_empty_signed_bundle(self, dist_server, client, root_pair):
        # Sign directly; RootKey.sign_signing_keys refuses empty bundles.
        dist_server.put("distsign.pub", b"")
        dist_server.put("distsign.pub.sig", RootKey(root_pair.private_key).sign_raw(b""))
        with pytest.raises(ParseError, match="no signing keys") as exc_info:
            client.signing_keys()
        assert exc_info.value.url == dist_server.url("distsign.pub")

    def test_malformed_signed_bundle(self, dist_server, client, root_pair, signing_pair):
        bundle = encode_bundle([signing_pair.public_key]) + b"\n-----BEGIN PUBLIC KEY-----\nAAAA\n-----END PUBLIC KEY-----\n"
        dist_server.put("distsign.pub", bundle)
        dist_server.put("distsign.pub.sig", RootKey(root_pair.private_key).sign_raw(bundle))
        with pytest.raises(ParseError):
            client.signing_keys()

    def test_short_bundle_signature(self, published, client):
        published.put("distsign.pub.sig", b"\x01" * 10)
        with pytest.raises(TrustError, match="shorter"):
            client.signing_keys()

    def test_oversized_bundle(self, dist_server, client):
        dist_server.put("distsign.pub", b" " * ((1 << 20) + 1), content_length=False)
        with pytest.raises(FetchError):
            client.signing_keys()

    def test_missing_bundle(self, dist_server, client):
        with pytest.raises(FetchError) as exc_info:
            client.signing_keys()
        assert exc_info.value.status == 404

    def test_cancel_aborts(self, published, client, tmp_path):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(FetchError, match="cancelled"):
            client.download("hello", tmp_path / "hello", cancel=cancel)
