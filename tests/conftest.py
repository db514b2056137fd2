"""Pytest configuration and fixtures for distsign tests."""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from unittest.mock import patch

import pytest

from distsign.keys import KeyPair, encode_bundle, generate_keypair
from distsign.signer import RootKey, SigningKey


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.distsign config and any HTTP proxy."""
    for var in ("DISTSIGN_CONFIG", "DISTSIGN_BASE_URL", "http_proxy", "HTTP_PROXY",
                "https_proxy", "HTTPS_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("no_proxy", "*")
    monkeypatch.setenv("NO_PROXY", "*")
    with patch("distsign.config.USER_CONFIG_FILE", tmp_path / "no-such-config.yaml"):
        yield


@pytest.fixture
def root_pair() -> KeyPair:
    return generate_keypair()


@pytest.fixture
def signing_pair() -> KeyPair:
    return generate_keypair()


@pytest.fixture
def root_key(root_pair) -> RootKey:
    return RootKey(root_pair.private_key)


@pytest.fixture
def signing_key(signing_pair) -> SigningKey:
    return SigningKey(signing_pair.private_key)


# --- Local distribution server ---


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        self.server.hits.append(self.path)
        route = self.server.routes.get(self.path)
        if route is None:
            self.send_error(404)
            return
        body, send_length, delay = route
        self.send_response(200)
        self.send_header("Content-Type", "application/octet-stream")
        if send_length:
            self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if not delay:
            self.wfile.write(body)
            return
        try:
            for i in range(len(body)):
                time.sleep(delay)
                self.wfile.write(body[i:i + 1])
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format, *args):
        pass


class DistServer:
    """Serves in-memory files under ``/pkgs/`` on 127.0.0.1."""

    prefix = "/pkgs"

    def __init__(self, httpd: ThreadingHTTPServer):
        self._httpd = httpd

    @property
    def base_url(self) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}{self.prefix}"

    @property
    def hits(self):
        return self._httpd.hits

    def url(self, name: str) -> str:
        return f"{self.base_url}/{name}"

    def put(self, name: str, body: bytes, content_length: bool = True) -> None:
        self._httpd.routes[f"{self.prefix}/{name}"] = (body, content_length, 0)

    def drip(self, name: str, body: bytes, delay: float) -> None:
        """Serve *body* one byte at a time, sleeping *delay* before each byte."""
        self._httpd.routes[f"{self.prefix}/{name}"] = (body, True, delay)

    def remove(self, name: str) -> None:
        self._httpd.routes.pop(f"{self.prefix}/{name}", None)

    def publish_keys(self, root: RootKey, signing_public_keys) -> bytes:
        bundle = encode_bundle(signing_public_keys)
        self.put("distsign.pub", bundle)
        self.put("distsign.pub.sig", root.sign_signing_keys(bundle))
        return bundle

    def publish_file(self, name: str, content: bytes, signer: SigningKey) -> None:
        from distsign.modes import PREHASH_SHA512

        self.put(name, content)
        self.put(name + ".sig", signer.sign_package_hash(PREHASH_SHA512.new_digest(content)))


@pytest.fixture
def dist_server():
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    httpd.daemon_threads = True
    httpd.routes = {}
    httpd.hits = []
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield DistServer(httpd)
    finally:
        httpd.shutdown()
        httpd.server_close()
        thread.join(timeout=5)


@pytest.fixture
def published(dist_server, root_key, signing_key, signing_pair):
    """A server publishing one signing key and a signed ``hello`` file."""
    dist_server.publish_keys(root_key, [signing_pair.public_key])
    dist_server.publish_file("hello", b"hello", signing_key)
    return dist_server


@pytest.fixture
def write_key(tmp_path):
    """Write bytes to a key file under tmp_path and return its path."""
    def _write(name: str, data: bytes) -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path
    return _write
