#!/usr/bin/env python3
"""
distsign fetcher

Size-bounded HTTP reads, either into memory or into a local file while a
SHA-512 digest of the streamed bytes is accumulated.

Limits are hard: reading stops at the limit and one extra byte is probed.
If the server has more to send, ResponseTooLargeError is raised instead of
silently truncating. A Content-Length above the limit fails before any of
the body is read.

Every fetch honors the transport timeout, an optional absolute deadline
(``time.monotonic()`` based) and an optional ``threading.Event`` that
cancels the transfer between reads. The socket timeout is re-armed before
every read with whatever time the deadline leaves, so a server that drips
bytes cannot stretch a fetch past its deadline.
"""
from __future__ import annotations

import http.client
import logging
import ssl
import threading
import time
import urllib.error
import urllib.request
from pathlib import Path
from typing import Callable, Optional, Union

from distsign import __version__, modes
from distsign.errors import FetchError, ResponseTooLargeError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB chunks
DEFAULT_USER_AGENT = f"distsign/{__version__}"

ProgressCallback = Callable[[int, int], None]


class LimitedReader:
    """Read at most *limit* bytes from *stream*.

    Reads return whatever the stream has available (``read1``), so a slow
    server cannot hold a single call open for a whole chunk. Once the limit
    is reached, a single extra byte is requested; if the stream yields it,
    ResponseTooLargeError is raised.
    """

    def __init__(self, stream, limit: int, url: str):
        self._stream = stream
        self._read = getattr(stream, "read1", stream.read)
        self._remaining = limit
        self._limit = limit
        self._url = url
        self._exhausted = False

    def read(self, size: int) -> bytes:
        if self._exhausted:
            return b""
        if self._remaining == 0:
            self._exhausted = True
            if self._read(1):
                raise ResponseTooLargeError(self._url, self._limit)
            return b""
        chunk = self._read(min(size, self._remaining))
        if not chunk:
            self._exhausted = True
            return b""
        self._remaining -= len(chunk)
        return chunk


class DigestingWriter:
    """Owns a destination file and the SHA-512 digest of what was written.

    Use as a context manager. The file is closed on every exit path. A close
    failure after an otherwise clean write propagates, since a file whose
    close failed cannot be trusted to hold the digested bytes.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.digest = modes.PREHASH_SHA512.new_digest()
        self.written = 0
        self._file = open(self.path, "wb")

    def write(self, chunk: bytes) -> None:
        self._file.write(chunk)
        self.digest.update(chunk)
        self.written += len(chunk)

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def __enter__(self) -> "DigestingWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            self.close()
        except OSError as close_exc:
            if exc_type is None:
                raise
            logger.warning("Closing %s also failed: %s", self.path, close_exc)
        return False


class Fetcher:
    """Blocking HTTP(S) fetches with size limits."""

    def __init__(
        self,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.timeout = timeout
        self.user_agent = user_agent
        self.chunk_size = chunk_size
        self._ssl_context = ssl_context or ssl.create_default_context()

    # --- public API ---

    def fetch_to_memory(
        self,
        url: str,
        limit: int,
        *,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> bytes:
        """Read the response body of *url* into memory, up to *limit* bytes.

        Raises:
            FetchError: On transport errors, non-2xx status, cancellation or
                an expired deadline.
            ResponseTooLargeError: If the body is longer than *limit*.
        """
        buf = bytearray()
        response = self._open(url, limit, cancel, deadline)
        with response:
            self._copy(response, url, limit, buf.extend, cancel, deadline)
        logger.debug("Fetched %d bytes from %s", len(buf), url)
        return bytes(buf)

    def fetch_to_file(
        self,
        url: str,
        dest: Union[str, Path],
        limit: int,
        *,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
    ):
        """Stream the response body of *url* into *dest*, up to *limit* bytes.

        Returns:
            The ``Crypto.Hash.SHA512`` digest of exactly the bytes written.

        Raises:
            FetchError: On transport or file-system errors (including a
                failed close), cancellation or an expired deadline. A
                partially written *dest* is removed.
            ResponseTooLargeError: If the body is longer than *limit*.
        """
        dest = Path(dest)
        response = self._open(url, limit, cancel, deadline)
        total = _content_length(response) or 0
        writer = None
        try:
            with response:
                writer = DigestingWriter(dest)
                with writer:
                    def sink(chunk: bytes) -> None:
                        writer.write(chunk)
                        if progress is not None:
                            progress(writer.written, total)

                    self._copy(response, url, limit, sink, cancel, deadline)
        except FetchError:
            if writer is not None:
                _remove_partial(dest)
            raise
        except OSError as e:
            if writer is not None:
                _remove_partial(dest)
            raise FetchError(url, f"writing {dest} failed: {e}") from e

        logger.debug("Downloaded %d bytes from %s to %s", writer.written, url, dest)
        return writer.digest

    # --- internals ---

    def _timeout(self, deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return self.timeout
        remaining = max(deadline - time.monotonic(), 0.001)
        if self.timeout is None:
            return remaining
        return min(self.timeout, remaining)

    def _check_interrupt(
        self, url: str, cancel: Optional[threading.Event], deadline: Optional[float]
    ) -> None:
        if cancel is not None and cancel.is_set():
            raise FetchError(url, "cancelled")
        if deadline is not None and time.monotonic() >= deadline:
            raise FetchError(url, "deadline exceeded")

    def _open(
        self,
        url: str,
        limit: int,
        cancel: Optional[threading.Event],
        deadline: Optional[float],
    ):
        self._check_interrupt(url, cancel, deadline)
        logger.debug("GET %s (limit %d bytes)", url, limit)
        try:
            request = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
            response = urllib.request.urlopen(
                request, timeout=self._timeout(deadline), context=self._ssl_context
            )
        except urllib.error.HTTPError as e:
            e.close()
            raise FetchError(url, f"HTTP {e.code}: {e.reason}", status=e.code) from e
        except urllib.error.URLError as e:
            raise FetchError(url, f"network error: {e.reason}") from e
        except (OSError, http.client.HTTPException) as e:
            raise FetchError(url, f"network error: {e}") from e
        except ValueError as e:
            raise FetchError(url, f"invalid URL: {e}") from e

        length = _content_length(response)
        if length is not None and length > limit:
            response.close()
            raise ResponseTooLargeError(url, limit)
        return response

    def _copy(
        self,
        response,
        url: str,
        limit: int,
        sink: Callable[[bytes], None],
        cancel: Optional[threading.Event],
        deadline: Optional[float],
    ) -> None:
        reader = LimitedReader(response, limit, url)
        while True:
            self._check_interrupt(url, cancel, deadline)
            _set_read_timeout(response, self._timeout(deadline))
            try:
                chunk = reader.read(self.chunk_size)
            except (OSError, http.client.HTTPException) as e:
                if deadline is not None and time.monotonic() >= deadline:
                    raise FetchError(url, "deadline exceeded") from e
                raise FetchError(url, f"read failed: {e}") from e
            if not chunk:
                return
            sink(chunk)


def _content_length(response) -> Optional[int]:
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _set_read_timeout(response, timeout: Optional[float]) -> None:
    """Re-arm the socket timeout under an open response before the next read."""
    # fp is the socket makefile (BufferedReader over SocketIO); None after EOF.
    sock = getattr(getattr(getattr(response, "fp", None), "raw", None), "_sock", None)
    if sock is not None:
        sock.settimeout(timeout)


def _remove_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove partial download %s: %s", path, e)
