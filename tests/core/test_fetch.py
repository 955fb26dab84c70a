"""Unit tests for skillauth.core.fetch — chain downloads."""

from __future__ import annotations

import http.client
import socket
import threading
import time
import urllib.error
from datetime import UTC, datetime
from email.message import Message
from unittest.mock import MagicMock, patch

import pytest

from skillauth.core.chain import ChainVerifier
from skillauth.core.errors import VerificationError
from skillauth.core.fetch import ChainFetcher, _NoRedirectHandler
from skillauth.core.types import ErrorKind

URL = "https://s3.amazonaws.com/echo.api/echo-api-cert.pem"
CHAIN_PATH = "/echo.api/echo-api-cert.pem"


def _response(body: bytes, status: int = 200, chunk: int = 3) -> MagicMock:
    resp = MagicMock()
    resp.status = status
    pieces = [body[i : i + chunk] for i in range(0, len(body), chunk)] + [b""]
    resp.read1.side_effect = pieces
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


def _fetcher(*, max_bytes: int = 1024, **open_kwargs) -> ChainFetcher:
    fetcher = ChainFetcher(timeout_seconds=2.5, max_bytes=max_bytes)
    fetcher._opener = MagicMock(**open_kwargs)
    return fetcher


def _assert_fails(fetcher: ChainFetcher, url: str = URL) -> VerificationError:
    with pytest.raises(VerificationError) as exc_info:
        fetcher.fetch(url)
    assert exc_info.value.kind == ErrorKind.CHAIN_FETCH_FAILED
    return exc_info.value


class _ChainHost:
    """Plain-HTTP endpoint on 127.0.0.1 whose replies come from *respond*.

    *respond* receives the accepted connection and writes raw bytes to
    it.  Every request line seen is recorded in :attr:`requests`.
    """

    def __init__(self, respond) -> None:
        self._respond = respond
        self._sock = socket.create_server(("127.0.0.1", 0))
        self._sock.settimeout(5)
        self.port = self._sock.getsockname()[1]
        self.requests: list[str] = []
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def url(self, path: str = CHAIN_PATH) -> str:
        return f"http://127.0.0.1:{self.port}{path}"

    def _serve(self) -> None:
        while True:
            try:
                conn, _ = self._sock.accept()
            except OSError:
                return
            with conn:
                data = b""
                while b"\r\n\r\n" not in data:
                    piece = conn.recv(4096)
                    if not piece:
                        break
                    data += piece
                self.requests.append(data.split(b"\r\n", 1)[0].decode())
                try:
                    self._respond(conn)
                except OSError:
                    pass

    def close(self) -> None:
        self._sock.close()
        self._thread.join(timeout=5)


@pytest.fixture()
def chain_host(monkeypatch):
    for var in ("http_proxy", "HTTP_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(var, raising=False)
    hosts: list[_ChainHost] = []

    def start(respond) -> _ChainHost:
        host = _ChainHost(respond)
        hosts.append(host)
        return host

    yield start
    for host in hosts:
        host.close()


def _reply(status_line: str, body: bytes = b"", headers: dict[str, str] | None = None):
    def respond(conn: socket.socket) -> None:
        lines = [status_line, f"Content-Length: {len(body)}", "Connection: close"]
        lines += [f"{k}: {v}" for k, v in (headers or {}).items()]
        conn.sendall(("\r\n".join(lines) + "\r\n\r\n").encode() + body)

    return respond


# ---------------------------------------------------------------------------
# TestFetchSuccess
# ---------------------------------------------------------------------------


class TestFetchSuccess:
    def test_returns_body(self):
        fetcher = _fetcher()
        fetcher._opener.open.return_value = _response(b"PEM DATA")
        assert fetcher.fetch(URL) == b"PEM DATA"

    def test_passes_timeout_and_get(self):
        fetcher = _fetcher()
        fetcher._opener.open.return_value = _response(b"x")
        fetcher.fetch(URL)
        req = fetcher._opener.open.call_args.args[0]
        assert req.full_url == URL
        assert req.get_method() == "GET"
        assert fetcher._opener.open.call_args.kwargs["timeout"] == 2.5

    def test_body_exactly_at_limit(self):
        fetcher = _fetcher(max_bytes=4)
        fetcher._opener.open.return_value = _response(b"abcd")
        assert fetcher.fetch(URL) == b"abcd"


# ---------------------------------------------------------------------------
# TestFetchFailures
# ---------------------------------------------------------------------------


class TestFetchFailures:
    def test_http_error(self):
        fetcher = _fetcher()
        fetcher._opener.open.side_effect = urllib.error.HTTPError(URL, 404, "Not Found", Message(), None)
        err = _assert_fails(fetcher)
        assert "HTTP 404" in err.detail

    def test_network_error(self):
        fetcher = _fetcher()
        fetcher._opener.open.side_effect = urllib.error.URLError("connection refused")
        _assert_fails(fetcher)

    def test_timeout(self):
        fetcher = _fetcher()
        fetcher._opener.open.side_effect = socket.timeout("timed out")
        _assert_fails(fetcher)

    def test_bad_status_line(self):
        fetcher = _fetcher()
        fetcher._opener.open.side_effect = http.client.BadStatusLine("garbage")
        err = _assert_fails(fetcher)
        assert "malformed response" in err.detail

    def test_incomplete_read(self):
        fetcher = _fetcher()
        resp = _response(b"")
        resp.read1.side_effect = http.client.IncompleteRead(b"ab", 10)
        fetcher._opener.open.return_value = resp
        _assert_fails(fetcher)

    def test_non_200_status(self):
        fetcher = _fetcher()
        fetcher._opener.open.return_value = _response(b"x", status=204)
        _assert_fails(fetcher)

    def test_oversized_body(self):
        fetcher = _fetcher(max_bytes=4)
        fetcher._opener.open.return_value = _response(b"abcde")
        err = _assert_fails(fetcher)
        assert "exceeds" in err.detail

    def test_oversized_body_stops_reading(self):
        fetcher = _fetcher(max_bytes=4)
        resp = _response(b"abcdefghijklmnop", chunk=5)
        fetcher._opener.open.return_value = resp
        _assert_fails(fetcher)
        assert resp.read1.call_count == 1

    def test_empty_body(self):
        fetcher = _fetcher()
        fetcher._opener.open.return_value = _response(b"")
        _assert_fails(fetcher)


# ---------------------------------------------------------------------------
# TestDeadline
# ---------------------------------------------------------------------------


class TestDeadline:
    def test_deadline_covers_whole_body(self):
        fetcher = _fetcher()
        fetcher._opener.open.return_value = _response(b"abcdefghi")
        # start, then one tick per chunk; the third chunk arrives too late
        with patch("skillauth.core.fetch.time") as fake_time:
            fake_time.monotonic.side_effect = [100.0, 100.0, 101.0, 103.0]
            err = _assert_fails(fetcher)
        assert "timed out" in err.detail

    def test_slow_open_fails_before_reading(self):
        fetcher = _fetcher()
        resp = _response(b"abc")
        fetcher._opener.open.return_value = resp
        with patch("skillauth.core.fetch.time") as fake_time:
            fake_time.monotonic.side_effect = [100.0, 102.6]
            _assert_fails(fetcher)
        resp.read1.assert_not_called()


# ---------------------------------------------------------------------------
# TestRedirects
# ---------------------------------------------------------------------------


class TestRedirects:
    def test_redirect_request_refused(self):
        handler = _NoRedirectHandler()
        req = MagicMock(full_url=URL)
        assert handler.redirect_request(req, None, 302, "Found", {}, "https://evil.com/") is None

    def test_opener_uses_no_redirect_handler(self):
        fetcher = ChainFetcher()
        assert any(isinstance(h, _NoRedirectHandler) for h in fetcher._opener.handlers)


# ---------------------------------------------------------------------------
# TestAgainstLocalHost — real sockets on 127.0.0.1
# ---------------------------------------------------------------------------


class TestAgainstLocalHost:
    def test_downloads_chain_that_verifies(self, chain_host, pki):
        host = chain_host(_reply("HTTP/1.1 200 OK", pki.chain_pem))
        body = ChainFetcher(timeout_seconds=5).fetch(host.url())

        assert body == pki.chain_pem
        now = datetime(2024, 1, 1, tzinfo=UTC)
        leaf = ChainVerifier(clock=lambda: now).verify(body)
        assert leaf == pki.leaf
        assert host.requests == [f"GET {CHAIN_PATH} HTTP/1.1"]

    def test_redirect_not_followed(self, chain_host):
        host = chain_host(
            _reply("HTTP/1.1 302 Found", headers={"Location": "/elsewhere.pem"}),
        )
        err = _assert_fails(ChainFetcher(timeout_seconds=5), host.url())

        assert "HTTP 302" in err.detail
        assert host.requests == [f"GET {CHAIN_PATH} HTTP/1.1"]

    def test_garbage_status_line(self, chain_host):
        def respond(conn):
            conn.sendall(b"GARBAGE\r\n\r\n")

        host = chain_host(respond)
        _assert_fails(ChainFetcher(timeout_seconds=5), host.url())

    def test_not_found(self, chain_host):
        host = chain_host(_reply("HTTP/1.1 404 Not Found", b"missing"))
        err = _assert_fails(ChainFetcher(timeout_seconds=5), host.url())
        assert "HTTP 404" in err.detail

    def test_trickled_body_hits_deadline(self, chain_host):
        body_size = 20

        def respond(conn):
            conn.sendall(
                f"HTTP/1.1 200 OK\r\nContent-Length: {body_size}\r\n\r\n".encode(),
            )
            for _ in range(body_size):
                time.sleep(0.2)
                conn.sendall(b"a")

        host = chain_host(respond)
        started = time.monotonic()
        err = _assert_fails(ChainFetcher(timeout_seconds=1), host.url())
        elapsed = time.monotonic() - started

        assert "timed out" in err.detail
        assert elapsed < 2.5
