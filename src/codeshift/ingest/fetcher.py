"""Object-storage fetcher for archive files.

Security requirements:
- Allowed URL schemes: https://, http:// and file:// only.
- SSRF guard: the hostname is resolved and private/loopback/link-local/
  reserved ranges are refused before any connection is made (unless the
  fetcher is built with ``allow_private=True`` for an internal store).
- Max response body: 50 MB.
- Max redirects: 3.
- Credentials embedded in URLs never appear in logs or error messages.
"""

from __future__ import annotations

import asyncio
import ipaddress
import re
import socket
import urllib.error
import urllib.parse
import urllib.request
from http.client import HTTPResponse
from pathlib import Path

_USER_AGENT = "codeshift/0.1"
_MAX_BYTES = 50 * 1024 * 1024  # 50 MB
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http", "file"}

_CRED_RE = re.compile(r"(https?://)([^@/]+@)", re.IGNORECASE)


def sanitise_url(url: str) -> str:
    """Mask credentials embedded in *url* before it is logged or raised."""
    return _CRED_RE.sub(r"\1***@", url)


class SsrfError(ValueError):
    """Raised when a URL resolves to a private or reserved address."""


def _is_internal(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    return any(
        (
            ip.is_private,
            ip.is_loopback,
            ip.is_link_local,
            ip.is_reserved,
            ip.is_multicast,
            ip.is_unspecified,
        )
    )


def ensure_public_host(url: str) -> None:
    """Refuse *url* when any address its host resolves to is internal.

    Raises:
        SsrfError: The host resolves to an internal address.
        ValueError: No hostname, or DNS resolution failed.
    """
    host = urllib.parse.urlsplit(url).hostname
    if not host:
        raise ValueError(f"URL has no hostname: {sanitise_url(url)}")
    try:
        resolved = {info[4][0] for info in socket.getaddrinfo(host, None)}
    except socket.gaierror as exc:
        raise ValueError(f"Cannot resolve '{host}': {exc}") from exc

    for address in sorted(resolved):
        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            continue
        if _is_internal(ip):
            raise SsrfError(
                f"Host '{host}' resolves to internal address {ip}; "
                "fetching from internal networks is refused."
            )


class UrlFetcher:
    """Fetch archive bytes by URL in a worker thread.

    Args:
        timeout: Connect and read timeout in seconds.
        allow_private: Skip the internal-address check (in-cluster stores).
        max_bytes: Largest body accepted.
    """

    def __init__(
        self, timeout: float = 30.0, allow_private: bool = False, max_bytes: int = _MAX_BYTES
    ) -> None:
        self.timeout = timeout
        self.allow_private = allow_private
        self.max_bytes = max_bytes

    async def fetch(self, url: str) -> bytes:
        """Return the body at *url*.

        Raises:
            ValueError: Unsupported scheme, internal address or oversize body.
            RuntimeError: Network or file-system failure.
        """
        return await asyncio.to_thread(self._fetch_sync, url)

    def _fetch_sync(self, url: str) -> bytes:
        scheme = urllib.parse.urlsplit(url).scheme
        if scheme not in _ALLOWED_SCHEMES:
            allowed = ", ".join(f"{s}://" for s in sorted(_ALLOWED_SCHEMES))
            raise ValueError(f"Unsupported URL scheme '{scheme}'; expected one of {allowed}.")
        if scheme == "file":
            return self._read_local(url)
        if not self.allow_private:
            ensure_public_host(url)
        return self._read_remote(url)

    def _read_local(self, url: str) -> bytes:
        path = Path(urllib.request.url2pathname(urllib.parse.urlsplit(url).path))
        try:
            if path.stat().st_size > self.max_bytes:
                raise ValueError(f"File '{path}' exceeds the {self._limit_mb()} MB limit.")
            return path.read_bytes()
        except OSError as exc:
            raise RuntimeError(f"Failed to read '{path}': {exc}") from exc

    def _read_remote(self, url: str) -> bytes:
        shown = sanitise_url(url)
        check = None if self.allow_private else ensure_public_host
        opener = urllib.request.build_opener(_RedirectGuard(_MAX_REDIRECTS, check))
        request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        try:
            response: HTTPResponse = opener.open(request, timeout=self.timeout)
        except urllib.error.URLError as exc:
            raise RuntimeError(f"Failed to fetch '{shown}': {exc.reason}") from None

        with response:
            body = response.read(self.max_bytes + 1)
        if len(body) > self.max_bytes:
            raise ValueError(f"Body of '{shown}' exceeds the {self._limit_mb()} MB limit.")
        return body

    def _limit_mb(self) -> int:
        return self.max_bytes // (1024 * 1024)


class _RedirectGuard(urllib.request.HTTPRedirectHandler):
    """Follow at most *limit* redirects, vetting each target with *check*."""

    def __init__(self, limit: int, check=None) -> None:
        self.limit = limit
        self.check = check
        self.followed = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self.followed += 1
        if self.followed > self.limit:
            raise RuntimeError(
                f"More than {self.limit} redirects fetching '{sanitise_url(req.full_url)}'."
            )
        if self.check is not None:
            self.check(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)
