"""
``api.http``: outbound HTTP for scripts, over one httpx.Client per run.

Hosts must match a pattern from ``SCRIPT_HTTP_ALLOWED_HOSTS`` (fnmatch syntax,
``*.example.com`` or ``*``) and resolve only to public addresses. The check
runs as an httpx request hook, so redirects are held to the same policy.
"""

import fnmatch
import ipaddress
import socket
from collections.abc import Iterable
from functools import partialmethod
from typing import Any

import httpx

DEFAULT_HTTP_TIMEOUT = 30.0

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def _addresses(host: str) -> list[IPAddress]:
    try:
        return [ipaddress.ip_address(host)]
    except ValueError:
        pass
    try:
        infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
    except OSError as e:
        raise PermissionError(f"Cannot resolve host {host!r}: {e}") from e
    return [ipaddress.ip_address(info[4][0]) for info in infos]


class HostPolicy:
    """Which hosts a script may call. An empty policy allows nothing."""

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self.patterns = tuple(sorted({p.strip().lower() for p in patterns if p.strip()}))

    @classmethod
    def from_setting(cls, raw: str | None) -> "HostPolicy":
        return cls((raw or "").split(","))

    def allows(self, host: str) -> bool:
        return any(fnmatch.fnmatchcase(host, p) for p in self.patterns)

    def check(self, url: httpx.URL) -> None:
        """Raise PermissionError unless ``url`` is a public, allow-listed http(s) target."""
        if url.scheme not in ("http", "https"):
            raise PermissionError(f"Scripts may only use http or https, not {url.scheme!r}")
        host = url.host.lower()
        if not host or not self.allows(host):
            raise PermissionError(
                f"Host {host!r} is not allowed for scripts (SCRIPT_HTTP_ALLOWED_HOSTS)"
            )
        for addr in _addresses(host):
            if not addr.is_global:
                raise PermissionError(f"Host {host!r} resolves to non-public address {addr}")


class ScriptHttp:
    """JSON responses come back decoded, anything else as text."""

    def __init__(self, policy: HostPolicy, *, timeout: float = DEFAULT_HTTP_TIMEOUT) -> None:
        self.policy = policy
        self.timeout = timeout
        self._client: httpx.Client | None = None

    def _on_request(self, request: httpx.Request) -> None:
        self.policy.check(request.url)

    def _session(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                follow_redirects=True,
                event_hooks={"request": [self._on_request]},
            )
        return self._client

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        resp = self._session().request(method.upper(), url, **kwargs)
        resp.raise_for_status()
        if "json" in resp.headers.get("content-type", ""):
            return resp.json()
        return resp.text

    get = partialmethod(request, "GET")
    post = partialmethod(request, "POST")
    put = partialmethod(request, "PUT")
    delete = partialmethod(request, "DELETE")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
