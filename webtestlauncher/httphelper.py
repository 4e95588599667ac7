"""Small helpers for forwarding and issuing HTTP requests."""

from __future__ import annotations

import logging
import socket
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit
from wsgiref.headers import Headers

import requests

log = logging.getLogger(__name__)

_CONNECT_TIMEOUT = 30.0
_FORWARDED_HEADERS = ("Content-Type", "Accept", "Accept-Encoding")

_session = requests.Session()
_session.verify = False


@dataclass
class ForwardedResponse:
    """The status, headers and body a forwarded request produced."""

    status: int
    headers: Headers
    body: bytes


def forward(
    host: str,
    trim_prefix: str,
    method: str,
    path: str,
    headers: Mapping[str, str],
    body: bytes,
) -> ForwardedResponse:
    """Send a request for ``path`` (minus ``trim_prefix``) to ``host``.

    Only Content-Type, Accept and Accept-Encoding are passed on. The reply's
    headers are copied and the default WebDriver response headers added.
    """
    url = construct_url(host, path, trim_prefix)
    incoming = {key.lower(): value for key, value in headers.items()}
    outgoing: dict[str, str | None] = {
        name: incoming.get(name.lower()) for name in _FORWARDED_HEADERS
    }

    with _session.request(
        method,
        url,
        data=body,
        headers=outgoing,
        stream=True,
        timeout=(_CONNECT_TIMEOUT, None),
    ) as resp:
        content = resp.raw.read(decode_content=False)
        response_headers = Headers([])
        for name, value in resp.headers.items():
            del response_headers[name]
            response_headers.add_header(name, value)

    set_default_response_headers(response_headers)
    return ForwardedResponse(status=resp.status_code, headers=response_headers, body=content)


def get(url: str, timeout: float | None = None) -> requests.Response:
    """Issue a GET request for ``url`` and return the response."""
    return _session.get(url, timeout=(_CONNECT_TIMEOUT, timeout))


def construct_url(base: str, path: str, prefix: str) -> str:
    """Resolve ``path`` with ``prefix`` removed against ``base``.

    Raises ValueError if ``path`` does not start with ``prefix``.
    """
    urlsplit(base)
    if not prefix.startswith("/"):
        prefix = "/" + prefix
    if not path.startswith(prefix):
        raise ValueError(f"{path!r} does not have expected prefix {prefix!r}")
    return urljoin(base, path[len(prefix):])


def fqdn() -> str:
    """Return the fully-qualified domain name of this host.

    Falls back to "localhost" if the hostname cannot be looked up.
    """
    hostname = socket.gethostname()

    try:
        infos = socket.getaddrinfo(hostname, None)
    except OSError:
        return "localhost"

    addresses = list(dict.fromkeys(info[4][0] for info in infos))
    for address in addresses:
        try:
            name, aliases, _ = socket.gethostbyaddr(address)
        except OSError:
            continue
        names = [name, *aliases]
        if not names:
            continue
        names.sort(key=len, reverse=True)
        for candidate in names:
            trimmed = candidate.rstrip(".")
            if trimmed.startswith(hostname):
                return trimmed
        return names[0]

    return "localhost"


def set_default_response_headers(headers: Headers) -> None:
    """Set the headers that appear in all WebDriver responses."""
    headers["Access-Control-Allow-Origin"] = "*"
    headers["Access-Control-Allow-Methods"] = "CONNECT,DELETE,GET,HEAD,OPTIONS,PATCH,POST,PUT,TRACE"
    headers.add_header("Access-Control-Allow-Headers", "Accept,Content-Type")
    headers["Cache-Control"] = "no-cache"