"""An HTTP transport that resumes interrupted downloads with Range requests."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

_DISCARD_CHUNK = 64 * 1024

HTTP_OK = 200
HTTP_PARTIAL_CONTENT = 206


@dataclass
class Request:
    """An outgoing HTTP request."""

    method: str = "GET"
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class Response:
    """An HTTP response; ``body`` has ``read(size)`` and ``close()``."""

    status_code: int
    content_length: int = -1
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


Client = Callable[[Request], Response]


def _close_quietly(body: Any) -> None:
    try:
        body.close()
    except OSError:
        pass


class RangeRetryReader:
    """A response body that re-requests the rest of the content when a read fails."""

    _RETRIES = (True, True, False)

    def __init__(self, client: Client, request: Request) -> None:
        self._client = client
        self._request = request
        self._body: Any = None
        self.progress = 0
        self.total = 0

    def _reset(self, cause: BaseException | None) -> Response:
        if self._body is not None:
            _close_quietly(self._body)

        range_header = f"bytes={self.progress}-"
        headers = dict(self._request.headers)
        if self.progress:
            headers["Range"] = range_header
        request = replace(self._request, headers=headers)

        try:
            response = self._client(request)
        except Exception as exc:
            if cause is not None:
                raise exc from cause
            raise

        if response.body is None:
            return response

        if self.total == 0:
            self.total = response.content_length

        if response.status_code == HTTP_OK:
            # The server ignored the Range header; skip what was already read.
            if self.progress:
                self._discard(response.body, self.progress)
        elif response.status_code != HTTP_PARTIAL_CONTENT:
            _close_quietly(response.body)
            message = (
                f"{request.method} {request.url} (Range: {range_header}): "
                f"unexpected status code: {response.status_code}"
            )
            if cause is not None:
                raise OSError(f"retrying {cause}: {message}") from cause
            raise OSError(message)

        self._body = response.body
        response.body = self
        return response

    @staticmethod
    def _discard(body: Any, count: int) -> None:
        remaining = count
        while remaining:
            chunk = body.read(min(remaining, _DISCARD_CHUNK))
            if not chunk:
                _close_quietly(body)
                raise OSError(f"unexpected EOF while skipping {count} bytes")
            remaining -= len(chunk)

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, resuming the download up to twice on error."""
        if self._body is None:
            return b""
        data = b""
        for retry in self._RETRIES:
            try:
                data = self._body.read(size)
                break
            except OSError as err:
                if not retry:
                    raise
                self._reset(err)
        self.progress += len(data)
        return data

    def close(self) -> None:
        """Close the underlying body."""
        if self._body is not None:
            self._body.close()

    def __enter__(self) -> RangeRetryReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class RangeRetryTransport:
    """Sends requests through ``client`` and wraps bodies in a RangeRetryReader."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def round_trip(self, request: Request) -> Response:
        """Send ``request`` and return a response whose body resumes on failure."""
        return RangeRetryReader(self._client, request)._reset(None)