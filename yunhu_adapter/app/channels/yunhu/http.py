# -*- coding: utf-8 -*-
"""Yunhu HTTP client.

Two transports: the bot Open API (``endpoint``) and the web API
(``endpoint_web``), plus raw file download. Every call goes through
``retry_async`` with the bot's RetryPolicy: at most ``max_attempts`` tries,
attempt N sleeps N * backoff_unit seconds before the next one, and the last
error surfaces wrapped in TransportError.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import functools
import logging
import mimetypes
import os
import re
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Optional,
    Tuple,
    Type,
    TypeVar,
)
from urllib.parse import unquote, urlparse

import aiohttp

from ....config.config import RetryPolicy, YunhuConfig
from ....constant import (
    AVATAR_REFERER,
    BROWSER_USER_AGENT,
    DOWNLOAD_REFERER,
)
from .errors import TransportError, YunhuError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]

# Failures worth another attempt: connection errors, HTTP >= 400
# (raise_for_status), and per-request timeouts.
TRANSPORT_ERRORS: Tuple[Type[BaseException], ...] = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
)

# (filename, bytes, content type)
FilePart = Tuple[str, bytes, str]

_DATA_URL_RE = re.compile(
    r"^data:(?P<mime>[^;]+);base64,(?P<b64>.*)$",
    re.I | re.S,
)


@dataclass
class FetchedFile:
    data: bytes
    filename: str
    mime: Optional[str]

    @property
    def size(self) -> int:
        return len(self.data)


def _short(url: str, limit: int = 80) -> str:
    return url[:limit] + "..." if len(url) > limit else url


def parse_data_url(data_url: str) -> Tuple[bytes, Optional[str]]:
    """Return (bytes, mime or None) for a base64 ``data:`` URL."""
    m = _DATA_URL_RE.match(data_url.strip())
    if not m:
        raise ValueError("not a base64 data url")
    mime = (m.group("mime") or "").strip().lower()
    try:
        data = base64.b64decode(m.group("b64"), validate=False)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 in data url: {e}") from e
    return data, mime or None


def _strip_mime(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower() or None


def _filename_from_url(url: str) -> str:
    path = unquote(urlparse(url).path or "")
    return os.path.basename(path.rstrip("/"))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    description: str = "request",
    sleep: Sleep = asyncio.sleep,
    retry_on: Tuple[Type[BaseException], ...] = TRANSPORT_ERRORS,
) -> T:
    """Run ``operation`` until it succeeds or ``policy.max_attempts`` is
    used up. Errors outside ``retry_on`` propagate immediately.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except retry_on as e:
            if attempt >= policy.max_attempts:
                logger.error(
                    "yunhu %s failed after %s attempt(s): %s",
                    description,
                    attempt,
                    e,
                )
                raise TransportError(
                    f"{description} failed after {attempt} attempt(s): "
                    f"{e}",
                    last_error=e,
                ) from e
            delay = policy.backoff(attempt)
            logger.warning(
                "yunhu %s failed (attempt %s/%s): %s; retry in %.1fs",
                description,
                attempt,
                policy.max_attempts,
                e,
                delay,
            )
            await sleep(delay)


def retrying(func):
    """Wrap a ``BotHttp`` coroutine method (first arg: url) in
    ``retry_async`` using the instance's policy and sleep.
    """

    @functools.wraps(func)
    async def wrapper(self: "BotHttp", url: str, *args, **kwargs):
        return await retry_async(
            lambda: func(self, url, *args, **kwargs),
            self.retry_policy,
            description=f"{func.__name__} {_short(url)}",
            sleep=self._sleep,
        )

    return wrapper


class BotHttp:
    """Retrying HTTP client for one Yunhu bot.

    Paths given to get/post are joined onto ``endpoint``; get_web/post_web
    onto ``endpoint_web``. Absolute URLs are used as-is. JSON responses are
    returned decoded; status >= 400 counts as a transport failure.
    """

    def __init__(
        self,
        endpoint: str,
        endpoint_web: str,
        *,
        timeout: float = 120,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.endpoint_web = endpoint_web.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._sleep = sleep
        self._api_session: Optional[aiohttp.ClientSession] = None
        self._web_session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(
        cls,
        config: YunhuConfig,
        sleep: Sleep = asyncio.sleep,
    ) -> "BotHttp":
        return cls(
            config.endpoint,
            config.endpoint_web,
            timeout=config.upload_timeout,
            retry_policy=config.retry_policy,
            sleep=sleep,
        )

    async def __aenter__(self) -> "BotHttp":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ---------------------------
    # transports
    # ---------------------------

    def _api(self) -> aiohttp.ClientSession:
        if self._api_session is None or self._api_session.closed:
            self._api_session = aiohttp.ClientSession(
                headers={"User-Agent": BROWSER_USER_AGENT},
            )
        return self._api_session

    def _web(self) -> aiohttp.ClientSession:
        if self._web_session is None or self._web_session.closed:
            self._web_session = aiohttp.ClientSession(
                headers={"User-Agent": BROWSER_USER_AGENT},
            )
        return self._web_session

    async def close(self) -> None:
        for session in (self._api_session, self._web_session):
            if session is not None and not session.closed:
                await session.close()
        self._api_session = None
        self._web_session = None

    @staticmethod
    def _join(base: str, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return f"{base}/{url.lstrip('/')}"

    @staticmethod
    def _build_form(files: Dict[str, FilePart]) -> aiohttp.FormData:
        form = aiohttp.FormData()
        for field, (filename, data, content_type) in files.items():
            form.add_field(
                field,
                data,
                filename=filename,
                content_type=content_type,
            )
        return form

    async def _request_json(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        files: Optional[Dict[str, FilePart]] = None,
    ) -> Any:
        # FormData can only be consumed once, so build it per attempt.
        data = self._build_form(files) if files else None
        async with session.request(
            method,
            url,
            params=params,
            json=json,
            data=data,
            timeout=self._timeout,
        ) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    # ---------------------------
    # Open API
    # ---------------------------

    @retrying
    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self._request_json(
            self._api(),
            "GET",
            self._join(self.endpoint, url),
            params=params,
        )

    @retrying
    async def post(
        self,
        url: str,
        json: Any = None,
        *,
        params: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, FilePart]] = None,
    ) -> Any:
        """POST JSON, or multipart when ``files`` maps field ->
        (filename, bytes, content_type).
        """
        return await self._request_json(
            self._api(),
            "POST",
            self._join(self.endpoint, url),
            params=params,
            json=json,
            files=files,
        )

    async def post_stream(
        self,
        url: str,
        chunks: AsyncIterator[bytes],
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[int, str]:
        """POST a chunked body; returns (status, body text).

        Not retried: a consumed stream cannot be replayed.
        """
        async with self._api().post(
            self._join(self.endpoint, url),
            params=params,
            data=chunks,
            headers=headers,
            timeout=self._timeout,
        ) as resp:
            return resp.status, await resp.text()

    # ---------------------------
    # Web API
    # ---------------------------

    @retrying
    async def get_web(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self._request_json(
            self._web(),
            "GET",
            self._join(self.endpoint_web, url),
            params=params,
        )

    @retrying
    async def post_web(
        self,
        url: str,
        json: Any = None,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self._request_json(
            self._web(),
            "POST",
            self._join(self.endpoint_web, url),
            params=params,
            json=json,
        )

    # ---------------------------
    # Raw download
    # ---------------------------

    @retrying
    async def file(
        self,
        url: str,
        referer: str = DOWNLOAD_REFERER,
    ) -> FetchedFile:
        """Download ``url`` with browser-like headers; the resource server
        refuses requests without a Referer. ``data:`` URLs decode locally.
        """
        if url.startswith("data:"):
            data, mime = parse_data_url(url)
            ext = (mimetypes.guess_extension(mime or "") or "").lstrip(".")
            name = f"file.{ext}" if ext else "file"
            return FetchedFile(data=data, filename=name, mime=mime)

        async with self._api().get(
            url,
            headers={
                "Referer": referer,
                "User-Agent": BROWSER_USER_AGENT,
            },
            timeout=self._timeout,
        ) as resp:
            resp.raise_for_status()
            data = await resp.read()
            disposition = resp.content_disposition
            filename = (
                disposition.filename
                if disposition and disposition.filename
                else _filename_from_url(url)
            )
            mime = _strip_mime(resp.headers.get(aiohttp.hdrs.CONTENT_TYPE))
        if not mime and filename:
            mime = mimetypes.guess_type(filename)[0]
        logger.debug(
            "yunhu file fetched: url=%s size=%s mime=%s filename=%s",
            _short(url),
            len(data),
            mime,
            filename,
        )
        return FetchedFile(data=data, filename=filename, mime=mime)

    async def image_as_data_url(self, url: str) -> str:
        """Fetch an image (e.g. an avatar) as a base64 data URL; on any
        failure return ``url`` unchanged.
        """
        try:
            fetched = await self.file(url, referer=AVATAR_REFERER)
        except (YunhuError, ValueError) as e:
            logger.warning("yunhu cannot fetch image %s: %s", _short(url), e)
            return url
        if not fetched.mime or not fetched.mime.startswith("image/"):
            logger.warning(
                "yunhu fetched non-image for %s: mime=%s",
                _short(url),
                fetched.mime,
            )
            return url
        b64 = base64.b64encode(fetched.data).decode("ascii")
        return f"data:{fetched.mime};base64,{b64}"
