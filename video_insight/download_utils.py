"""Download videos from direct URLs or video-hosting pages for pipeline processing."""

import asyncio
import html
import json
import logging
import re
import socket
import uuid
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

import httpx
from tenacity import wait_fixed

from video_insight.errors import (
    DnsResolutionError,
    DownloadError,
    DownloadTimeoutError,
    DownloadTooLargeError,
    InvalidLocatorError,
    StreamResolutionError,
)
from video_insight.retry import with_retry

logger = logging.getLogger(__name__)

# Hosting pages that embed a player config instead of serving the media directly
SCRAPE_DOMAINS = ("vimeo.com",)

# Inline script JSON and the player element attribute
SCRIPT_CONFIG_URL = re.compile(r'"config_url":"((?:[^"\\]|\\.)+)"')
ATTRIBUTE_CONFIG_URL = re.compile(r'data-config-url="([^"]+)"')

VIDEO_SUFFIXES = (".mp4", ".mov", ".avi", ".wmv", ".webm", ".mkv", ".m4v")

DEFAULT_MAX_BYTES = 500 * 1024 * 1024
DEFAULT_TIMEOUT_SECONDS = 30.0
DNS_RETRY_ATTEMPTS = 2
DNS_RETRY_DELAY_SECONDS = 3.0
CHUNK_SIZE = 64 * 1024

USER_AGENT = "Mozilla/5.0 (compatible; video_insight/1.0)"

TIMEOUT_MESSAGE = "Video download timed out. The file might be too large or the server is slow."
NO_RESPONSE_MESSAGE = "No response received from the video server. Please check the URL and try again."

DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


def is_url(path: str) -> bool:
    """Return True if path looks like an HTTP(S) URL."""
    s = (path or "").strip()
    return s.startswith("http://") or s.startswith("https://")


def validate_locator(locator: str) -> str:
    """Return the stripped locator, or raise InvalidLocatorError if it is not an absolute URL."""
    url = (locator or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidLocatorError(f"Not a valid absolute URL: {locator!r}")
    return url


def _is_hosting_page(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == domain or host.endswith("." + domain) for domain in SCRAPE_DOMAINS)


def select_progressive_stream(entries: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Pick the highest-resolution progressive rendition.

    Resolution is width x height; ties go to the widest entry.

    Raises:
        StreamResolutionError: No usable entry with a URL.
    """
    candidates = [
        e for e in entries or []
        if isinstance(e, dict) and isinstance(e.get("url"), str) and e["url"]
    ]
    if not candidates:
        raise StreamResolutionError("No video files found")

    def size(entry: dict[str, Any]) -> tuple[int, int]:
        try:
            width = int(entry.get("width") or 0)
            height = int(entry.get("height") or 0)
        except (TypeError, ValueError) as e:
            raise StreamResolutionError(f"Invalid stream dimensions: {e}") from e
        return width * height, width

    return max(candidates, key=size)


def _find_config_url(page_html: str) -> str | None:
    match = SCRIPT_CONFIG_URL.search(page_html)
    if match:
        try:
            return json.loads(f'"{match.group(1)}"')
        except json.JSONDecodeError as e:
            raise StreamResolutionError(f"Malformed config URL in page: {e}") from e
    match = ATTRIBUTE_CONFIG_URL.search(page_html)
    if match:
        return html.unescape(match.group(1))
    return None


def _lookup(config: Any, *keys: str) -> Any:
    node = config
    for key in keys:
        if node is None:
            return None
        if not isinstance(node, dict):
            raise StreamResolutionError("Player config has an unexpected structure")
        node = node.get(key)
    return node


def _ensure_success(response: httpx.Response) -> None:
    if not response.is_success:
        raise DownloadError(
            f"Failed to download video: {response.status_code} {response.reason_phrase}"
        )


def _is_dns_failure(exc: BaseException) -> bool:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, socket.gaierror):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    text = str(exc).lower()
    return any(marker in text for marker in DNS_FAILURE_MARKERS)


def _describe_transport_error(exc: httpx.HTTPError, url: str) -> DownloadError:
    if isinstance(exc, httpx.TimeoutException):
        return DownloadTimeoutError(TIMEOUT_MESSAGE)
    if isinstance(exc, httpx.ConnectError) and _is_dns_failure(exc):
        host = urlparse(url).hostname or url
        return DnsResolutionError(f"DNS resolution failed for {host}")
    return DownloadError(NO_RESPONSE_MESSAGE)


async def resolve_stream_url(client: httpx.AsyncClient, locator: str) -> str:
    """
    Return a directly downloadable media URL for ``locator``.

    Hosting pages are scraped: the page's embedded player-config reference is
    fetched and the best progressive stream is selected. Other URLs are
    returned unchanged.
    """
    if not _is_hosting_page(locator):
        return locator

    logger.info("Fetching hosting page %s", locator)
    page = await client.get(locator)
    _ensure_success(page)

    config_url = _find_config_url(page.text)
    if not config_url:
        raise StreamResolutionError("Could not find config URL")

    logger.info("Fetching player config %s", config_url)
    config_response = await client.get(config_url)
    _ensure_success(config_response)
    try:
        config = config_response.json()
    except json.JSONDecodeError as e:
        raise StreamResolutionError(f"Player config is not valid JSON: {e}") from e

    progressive = _lookup(config, "request", "files", "progressive")
    if progressive is not None and not isinstance(progressive, list):
        raise StreamResolutionError("Player config has no progressive stream list")
    stream = select_progressive_stream(progressive or [])
    logger.info(
        "Selected progressive stream %sx%s", stream.get("width"), stream.get("height")
    )
    return stream["url"]


async def download_stream(
    client: httpx.AsyncClient,
    url: str,
    dest: Path,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> Path:
    """
    Stream ``url`` into ``dest``, enforcing a size ceiling.

    The partial file is removed if anything goes wrong.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        async with client.stream("GET", url) as response:
            _ensure_success(response)
            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise DownloadTooLargeError(
                    f"Video is {int(declared)} bytes, larger than the {max_bytes} byte limit"
                )
            written = 0
            with open(dest, "wb") as f:
                async for chunk in response.aiter_bytes(CHUNK_SIZE):
                    written += len(chunk)
                    if written > max_bytes:
                        raise DownloadTooLargeError(
                            f"Video exceeds the {max_bytes} byte limit"
                        )
                    f.write(chunk)
    except Exception:
        dest.unlink(missing_ok=True)
        raise
    logger.info("Downloaded %d bytes to %s", written, dest)
    return dest


def _output_path(url: str, output_dir: Path, prefix: str, job_id: str) -> Path:
    suffix = Path(urlparse(url).path).suffix.lower()
    if suffix not in VIDEO_SUFFIXES:
        suffix = ".mp4"
    return output_dir / f"{prefix}-{job_id}{suffix}"


async def resolve_and_download(
    locator: str,
    output_dir: str | Path = "uploads",
    job_id: str | None = None,
    *,
    prefix: str = "remote",
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    max_bytes: int = DEFAULT_MAX_BYTES,
    client: httpx.AsyncClient | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Path:
    """
    Download the video behind a URL or hosting page to a local file.

    Args:
        locator: Direct media URL or hosting-page URL (e.g. Vimeo).
        output_dir: Directory for the downloaded file.
        job_id: Namespace for the file name (random if omitted).
        prefix: File name prefix.
        timeout: Connect/read timeout in seconds.
        max_bytes: Size ceiling for the download.
        client: Optional preconfigured httpx client.
        sleep: Awaitable sleep used before the DNS retry.

    Returns:
        Path to the downloaded video.

    Raises:
        InvalidLocatorError: Locator is not an absolute http(s) URL.
        DownloadError: Resolution or download failed.
    """
    url = validate_locator(locator)
    output_dir = Path(output_dir)
    job_id = job_id or uuid.uuid4().hex

    async def attempt(http: httpx.AsyncClient) -> Path:
        try:
            stream_url = await resolve_stream_url(http, url)
            dest = _output_path(stream_url, output_dir, prefix, job_id)
            logger.info("Downloading video to %s", dest)
            return await download_stream(http, stream_url, dest, max_bytes=max_bytes)
        except httpx.HTTPError as e:
            raise _describe_transport_error(e, url) from e

    async def run(http: httpx.AsyncClient) -> Path:
        return await with_retry(
            lambda: attempt(http),
            DNS_RETRY_ATTEMPTS,
            lambda e: isinstance(e, DnsResolutionError),
            wait=wait_fixed(DNS_RETRY_DELAY_SECONDS),
            sleep=sleep,
            label=f"download {url}",
        )

    if client is not None:
        return await run(client)
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    ) as http:
        return await run(http)
