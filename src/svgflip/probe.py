"""Aspect-ratio probe used by the rules that turn <img> into svg."""
from __future__ import annotations

import asyncio
import io
import logging
from typing import Iterable, Optional, Protocol
from urllib.parse import quote, urlparse

import aiohttp
from PIL import Image, UnidentifiedImageError

from .config import config
from .errors import ProbeError, ProbeFailure, ProbeTimeout

logger = logging.getLogger(__name__)

FALLBACK_RATIO = 1.0

# Request headers that look like an image load from inside an article page.
PLATFORM_HEADERS = {
    "Referer": "https://mp.weixin.qq.com/",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "image/png,image/jpeg,image/gif,image/webp,*/*",
    "Accept-Language": "zh-CN,zh;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

HOTLINK_HOSTS = ("mmbiz.qpic.cn", "mmbiz.qlogo.cn", "mmecoa.qpic.cn")


class RatioProbe(Protocol):
    async def __call__(self, url: str) -> float: ...


def ratio_from_bytes(payload: bytes) -> float:
    """Width / height of an encoded image, read with Pillow."""
    try:
        with Image.open(io.BytesIO(payload)) as image:
            width, height = image.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ProbeFailure(f"not a decodable image: {exc}") from exc
    if not width or not height:
        raise ProbeFailure(f"image has no usable size ({width}x{height})")
    return width / height


class ImageRatioProbe:
    """Fetches an image and reports its natural aspect ratio.

    Hotlink-protected hosts are routed through the image proxy when one is
    configured; everything else is fetched directly with the platform headers.
    Calling the probe never raises: failures resolve to ``FALLBACK_RATIO``.
    """

    def __init__(
        self,
        proxy_url: Optional[str] = None,
        timeout: float = 5.0,
        hotlink_hosts: Iterable[str] = HOTLINK_HOSTS,
    ) -> None:
        self.proxy_url = proxy_url
        self.timeout = timeout
        self.hotlink_hosts = tuple(hotlink_hosts)

    def request_url(self, url: str) -> str:
        host = (urlparse(url).hostname or "").lower()
        if self.proxy_url and any(host == h or host.endswith("." + h) for h in self.hotlink_hosts):
            separator = "&" if "?" in self.proxy_url else "?"
            return f"{self.proxy_url}{separator}url={quote(url, safe='')}"
        return url

    async def fetch(self, url: str) -> bytes:
        target = self.request_url(url)
        logger.debug("probing %s via %s", url, target)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=PLATFORM_HEADERS) as session:
                async with session.get(target) as resp:
                    if resp.status >= 400:
                        raise ProbeFailure(f"HTTP {resp.status} fetching {url}")
                    return await resp.read()
        except asyncio.TimeoutError as exc:
            raise ProbeTimeout(f"timed out after {self.timeout}s fetching {url}") from exc
        except aiohttp.ClientError as exc:
            raise ProbeFailure(f"failed to fetch {url}: {exc}") from exc

    async def measure(self, url: str) -> float:
        return ratio_from_bytes(await self.fetch(url))

    async def __call__(self, url: str) -> float:
        try:
            return await self.measure(url)
        except ProbeError as exc:
            logger.warning("using fallback ratio %s: %s", FALLBACK_RATIO, exc)
            return FALLBACK_RATIO


def default_probe() -> ImageRatioProbe:
    return ImageRatioProbe(proxy_url=config.proxy_url, timeout=config.probe_timeout)


__all__ = [
    "FALLBACK_RATIO",
    "PLATFORM_HEADERS",
    "HOTLINK_HOSTS",
    "RatioProbe",
    "ImageRatioProbe",
    "ratio_from_bytes",
    "default_probe",
]
