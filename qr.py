"""
qr.py
QR code export: turn the PromptPay scannable-code image into a PNG download.
Order: re-encode the image already shown on the page, else fetch through the
same-origin proxy (rasterising SVG), else hand back the URL to open in a new tab.
"""

from __future__ import annotations

import io
import logging
import time
from dataclasses import dataclass
from typing import Callable

import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

QR_SIZE = 512

# Sent upstream so the image host does not reject the request as a hotlink
BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "image/*,*/*",
    "Accept-Language": "en-US,en;q=0.9",
}


@dataclass(frozen=True)
class QrDownload:
    data: bytes
    filename: str
    mime: str = "image/png"


@dataclass(frozen=True)
class QrLink:
    url: str


class QrFetchError(Exception):
    pass


def is_svg(content_type: str | None) -> bool:
    return bool(content_type and "svg" in content_type.lower())


def qr_filename(charge_id: str | None) -> str:
    return f"qr-payment-{charge_id or int(time.time() * 1000)}.png"


def to_png(image_bytes: bytes, size: int = QR_SIZE) -> bytes:
    """Draw the image onto a white square canvas and encode it as PNG."""
    with Image.open(io.BytesIO(image_bytes)) as img:
        img = img.convert("RGBA").resize((size, size))
        canvas = Image.new("RGB", (size, size), "white")
        canvas.paste(img, (0, 0), img)
    out = io.BytesIO()
    canvas.save(out, format="PNG")
    return out.getvalue()


def svg_to_png(svg_bytes: bytes, size: int = QR_SIZE) -> bytes:
    # cairosvg needs the native cairo library, so load it only when an SVG shows up
    import cairosvg

    raster = cairosvg.svg2png(bytestring=svg_bytes, output_width=size, output_height=size)
    return to_png(raster, size)


def rasterize(content_type: str | None, data: bytes, size: int = QR_SIZE) -> bytes:
    if is_svg(content_type):
        return svg_to_png(data, size)
    return to_png(data, size)


def fetch_image(url: str, referer: str, timeout: float = 15) -> tuple[str, bytes]:
    """Fetch an image from its origin with browser-like headers. Returns (content_type, body)."""
    headers = dict(BROWSER_HEADERS, Referer=referer)
    try:
        resp = requests.get(url, headers=headers, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise QrFetchError(f"fetching {url} failed: {exc}") from exc
    return resp.headers.get("Content-Type", ""), resp.content


class ProxyFetcher:
    """Fetches QR images through the payment proxy's /api/download-qr endpoint."""

    def __init__(self, proxy_base_url: str, timeout: float = 15):
        self.proxy_base_url = proxy_base_url.rstrip("/")
        self.timeout = timeout

    def __call__(self, url: str) -> tuple[str, bytes]:
        try:
            resp = requests.get(
                f"{self.proxy_base_url}/api/download-qr",
                params={"url": url},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise QrFetchError(f"proxy download failed: {exc}") from exc
        return resp.headers.get("Content-Type", ""), resp.content


def export_qr(
    url: str,
    charge_id: str | None = None,
    rendered: bytes | None = None,
    fetch: Callable[[str], tuple[str, bytes]] | None = None,
) -> QrDownload | QrLink:
    filename = qr_filename(charge_id)

    if rendered:
        try:
            return QrDownload(to_png(rendered), filename)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            logger.info("Re-encoding rendered QR image failed: %s", exc)

    if fetch is not None:
        try:
            content_type, data = fetch(url)
            return QrDownload(rasterize(content_type, data), filename)
        except (QrFetchError, UnidentifiedImageError, OSError, ValueError) as exc:
            logger.info("Proxy QR download failed: %s", exc)

    return QrLink(url)
