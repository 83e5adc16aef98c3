"""Inline remote article images as data: URIs so downloads read offline."""

import base64
import html
import logging
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from .transport import Download, Transport

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 1024 * 1024

IMG_TAG_PATTERN = re.compile(r"<img\b([^>]*)>", re.IGNORECASE)
SRC_PATTERN = re.compile(r"""\bsrc\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)

MIME_TYPES_BY_EXTENSION = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}
DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass
class EmbedResult:
    """Rewritten HTML plus what happened to its images."""

    html: str
    embedded: int = 0
    removed: int = 0
    first_image: bytes | None = None


def has_embedded_images(html_content: str) -> bool:
    return "data:image/" in html_content


def guess_mime_type(content_type: str | None, url: str) -> str:
    """MIME type from the Content-Type header, else the URL's extension, else JPEG."""
    if content_type:
        return content_type.split(";")[0].strip().lower()
    filename = urlparse(url).path.rsplit("/", 1)[-1]
    if "." in filename:
        extension = filename.rsplit(".", 1)[-1].lower()
        return MIME_TYPES_BY_EXTENSION.get(extension, DEFAULT_MIME_TYPE)
    return DEFAULT_MIME_TYPE


def to_data_uri(image_data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image_data).decode('ascii')}"


def download_image(transport: Transport, url: str, max_bytes: int = MAX_IMAGE_BYTES) -> Download | None:
    """
    Fetch one image.

    Returns None for a failed request, an empty or oversized body, or a
    Content-Type that is not ``image/*``.
    """
    result = transport.download(url, max_bytes)
    if not result.success:
        logger.warning(f"Failed to download image {url}: {result.error_message}")
        return None
    if not result.content:
        logger.warning(f"Empty image data for {url}")
        return None
    if result.content_type and not result.content_type.lower().startswith("image/"):
        logger.warning(f"Content-Type {result.content_type} is not an image: {url}")
        return None
    return result


def download_image_with_fallback(
    transport: Transport, url: str, max_bytes: int = MAX_IMAGE_BYTES
) -> Download | None:
    """Fetch an image, retrying an https URL once over plain http."""
    image = download_image(transport, url, max_bytes)
    if image is None and url.startswith("https://"):
        image = download_image(transport, "http://" + url[len("https://"):], max_bytes)
    return image


def embed_images(html_content: str, transport: Transport, max_bytes: int = MAX_IMAGE_BYTES) -> EmbedResult:
    """
    Replace every absolute http(s) ``<img src>`` with a base64 data: URI.

    Images that cannot be fetched are dropped from the document. Relative
    and data: sources are left alone. HTML that already carries
    ``data:image/`` URIs was processed before and is returned unchanged.
    """
    result = EmbedResult(html=html_content)
    if has_embedded_images(html_content):
        logger.debug("Images already embedded, skipping")
        return result

    def replace(match: re.Match) -> str:
        attrs = match.group(1)
        src_match = SRC_PATTERN.search(attrs)
        if not src_match:
            return match.group(0)

        src = html.unescape(src_match.group(2)).strip()
        if not src.lower().startswith(("http://", "https://")):
            return match.group(0)

        image = download_image_with_fallback(transport, src, max_bytes)
        if image is None:
            logger.warning(f"Removing image that could not be embedded: {src}")
            result.removed += 1
            return ""

        if result.first_image is None:
            result.first_image = image.content
        result.embedded += 1
        data_uri = to_data_uri(image.content, guess_mime_type(image.content_type, src))
        return f"<img{attrs[:src_match.start(2)]}{data_uri}{attrs[src_match.end(2):]}>"

    result.html = IMG_TAG_PATTERN.sub(replace, html_content)
    if result.embedded or result.removed:
        logger.info(f"Embedded {result.embedded} images, removed {result.removed}")
    return result
