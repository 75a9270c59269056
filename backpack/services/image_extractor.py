"""Extract the hosted-assertion URL from a baked badge image.

BAKING
------
An issuer "bakes" a badge by writing a text chunk with the keyword
``openbadges`` into the badge PNG.  Older issuers store the assertion URL
directly:

    openbadges = https://issuer.example/assertions/123

Open Badges 2.0 issuers may instead embed the whole assertion JSON
(usually in an iTXt chunk).  The hosted copy is still the one we trust,
so we only take its URL out of the embedded document and fetch it like
any other.

Pillow exposes every tEXt/zTXt/iTXt chunk through ``PngImageFile.text``,
including chunks that come after the image data, so no hand-rolled chunk
walking is needed.
"""

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from PIL import Image, UnidentifiedImageError

from backpack.core.errors import EmptyUpload, MalformedImage

logger = logging.getLogger(__name__)

BAKED_KEYWORD = "openbadges"


@dataclass(frozen=True, slots=True)
class ExtractedImage:
    assertion_url: str
    image_bytes: bytes


def extract(file_bytes: bytes) -> ExtractedImage:
    """Return the assertion URL baked into *file_bytes*.

    Raises EmptyUpload for zero-length input and MalformedImage when the
    data is not a PNG or carries no usable openbadges reference.
    """
    if not file_bytes:
        raise EmptyUpload("uploaded file is empty")

    reference = _read_baked_text(file_bytes)
    url = _url_from_reference(reference)
    logger.debug("Extracted assertion url=%s from %d-byte image", url, len(file_bytes))
    return ExtractedImage(assertion_url=url, image_bytes=file_bytes)


def _read_baked_text(file_bytes: bytes) -> str:
    try:
        with Image.open(io.BytesIO(file_bytes)) as img:
            if img.format != "PNG":
                raise MalformedImage(f"unsupported image container: {img.format}")
            chunks = dict(img.text)  # type: ignore[attr-defined]
    except MalformedImage:
        raise
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        # Pillow raises SyntaxError for broken PNG chunk structure.
        raise MalformedImage(f"could not parse image: {e}") from e

    reference = chunks.get(BAKED_KEYWORD)
    if not reference:
        raise MalformedImage("no openbadges chunk in image")
    return str(reference).strip()


def _url_from_reference(reference: str) -> str:
    if reference.startswith("{"):
        try:
            embedded = json.loads(reference)
        except json.JSONDecodeError as e:
            raise MalformedImage("openbadges chunk holds invalid JSON") from e
        if not isinstance(embedded, dict):
            raise MalformedImage("openbadges chunk JSON is not an object")
        reference = _hosted_url(embedded) or ""

    parsed = urlparse(reference)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise MalformedImage(f"openbadges reference is not an http(s) URL: {reference!r}")
    return reference


def _hosted_url(embedded: dict) -> str | None:
    for key in ("verify", "verification"):
        block = embedded.get(key)
        if isinstance(block, dict) and isinstance(block.get("url"), str):
            return block["url"]
    ident = embedded.get("id")
    return ident if isinstance(ident, str) else None
