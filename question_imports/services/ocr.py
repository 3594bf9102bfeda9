# question_imports/services/ocr.py
"""
Mistral OCR over a signed document URL, plus re-hosting of the images the
OCR returns so draft questions can reference stable public URLs.
"""
from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

OCR_MAX_CHARS = 20000
OCR_TIMEOUT_SECONDS = 300

DATA_URL_RE = re.compile(r"data:image/[a-zA-Z0-9.+-]+;base64,[A-Za-z0-9+/_=-]+")
MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*]\(([^)]+)\)")

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/svg+xml": "svg",
}


class OcrError(Exception):
    pass


@dataclass
class OcrResult:
    text: str
    pages: list = field(default_factory=list)
    truncated: bool = False


def run_ocr(document_url: str, session=None) -> OcrResult:
    api_key = settings.MISTRAL_API_KEY
    if not api_key:
        raise OcrError("Missing Mistral API key")

    http = session or requests
    resp = http.post(
        settings.MISTRAL_OCR_URL,
        headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        json={
            "model": settings.MISTRAL_OCR_MODEL,
            "document": {"type": "document_url", "document_url": document_url},
            "include_image_base64": True,
        },
        timeout=OCR_TIMEOUT_SECONDS,
    )
    if not resp.ok:
        raise OcrError(f"Mistral OCR failed ({resp.status_code}): {resp.text or resp.reason}")

    data = resp.json()
    pages = data.get("pages") if isinstance(data.get("pages"), list) else []
    text = "\n\n".join(
        t for t in ((p.get("markdown") or p.get("text") or "") for p in pages) if t.strip()
    )
    logger.info("OCR returned %s page(s), %s chars", len(pages), len(text))
    return OcrResult(text=text, pages=pages, truncated=len(text) > OCR_MAX_CHARS)


# ---------------- image re-hosting ----------------

def extension_for(mime_type: str) -> str:
    return _EXTENSIONS.get(mime_type, "png")


def normalize_base64(value: str) -> str:
    cleaned = re.sub(r"\s+", "", value).replace("-", "+").replace("_", "/")
    return cleaned + "=" * (-len(cleaned) % 4)


def parse_data_url(data_url: str):
    """Returns (mime_type, base64) or None."""
    if not data_url.startswith("data:") or "," not in data_url:
        return None
    header, payload = data_url[5:].split(",", 1)
    mime_type = header.split(";")[0]
    if not mime_type.startswith("image/") or not payload:
        return None
    return mime_type, normalize_base64(payload)


def _page_image(image: dict):
    raw = image.get("image_base64") or image.get("base64") or image.get("image") or ""
    if not raw:
        return None
    if raw.startswith("data:"):
        return parse_data_url(raw)
    mime_type = image.get("mime_type") or image.get("media_type") or image.get("content_type") or "image/png"
    return mime_type, normalize_base64(raw)


def _is_http(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


class PageNormalizer:
    """
    Uploads the images of one OCR page and rewrites its markdown to point at
    the uploaded copies. Identical payloads on a page are uploaded once.
    """

    def __init__(self, storage, bucket: str, import_id):
        self.storage = storage
        self.bucket = bucket
        self.import_id = import_id

    def _upload(self, page_index, page_number, image_index, mime_type, b64) -> dict:
        path = f"imports/{self.import_id}/page-{page_index + 1}/image-{image_index + 1}.{extension_for(mime_type)}"
        try:
            body = base64.b64decode(b64)
        except (binascii.Error, ValueError) as e:
            raise OcrError(f"Invalid OCR image payload: {e}") from e
        result = self.storage.upload(self.bucket, path, body, mime_type)
        if not result.ok:
            raise OcrError(f"Failed to upload OCR image: {result.error}")
        return {
            "page": page_number,
            "index": image_index,
            "mimeType": mime_type,
            "storagePath": path,
            "publicUrl": self.storage.public_url(self.bucket, path),
        }

    def normalize(self, page: dict, page_index: int):
        """Returns (markdown, uploaded_images)."""
        page_number = page.get("index", page.get("page"))
        page_number = page_number + 1 if isinstance(page.get("index"), int) else (page_number or page_index + 1)
        markdown = page.get("markdown") or page.get("text") or ""
        uploaded, by_payload = [], {}

        def upload_once(mime_type, b64):
            if b64 not in by_payload:
                by_payload[b64] = self._upload(page_index, page_number, len(uploaded), mime_type, b64)
                uploaded.append(by_payload[b64])
            return by_payload[b64]

        def replace_data_url(match):
            parsed = parse_data_url(match.group(0))
            if not parsed:
                return match.group(0)
            return upload_once(*parsed)["publicUrl"]

        markdown = DATA_URL_RE.sub(replace_data_url, markdown)

        by_id, in_order = {}, []
        for image in page.get("images") or []:
            parsed = _page_image(image)
            if not parsed:
                continue
            info = upload_once(*parsed)
            in_order.append(info)
            if image.get("id"):
                by_id[image["id"]] = info

        position = iter(in_order)

        def replace_local_ref(match):
            url = match.group(1).strip()
            if _is_http(url) or url.startswith("data:"):
                return match.group(0)
            info = by_id.get(url) or next(position, None)
            if info is None:
                return match.group(0)
            return f"![OCR Image]({info['publicUrl']})"

        markdown = MARKDOWN_IMAGE_RE.sub(replace_local_ref, markdown)
        return markdown, uploaded
