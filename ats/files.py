from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass

from ats.core.errors import InternalError, ValidationFailed, field_error


ALLOWED_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/jpg",
        "image/png",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
)

DEFAULT_MIME_TYPE = "application/octet-stream"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._\- ]")
_WHITESPACE = re.compile(r"\s+")

_PROCESS_FAILURES = {"Document": "Failed to process document", "License": "Failed to process license document"}


@dataclass(frozen=True, slots=True)
class StoredFile:
    content: bytes
    filename: str
    mime_type: str


def validate_upload(field: str, content_type: str | None, size: int, *, max_bytes: int) -> str:
    mime_type = (content_type or "").lower()
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationFailed(
            "Invalid file type. Only PDF, images, Word and Excel documents are allowed",
            [field_error(field, f"Unsupported file type: {content_type or 'unknown'}")],
        )
    if size > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise ValidationFailed(
            f"File size exceeds the {limit_mb}MB limit",
            [field_error(field, f"File size exceeds the {limit_mb}MB limit")],
        )
    if size == 0:
        raise ValidationFailed("Uploaded file is empty", [field_error(field, "Uploaded file is empty")])
    return mime_type


def encode_file(content: bytes, filename: str, mime_type: str) -> str:
    """Serialize an upload into the text stored in the file column."""
    return json.dumps(
        {
            "originalFileName": filename,
            "mimeType": mime_type,
            "fileData": base64.b64encode(content).decode("ascii"),
        }
    )


def decode_file(stored: str, fallback_name: str, *, kind: str = "Document") -> StoredFile:
    """Read either the JSON metadata format or a bare base64 payload."""
    try:
        payload = json.loads(stored)
    except ValueError:
        payload = None

    if isinstance(payload, dict) and "fileData" in payload:
        data = str(payload.get("fileData") or "")
        filename = str(payload.get("originalFileName") or "") or f"{fallback_name}.pdf"
        mime_type = str(payload.get("mimeType") or "") or DEFAULT_MIME_TYPE
    else:
        data = stored
        filename = f"{fallback_name}.pdf"
        mime_type = DEFAULT_MIME_TYPE

    if not data:
        raise InternalError(f"{kind} file data is missing or corrupted")

    try:
        content = base64.b64decode(data, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise InternalError(_PROCESS_FAILURES.get(kind, "Failed to process document")) from exc
    return StoredFile(content=content, filename=filename, mime_type=mime_type)


def sanitize_filename(filename: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("", filename)
    return _WHITESPACE.sub("_", cleaned).strip()


def attachment_headers(stored: StoredFile, *, kind: str = "Document") -> dict[str, str]:
    safe_name = sanitize_filename(stored.filename)
    if not safe_name:
        raise InternalError(_PROCESS_FAILURES.get(kind, "Failed to process document"))
    return {
        "Content-Disposition": f'attachment; filename="{safe_name}"',
        "Content-Length": str(len(stored.content)),
        "Cache-Control": "no-cache, no-store, must-revalidate",
    }


@dataclass(frozen=True, slots=True)
class Upload:
    filename: str
    content_type: str | None
    content: bytes
