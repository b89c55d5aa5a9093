"""Ingestion gate: rejects unsupported or oversized documents before any
network call is made."""

from dataclasses import dataclass
from typing import Optional, Sequence

from policy_intake.core.config import settings
from policy_intake.core.exceptions import IngestionError, PayloadTooLarge, UnsupportedMediaType
from policy_intake.schemas.intake import DocumentPayload
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

TEXT_MIME_TYPE = "text/plain"
_DATA_URL_MARKER = ";base64,"


@dataclass(frozen=True)
class AcceptedDocument:
    """A payload that passed the gate.

    ``base64`` has any ``data:`` URL prefix removed; exactly one of
    ``base64``/``text`` is set.
    """
    mime_type: str
    base64: Optional[str] = None
    text: Optional[str] = None

    @property
    def is_binary(self) -> bool:
        return self.base64 is not None


def split_data_url(value: str) -> tuple[Optional[str], str]:
    """Split ``data:<mime>;base64,<data>`` into (mime, data).

    Plain base64 is returned unchanged with no mime type.
    """
    if value.startswith("data:") and _DATA_URL_MARKER in value:
        header, _, data = value.partition(",")
        mime = header[len("data:"):].split(";", 1)[0].strip()
        return (mime or None), data
    return None, value


def normalize_mime_type(mime_type: Optional[str]) -> Optional[str]:
    if not mime_type:
        return None
    return mime_type.split(";", 1)[0].strip().lower() or None


def check_payload(
    payload: DocumentPayload,
    mime_type: Optional[str] = None,
    max_base64_bytes: Optional[int] = None,
    max_text_bytes: Optional[int] = None,
    allowed_mime_types: Optional[Sequence[str]] = None,
) -> AcceptedDocument:
    """Accept or reject a document payload.

    Limits are inclusive: a payload of exactly the limit passes.

    Args:
        payload: Base64 (optionally a data URL) or raw text, not both
        mime_type: Declared mime type; taken from the data URL when absent
        max_base64_bytes: Override for the configured base64 limit
        max_text_bytes: Override for the configured text limit
        allowed_mime_types: Override for the configured allowed types

    Returns:
        AcceptedDocument ready for extraction

    Raises:
        IngestionError: If both or neither of base64/text are present
        UnsupportedMediaType: If the mime type is not allowed
        PayloadTooLarge: If the payload exceeds its limit
    """
    intake = settings.intake
    base64_limit = intake.max_base64_bytes if max_base64_bytes is None else max_base64_bytes
    text_limit = intake.max_text_bytes if max_text_bytes is None else max_text_bytes
    allowed = {
        normalize_mime_type(m)
        for m in (intake.allowed_mime_types if allowed_mime_types is None else allowed_mime_types)
    }

    has_base64 = bool(payload.base64)
    has_text = payload.text is not None and payload.text != ""
    if has_base64 == has_text:
        raise IngestionError("Provide exactly one of base64 or text document content")

    if has_base64:
        url_mime, data = split_data_url(payload.base64)
        declared = normalize_mime_type(mime_type) or normalize_mime_type(url_mime)
        if declared not in allowed:
            raise UnsupportedMediaType(mime_type or url_mime)
        # Size of the encoded payload, as transmitted
        size = len(data)
        if size > base64_limit:
            LOGGER.warning(
                "Rejected oversized base64 payload",
                extra={"size": size, "limit": base64_limit}
            )
            raise PayloadTooLarge(size, base64_limit, "base64")
        return AcceptedDocument(mime_type=declared, base64=data)

    declared = normalize_mime_type(mime_type) or TEXT_MIME_TYPE
    if declared not in allowed:
        raise UnsupportedMediaType(mime_type)
    size = len(payload.text.encode("utf-8"))
    if size > text_limit:
        LOGGER.warning(
            "Rejected oversized text payload",
            extra={"size": size, "limit": text_limit}
        )
        raise PayloadTooLarge(size, text_limit, "text")
    return AcceptedDocument(mime_type=declared, text=payload.text)
