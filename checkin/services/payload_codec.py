"""QR payload encoding.

A guest's QR code carries compact JSON: {"id": <credential id>, "v": <schema
version>}.  Nothing else about the guest is in the code, so a leaked image
reveals no personal data and a deleted credential stops working at once.
"""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from checkin.core.errors import MalformedPayloadError


class QRPayload(BaseModel):
    # Strict: a version of true, "1" or 1.0 is a garbled payload, not v1
    model_config = ConfigDict(extra="ignore", strict=True)

    id: str
    v: int = 1

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("id must be non-empty")
        return value


def encode_payload(credential_id: str, version: int = 1) -> str:
    return json.dumps({"id": credential_id, "v": version}, separators=(",", ":"))


def decode_payload(text: str, *, max_version: int = 1) -> str:
    """Return the credential id carried by a scanned QR string.

    Raises MalformedPayloadError for anything that is not a ticket payload
    this service can read.
    """
    try:
        raw = json.loads(text)
    except (TypeError, ValueError):
        raise MalformedPayloadError("QR payload is not JSON") from None

    if not isinstance(raw, dict):
        raise MalformedPayloadError("QR payload is not a JSON object")

    try:
        payload = QRPayload.model_validate(raw)
    except ValidationError as e:
        raise MalformedPayloadError(
            f"QR payload missing a usable id: {e.errors()[0]['msg']}"
        ) from None

    if payload.v > max_version:
        raise MalformedPayloadError(
            f"QR payload version {payload.v} is newer than supported ({max_version})"
        )
    return payload.id
