from __future__ import annotations

from dataclasses import dataclass

# Column width of every identity field and batch label in PostgreSQL
MAX_FIELD_LENGTH = 255


class GuestValidationError(ValueError):
    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"{field} must be non-empty")
        self.field = field


def check_text_field(field: str, value: str) -> str:
    """Trim ``value``; raise GuestValidationError if blank or too long."""
    value = value.strip()
    if not value:
        raise GuestValidationError(field)
    if len(value) > MAX_FIELD_LENGTH:
        raise GuestValidationError(
            field, f"{field} must be at most {MAX_FIELD_LENGTH} characters"
        )
    return value


@dataclass(frozen=True, slots=True)
class GuestIdentity:
    """Registration input: who the guest is, from the institution's view.

    ``external_id`` is the admission/enrollment number and the natural
    uniqueness key. Comparison is exact string match after trimming.
    """

    full_name: str
    external_id: str
    group: str

    @staticmethod
    def new(*, full_name: str, external_id: str, group: str) -> GuestIdentity:
        return GuestIdentity(
            full_name=check_text_field("full_name", full_name),
            external_id=check_text_field("external_id", external_id),
            group=check_text_field("group", group),
        )
