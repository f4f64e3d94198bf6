"""Input validators shared by every action payload.

Each validator takes a raw JSON value and returns a cleaned value, or raises
``ValidationError`` with a message that is shown to the client as-is. Team members and
round results are truncated field by field rather than rejected, to bound storage.
"""

from __future__ import annotations

import math
import re
from typing import Any, TypedDict

from finalexam.errors import ValidationError

CHALLENGE_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CHALLENGE_CODE_LENGTH = 6

EMAIL_MAX_LENGTH = 255
USERNAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
AVATAR_MAX_LENGTH = 500
MEMBER_FIELD_MAX_LENGTH = 100
DETAILS_MAX_LENGTH = 500
MAX_LIST_ENTRIES = 10

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_CHALLENGE_CODE_RE = re.compile(rf"^[{CHALLENGE_CODE_ALPHABET}]{{{CHALLENGE_CODE_LENGTH}}}$")


class TeamMember(TypedDict):
    id: str
    name: str
    avatar: str


class RoundResult(TypedDict):
    round: int | float
    score: int | float
    details: str


def _is_number(val: Any) -> bool:
    # bool is an int subclass, but JSON true/false are not numbers
    return isinstance(val, (int, float)) and not isinstance(val, bool) and math.isfinite(val)


def is_encodable(val: str) -> bool:
    """False for strings that cannot be stored as UTF-8, such as a lone surrogate from a JSON escape."""
    try:
        val.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _is_text(val: Any) -> bool:
    return isinstance(val, str) and is_encodable(val)


def validate_string(val: Any, name: str, max_len: int) -> str:
    """Require a non-blank string of at most ``max_len`` characters. Returns it trimmed."""
    if not isinstance(val, str):
        raise ValidationError(f"{name} must be a string")
    if not is_encodable(val):
        raise ValidationError(f"{name} must be valid text")
    trimmed = val.strip()
    if not trimmed:
        raise ValidationError(f"{name} is required")
    if len(trimmed) > max_len:
        raise ValidationError(f"{name} exceeds max length of {max_len}")
    return trimmed


def validate_email(val: Any) -> str:
    email = validate_string(val, "email", EMAIL_MAX_LENGTH)
    if not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")
    return email


def validate_password(val: Any) -> str:
    """Registration password: 8 to 128 characters.

    Returned untrimmed, since login compares the password exactly as typed.
    """
    validate_string(val, "password", PASSWORD_MAX_LENGTH)
    if len(val) > PASSWORD_MAX_LENGTH:
        raise ValidationError(f"password exceeds max length of {PASSWORD_MAX_LENGTH}")
    if len(val) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    return val


def validate_challenge_code(val: Any) -> str:
    """Accept a 6-character code in any case. Returns it uppercased."""
    code = validate_string(val, "challengeCode", CHALLENGE_CODE_LENGTH).upper()
    if not _CHALLENGE_CODE_RE.match(code):
        raise ValidationError("Invalid challenge code format")
    return code


def validate_members(val: Any, name: str = "members") -> list[TeamMember]:
    if not isinstance(val, list):
        raise ValidationError(f"{name} must be an array")
    if len(val) > MAX_LIST_ENTRIES:
        raise ValidationError(f"Maximum {MAX_LIST_ENTRIES} members allowed")

    members: list[TeamMember] = []
    for i, m in enumerate(val):
        if not isinstance(m, dict) or not _is_text(m.get("id")) or not _is_text(m.get("name")):
            raise ValidationError(f"Invalid member at index {i}")
        members.append(
            TeamMember(
                id=m["id"][:MEMBER_FIELD_MAX_LENGTH],
                name=m["name"][:MEMBER_FIELD_MAX_LENGTH],
                avatar=truncate_avatar(m.get("avatar")),
            )
        )
    return members


def validate_round_results(val: Any) -> list[RoundResult]:
    if not isinstance(val, list):
        raise ValidationError("roundResults must be an array")
    if len(val) > MAX_LIST_ENTRIES:
        raise ValidationError(f"Maximum {MAX_LIST_ENTRIES} round results allowed")

    results: list[RoundResult] = []
    for i, r in enumerate(val):
        if not isinstance(r, dict) or not _is_number(r.get("round")) or not _is_number(r.get("score")):
            raise ValidationError(f"Invalid round result at index {i}")
        details = r.get("details")
        results.append(
            RoundResult(
                round=r["round"],
                score=r["score"],
                details=details[:DETAILS_MAX_LENGTH] if _is_text(details) else "",
            )
        )
    return results


def validate_non_negative_int(val: Any, name: str, maximum: int = 10_000_000) -> int:
    """Whole number in ``[0, maximum]``; integral floats such as ``12.0`` are accepted."""
    if not _is_number(val):
        raise ValidationError(f"{name} must be a number")
    if isinstance(val, float):
        if not val.is_integer():
            raise ValidationError(f"{name} must be a whole number")
        val = int(val)
    if val < 0:
        raise ValidationError(f"{name} must not be negative")
    if val > maximum:
        raise ValidationError(f"{name} exceeds maximum of {maximum}")
    return val


def validate_bool(val: Any, name: str) -> bool:
    if not isinstance(val, bool):
        raise ValidationError(f"{name} must be a boolean")
    return val


def truncate_avatar(val: Any) -> str:
    """Avatars are never rejected: non-strings become empty, long URLs are cut."""
    return val[:AVATAR_MAX_LENGTH] if _is_text(val) else ""
