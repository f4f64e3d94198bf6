"""Single JSON action endpoint: ``POST /api/game`` with ``{action, data}``.

Per request, in order: parse the envelope, check the session token unless the action
is public, apply the action's rate limit, validate ``data`` against the action's
payload model, run the handler and commit. The actor is always the token's user id;
any ``userId`` the client puts in ``data`` is ignored.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from finalexam.api.actions import ACTIONS, ActionContext, public_actions
from finalexam.auth.dependencies import get_session_token, require_actor
from finalexam.auth.rate_limit import RateLimiter, client_ip
from finalexam.config import get_settings
from finalexam.database import get_session
from finalexam.errors import ApiError, RateLimitError, ValidationError
from finalexam.schemas import Payload

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Game"])


async def _read_envelope(request: Request) -> tuple[str, dict[str, Any]]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Invalid JSON body") from e

    if not isinstance(body, dict):
        raise ValidationError("Request body must be an object")
    action = body.get("action")
    if not isinstance(action, str) or not action:
        raise ValidationError("action must be a non-empty string")
    data = body.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("data must be an object")
    return action, data


def _first_error_message(exc: PydanticValidationError) -> str:
    """Client-facing message for the first failing field."""
    error = exc.errors()[0]
    cause = (error.get("ctx") or {}).get("error")
    if isinstance(cause, ApiError):
        return cause.message
    message = error["msg"]
    if error["type"] == "value_error":
        return message.removeprefix("Value error, ")
    loc = ".".join(str(part) for part in error["loc"])
    return f"{loc}: {message}" if loc else message


def decode_payload(model: type[Payload], data: dict[str, Any]) -> Payload:
    """Validate an action's ``data``, turning the first failure into a 400."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_first_error_message(e)) from e


async def _enforce_rate_limit(request: Request, action: str) -> None:
    entry = ACTIONS[action]
    if entry.rate_limit is None:
        return
    policy = entry.rate_limit(get_settings())
    limiter: RateLimiter = request.app.state.rate_limiter
    ip = client_ip(request)
    result = await limiter.check(f"{action}:{ip}", policy.max_attempts, policy.window_seconds)
    if not result.allowed:
        logger.warning("rate_limited", action=action, client_ip=ip, retry_after=result.retry_after)
        raise RateLimitError("Too many attempts. Please try again later.", retry_after=result.retry_after)


@router.post("/game")
async def dispatch(
    request: Request,
    token: str | None = Depends(get_session_token),
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, Any]:
    """Run one named action."""
    action, data = await _read_envelope(request)

    user_id = None if action in public_actions() else require_actor(token)

    if action not in ACTIONS:
        raise ValidationError(f"Unknown action: {action}")
    entry = ACTIONS[action]

    await _enforce_rate_limit(request, action)
    payload = decode_payload(entry.payload, data)

    structlog.contextvars.bind_contextvars(action=action)
    try:
        result = await entry.handler(ActionContext(db=db, request=request, user_id=user_id), payload)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return result.model_dump(mode="json", by_alias=True)
