"""Payload and response schemas for register / login."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BeforeValidator, model_validator

from finalexam.errors import ValidationError
from finalexam.schemas import CamelCaseModel, Payload, required
from finalexam.users.schemas import UserResponse
from finalexam.validation import (
    USERNAME_MAX_LENGTH,
    truncate_avatar,
    validate_email,
    validate_password,
    validate_string,
)


class RegisterPayload(Payload):
    """New account. Email is lowercased by the service before it is stored."""

    email: Annotated[str, BeforeValidator(validate_email)] = required()
    username: Annotated[str, BeforeValidator(lambda v: validate_string(v, "username", USERNAME_MAX_LENGTH))] = (
        required()
    )
    password: Annotated[str, BeforeValidator(validate_password)] = required()
    avatar: Annotated[str, BeforeValidator(truncate_avatar)] = ""


class LoginPayload(Payload):
    """
    Credentials for login.

    Only presence is checked here; format rules would tell a caller which accounts
    exist, so every other failure is the generic 401 from the service.
    """

    email: Any = None
    password: Any = None

    @model_validator(mode="after")
    def _require_credentials(self) -> LoginPayload:
        if not isinstance(self.email, str) or not isinstance(self.password, str) or not self.email or not self.password:
            raise ValidationError("Email and password are required")
        return self


class AuthResponse(CamelCaseModel):
    user: UserResponse
    token: str
