# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Access token verification.

The school's login service signs the tokens. This service holds the
shared secret and only checks signature, expiry and claim shape.

Example:
    >>> jwt_manager = JWTManager(get_settings().jwt)
    >>> claims = jwt_manager.decode_token(token, expected_type="access")
    >>> claims.role
    'teacher'
"""

import logging
from typing import Any, Literal

from jose import ExpiredSignatureError, JWTError as JoseJWTError, jwt
from pydantic import BaseModel, ValidationError

from src.core.config.settings import JWTSettings

logger = logging.getLogger(__name__)

TokenType = Literal["access", "refresh"]


class TokenPayload(BaseModel):
    """Claims carried by a school access token.

    Attributes:
        sub: Account ID.
        type: access or refresh.
        role: admin, teacher or student.
        username: Display name.
        student_id: Student record linked to a student account, when it
            differs from the account ID.
        exp: Expiry, seconds since the epoch.
        iat: Issue time, seconds since the epoch.
    """

    sub: str
    type: TokenType = "access"
    role: str = "student"
    username: str | None = None
    student_id: str | None = None
    exp: int
    iat: int | None = None


class JWTError(Exception):
    """A bearer token could not be accepted."""


class TokenExpiredError(JWTError):
    pass


class InvalidTokenError(JWTError):
    pass


class JWTManager:
    """Decodes and validates access tokens with the shared secret."""

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings

    def _raw_claims(self, token: str) -> dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self._settings.secret_key.get_secret_value(),
                algorithms=[self._settings.algorithm],
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except JoseJWTError as e:
            logger.warning("Token decode failed: %s", e)
            raise InvalidTokenError(f"Invalid token: {e}") from e

    def decode_token(self, token: str, expected_type: TokenType | None = None) -> TokenPayload:
        """Decode a token into its claims.

        Args:
            token: Encoded JWT.
            expected_type: Reject tokens of any other type when given.

        Returns:
            Validated claims.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the signature, claims or type are wrong.
        """
        try:
            claims = TokenPayload.model_validate(self._raw_claims(token))
        except ValidationError as e:
            raise InvalidTokenError(f"Invalid token claims: {e.error_count()} errors") from e

        if expected_type is not None and claims.type != expected_type:
            raise InvalidTokenError(f"Expected {expected_type} token, got {claims.type}")
        return claims

    def verify_token(self, token: str, expected_type: TokenType | None = None) -> bool:
        """True when decode_token() would succeed."""
        try:
            self.decode_token(token, expected_type)
        except JWTError:
            return False
        return True
