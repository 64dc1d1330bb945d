"""JWT credential issuance for real-time connections.

Learn: claims are exactly {sub, iat, exp} with exp = iat + 24h, signed
HS256 with the broker's shared HMAC secret. There is no "type" claim
and no refresh flow. A client simply asks for a new credential every
time it (re)connects.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from topicrelay.config import Settings


class CredentialError(Exception):
    """Raised when a credential cannot be issued or decoded."""


class InvalidUserError(CredentialError):
    """Raised for an empty user name."""


@dataclass(frozen=True)
class Credential:
    subject: str
    issued_at: datetime
    expires_at: datetime
    token: str


class CredentialIssuer:
    """Mints signed, time-boxed credentials with one process-wide secret."""

    def __init__(self, settings: Settings):
        self._secret = settings.token_secret
        self._algorithm = settings.token_algorithm
        self._ttl = timedelta(hours=settings.token_ttl_hours)

    def issue(self, user: str, now: Optional[datetime] = None) -> Credential:
        if not user:
            raise InvalidUserError("User is required")

        issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        expires_at = issued_at + self._ttl
        payload = {
            "sub": user,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        try:
            token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        except (jwt.PyJWTError, TypeError, ValueError, NotImplementedError) as e:
            raise CredentialError(f"Failed to sign token: {e}") from e

        return Credential(
            subject=user,
            issued_at=issued_at,
            expires_at=expires_at,
            token=token,
        )

    def decode(self, token: str) -> dict:
        """Verify and decode a credential the relay issued.

        The broker does this in production; the relay exposes it for the
        CLI and for tests.
        """
        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise CredentialError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise CredentialError(f"Invalid token: {e}")
