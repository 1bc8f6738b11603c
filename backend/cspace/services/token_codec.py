# Overview: Signed token encoding/decoding shared by session, refresh and kiosk tokens.

"""
Signed Token Codec

WHY: Session, refresh and kiosk credentials are self-contained JWTs signed
with the server secret, so basic verification needs no database lookup.

SECURITY FEATURES:
- HS256 signatures via PyJWT
- Mandatory "type" discriminator: a token is only accepted by the verifier
  for its own type, even though all types share one signing secret
- exp/iat/type are required claims
- Verification never raises into callers: failures come back as a typed
  TokenFailure so the middleware can pick the next fallback
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

import jwt
from flask import current_app

from cspace.time_utils import utcnow, to_epoch


SESSION = "session"
REFRESH = "refresh"
KIOSK = "kiosk"

TOKEN_TYPES = frozenset({SESSION, REFRESH, KIOSK})


class TokenFailure(str, enum.Enum):
    EXPIRED = "expired"
    MALFORMED = "malformed"
    SIGNATURE_MISMATCH = "signature_mismatch"
    WRONG_TYPE = "wrong_type"


@dataclass(frozen=True)
class TokenResult:
    """Outcome of a verification: claims (and principal) or a failure."""
    claims: dict[str, Any] | None = None
    principal: Any = None
    failure: TokenFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def with_principal(self, principal) -> "TokenResult":
        return replace(self, principal=principal)


def _secret() -> str:
    return current_app.config["JWT_SECRET_KEY"]


def _algorithm() -> str:
    return current_app.config.get("JWT_ALGORITHM", "HS256")


def encode(
    token_type: str,
    claims: dict[str, Any],
    ttl: timedelta,
    now: datetime | None = None,
) -> tuple[str, datetime]:
    """
    Sign claims as a token of the given type.

    Returns (token, expires_at). `now` lets callers re-sign a token with its
    original issue time (refresh rotation) and lets tests mint tokens in the
    past.
    """
    if token_type not in TOKEN_TYPES:
        raise ValueError(f"Unknown token type: {token_type}")

    issued_at = now or utcnow()
    expires_at = issued_at + ttl

    payload = dict(claims)
    payload["type"] = token_type
    payload["iat"] = to_epoch(issued_at)
    payload["exp"] = to_epoch(expires_at)

    token = jwt.encode(payload, _secret(), algorithm=_algorithm())
    return token, expires_at


def decode(token: str | None, expected_type: str) -> TokenResult:
    """Verify signature, expiry and discriminator. Never raises."""
    if not token or not isinstance(token, str):
        return TokenResult(failure=TokenFailure.MALFORMED)

    try:
        claims = jwt.decode(
            token,
            _secret(),
            algorithms=[_algorithm()],
            options={"require": ["exp", "iat", "type"]},
        )
    except jwt.ExpiredSignatureError:
        return TokenResult(failure=TokenFailure.EXPIRED)
    except jwt.InvalidSignatureError:
        return TokenResult(failure=TokenFailure.SIGNATURE_MISMATCH)
    except jwt.InvalidTokenError:
        return TokenResult(failure=TokenFailure.MALFORMED)

    if claims.get("type") != expected_type:
        return TokenResult(failure=TokenFailure.WRONG_TYPE)

    return TokenResult(claims=claims)
