"""
Bearer token handling.

Access tokens are minted by the identity provider and signed with the
shared SECRET_KEY; this service only verifies them and reads the user id
from the `sub` claim. create_access_token produces the same shape for
local tooling and tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Any
import uuid
import logging

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings


logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"


def create_access_token(
    user_id: str | uuid.UUID,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[dict[str, Any]] = None,
) -> str:
    """Sign an access token whose subject is user_id."""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)),
        "jti": str(uuid.uuid4()),
        "type": ACCESS_TOKEN_TYPE,
    }
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify signature, expiry and token type.

    Returns the claims, or None when the token must not be trusted.
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except JWTError:
        return None

    # Tokens without a type claim are treated as access tokens
    if claims.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
        return None
    return claims


def token_user_id(token: str) -> Optional[uuid.UUID]:
    """User id carried by a valid access token, else None."""
    claims = decode_access_token(token)
    if claims is None:
        return None
    try:
        return uuid.UUID(str(claims.get("sub")))
    except ValueError:
        logger.warning(f"Access token subject is not a user id: {claims.get('sub')!r}")
        return None
