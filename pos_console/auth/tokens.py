from datetime import datetime, timezone

from jose import JWTError, jwt


def unverified_claims(token: str) -> dict | None:
    """Claims of a bearer token the console cannot verify (the API holds the key)."""
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


def token_expires_at(token: str) -> datetime | None:
    claims = unverified_claims(token)
    if not claims:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)
