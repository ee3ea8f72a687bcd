import logging
import time
from typing import Any, Dict

import requests
from cachetools import TTLCache
from fastapi import Header, HTTPException, status
from jose import jwt, jwk, JWTError
from jose.utils import base64url_decode

from .config import settings

logger = logging.getLogger(__name__)

# signing keys rotate rarely; refetch at most hourly
_jwks_cache = TTLCache(maxsize=1, ttl=3600)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _get_jwks() -> Dict[str, Any]:
    if "jwks" in _jwks_cache:
        return _jwks_cache["jwks"]
    url = f"{settings.SUPABASE_URL}/auth/v1/.well-known/jwks.json"
    r = requests.get(url, timeout=5)
    r.raise_for_status()
    data = r.json()
    _jwks_cache["jwks"] = data
    return data


def _expected_issuer() -> str:
    return f"{settings.SUPABASE_URL}/auth/v1"


def _subject(claims: Dict[str, Any]) -> str:
    sub = claims.get("sub")
    if not sub:
        raise _unauthorized("No sub in token")
    return sub


def _verify_with_jwk(token: str, key: Dict[str, Any], claims: Dict[str, Any]) -> str:
    public_key = jwk.construct(key)
    message, encoded_sig = token.rsplit(".", 1)
    if not public_key.verify(message.encode(), base64url_decode(encoded_sig.encode())):
        raise _unauthorized("Invalid token signature")

    if claims.get("iss") != _expected_issuer():
        raise _unauthorized("Invalid issuer")
    if time.time() > float(claims.get("exp", 0)):
        raise _unauthorized("Token expired")
    return _subject(claims)


def _verify_with_secret(token: str, alg: str | None) -> str:
    try:
        verified = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[alg or "HS256"],
            options={"verify_aud": False},
            issuer=_expected_issuer(),
        )
    except JWTError as e:
        logger.info("HS256 token rejected: %s", e)
        raise _unauthorized("Invalid token (HS256)")
    return _subject(verified)


def verify_supabase_token(authorization: str = Header(None)) -> str:
    """
    Validates the Supabase access token and returns the user's UUID (claims['sub']).
    Every query downstream is scoped to this id.

    Asymmetric keys published at the project's JWKS endpoint are tried first,
    then the legacy shared HS256 secret when one is configured.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Missing Bearer token")

    token = authorization.split()[1]

    try:
        header = jwt.get_unverified_header(token)
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        raise _unauthorized("Invalid token format")

    kid = header.get("kid")
    if kid:
        keys = _get_jwks().get("keys") or []
        matched = next((k for k in keys if k.get("kid") == kid), None)
        if matched:
            return _verify_with_jwk(token, matched, claims)

    if settings.SUPABASE_JWT_SECRET:
        return _verify_with_secret(token, header.get("alg"))

    raise _unauthorized("Invalid token kid")
