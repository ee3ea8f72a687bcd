import time

import pytest
from fastapi import HTTPException
from jose import jwt

from tradalyse.core import auth
from tradalyse.core.config import settings

SECRET = "super-secret-jwt-token-with-at-least-32-characters"
PROJECT = "https://demo.supabase.co"


@pytest.fixture(autouse=True)
def shared_secret(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_URL", PROJECT)
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", SECRET)


def _token(**claims):
    payload = {"sub": "user-1", "iss": f"{PROJECT}/auth/v1", "exp": int(time.time()) + 600}
    payload.update(claims)
    return jwt.encode(payload, SECRET, algorithm="HS256")


def test_hs256_token_yields_subject():
    assert auth.verify_supabase_token(f"Bearer {_token()}") == "user-1"


@pytest.mark.parametrize(
    "header",
    [None, "", "Token abc", "Bearer not.a.jwt"],
)
def test_malformed_headers_are_401(header):
    with pytest.raises(HTTPException) as info:
        auth.verify_supabase_token(header)
    assert info.value.status_code == 401


def test_wrong_issuer_is_rejected():
    with pytest.raises(HTTPException) as info:
        auth.verify_supabase_token(f"Bearer {_token(iss='https://elsewhere/auth/v1')}")
    assert info.value.status_code == 401


def test_expired_token_is_rejected():
    with pytest.raises(HTTPException):
        auth.verify_supabase_token(f"Bearer {_token(exp=int(time.time()) - 10)}")


def test_missing_sub_is_rejected():
    token = jwt.encode(
        {"iss": f"{PROJECT}/auth/v1", "exp": int(time.time()) + 600}, SECRET, algorithm="HS256"
    )
    with pytest.raises(HTTPException) as info:
        auth.verify_supabase_token(f"Bearer {token}")
    assert info.value.detail == "No sub in token"
