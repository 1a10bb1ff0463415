import jwt
import pytest
from fastapi import HTTPException

from collab.auth_utils import SECRET_KEY, create_access_token, get_current_identity, verify_token
from collab.errors import InvalidCredential, MissingCredential


def test_verify_token_returns_identity_from_sub():
    token = create_access_token({"sub": "5", "email": "e@example.com"})

    identity = verify_token(token)

    assert identity.user_id == 5
    assert identity.email == "e@example.com"


def test_verify_token_accepts_legacy_id_claim():
    token = jwt.encode({"id": 9}, SECRET_KEY, algorithm="HS256")

    assert verify_token(token).user_id == 9


def test_missing_token_is_rejected():
    with pytest.raises(MissingCredential):
        verify_token(None)
    with pytest.raises(MissingCredential):
        verify_token("")


def test_token_signed_with_other_secret_is_rejected():
    token = create_access_token({"sub": "5"}, secret="another-service-secret-with-enough-bytes")

    with pytest.raises(InvalidCredential):
        verify_token(token)


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "5"}, expires_delta=-10)

    with pytest.raises(InvalidCredential) as exc_info:
        verify_token(token)
    assert exc_info.value.message == "Token expired"


def test_token_without_user_id_is_rejected():
    token = create_access_token({"email": "nobody@example.com"})

    with pytest.raises(InvalidCredential):
        verify_token(token)


def test_rest_dependency_uses_same_verifier():
    token = create_access_token({"sub": "12"})

    assert get_current_identity(f"Bearer {token}") == verify_token(token)


def test_rest_dependency_status_codes():
    with pytest.raises(HTTPException) as missing:
        get_current_identity(None)
    assert missing.value.status_code == 401

    with pytest.raises(HTTPException) as invalid:
        get_current_identity("Bearer not-a-jwt")
    assert invalid.value.status_code == 403
