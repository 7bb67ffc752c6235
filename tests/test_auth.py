"""
Unit tests for token verification.
"""

import pytest
from datetime import timedelta
from jose import jwt

from topicchat.config import settings
from topicchat.core.exceptions import AuthenticationError, TokenExpiredError
from topicchat.utils.auth import (
    create_access_token,
    decode_access_token,
    extract_bearer_token,
    verify_access_token,
)


class TestVerifyAccessToken:

    def test_valid_token(self):
        token = create_access_token({"sub": "user-1", "email": "sam@topicchat.io"})
        user = verify_access_token(token)
        assert user.user_id == "user-1"
        assert user.email == "sam@topicchat.io"

    def test_token_without_email(self):
        assert verify_access_token(create_access_token({"sub": "user-2"})).email is None

    def test_claims_include_issuer_and_audience(self):
        claims = jwt.get_unverified_claims(create_access_token({"sub": "user-1"}))
        assert claims["iss"] == settings.token_issuer
        assert claims["aud"] == settings.token_audience

    def test_missing_token(self):
        with pytest.raises(AuthenticationError):
            verify_access_token(None)
        with pytest.raises(AuthenticationError):
            verify_access_token("")

    def test_expired_token(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-10))
        with pytest.raises(TokenExpiredError) as exc_info:
            verify_access_token(token)
        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_wrong_secret(self):
        token = jwt.encode(
            {"sub": "user-1", "iss": settings.token_issuer, "aud": settings.token_audience},
            "another-secret",
            algorithm=settings.algorithm,
        )
        with pytest.raises(AuthenticationError) as exc_info:
            verify_access_token(token)
        assert exc_info.value.code == "NOT_AUTHENTICATED"

    def test_wrong_audience(self):
        token = jwt.encode(
            {"sub": "user-1", "iss": settings.token_issuer, "aud": "someone-else"},
            settings.secret_key,
            algorithm=settings.algorithm,
        )
        with pytest.raises(AuthenticationError):
            verify_access_token(token)

    def test_missing_subject(self):
        token = create_access_token({"email": "sam@topicchat.io"})
        with pytest.raises(AuthenticationError, match="no user id"):
            decode_access_token(token)

    def test_malformed_email(self):
        token = create_access_token({"sub": "user-1", "email": "not-an-email"})
        with pytest.raises(AuthenticationError):
            verify_access_token(token)


class TestExtractBearerToken:

    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc.def", "abc.def"),
        ("bearer   abc", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
        (None, None),
    ])
    def test_extract(self, header, expected):
        assert extract_bearer_token(header) == expected
