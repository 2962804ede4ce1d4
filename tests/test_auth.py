"""
Unit tests for password hashing and JWT helpers.
"""

from datetime import timedelta
from jose import jwt
from storefront.auth import hash_password, verify_password, create_access_token, decode_access_token
from storefront.config import settings


class TestPasswordHashing:
    def test_hash_is_salted(self):
        first = hash_password("Password123")
        second = hash_password("Password123")

        assert first != second
        assert first.startswith("$2b$04$")  # cost factor from BCRYPT_SALT_ROUNDS

    def test_verify(self):
        hashed = hash_password("Password123")

        assert verify_password("Password123", hashed) is True
        assert verify_password("password123", hashed) is False

    def test_malformed_hash_does_not_raise(self):
        assert verify_password("Password123", "not-a-bcrypt-hash") is False


class TestAccessTokens:
    def test_round_trip_claims(self):
        token = create_access_token({"sub": "5", "role": "admin"})

        claims = decode_access_token(token)

        assert claims["sub"] == "5"
        assert claims["role"] == "admin"
        assert claims["exp"] - claims["iat"] == settings.JWT_EXPIRATION_MINUTES * 60

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "5"}, expires_delta=timedelta(seconds=-1))

        assert decode_access_token(token) is None

    def test_wrong_secret_rejected(self):
        token = jwt.encode({"sub": "5"}, "x" * 32, algorithm="HS256")

        assert decode_access_token(token) is None

    def test_garbage_rejected(self):
        assert decode_access_token("garbage") is None
