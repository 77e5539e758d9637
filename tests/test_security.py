"""
Unit tests for utils.auth: password hashing, session ids and signed tokens.
"""
from datetime import timedelta

import jwt

from app.core.config import settings
from app.utils.auth import (
    create_access_token,
    decode_token,
    get_password_hash,
    hash_password_async,
    new_session_id,
    verify_password,
    verify_password_async,
)


class TestPasswordHashing:

    def test_hash_is_salted(self):
        assert get_password_hash("secret123") != get_password_hash("secret123")

    def test_hash_is_not_plain_text(self):
        hashed = get_password_hash("secret123")
        assert hashed != "secret123"
        assert hashed.startswith("$argon2")

    def test_verify_correct_and_wrong_password(self):
        hashed = get_password_hash("secret123")
        assert verify_password("secret123", hashed) is True
        assert verify_password("wrong-pass", hashed) is False

    async def test_async_helpers_round_trip(self):
        hashed = await hash_password_async("secret123")
        assert await verify_password_async("secret123", hashed) is True

    async def test_missing_hash_never_verifies(self):
        """Unknown accounts still burn a verification and always fail."""
        assert await verify_password_async("anything", None) is False
        assert await verify_password_async("anything", "") is False


class TestSessionTokens:

    def test_session_ids_are_unique_and_long(self):
        ids = {new_session_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(len(sid) >= 40 for sid in ids)

    def test_token_round_trip(self):
        token = create_access_token({"sub": "user-1", "sid": "abc"})
        payload = decode_token(token)
        assert payload["sub"] == "user-1"
        assert payload["sid"] == "abc"
        assert "exp" in payload

    def test_token_without_session_id_is_rejected(self):
        token = create_access_token({"sub": "user-1"})
        assert decode_token(token) is None

    def test_expired_token_is_rejected(self):
        token = create_access_token({"sub": "user-1", "sid": "abc"}, expires_delta=timedelta(seconds=-5))
        assert decode_token(token) is None

    def test_token_signed_with_other_key_is_rejected(self):
        token = jwt.encode(
            {"sub": "user-1", "sid": "abc", "exp": 9999999999},
            "some-other-secret-key-value",
            algorithm=settings.ALGORITHM,
        )
        assert decode_token(token) is None

    def test_garbage_is_rejected(self):
        assert decode_token("not-a-token") is None
