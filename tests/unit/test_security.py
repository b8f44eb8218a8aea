"""Tests for actor token utilities."""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import jwt

from src.marketplace.core.security import ACTOR_TOKEN_TYPE, create_actor_token, decode_token

pytestmark = pytest.mark.unit


class TestActorTokens:
    def test_round_trip_claims(self):
        actor_id, university_id = uuid4(), uuid4()
        token = create_actor_token(actor_id, "university-admin", university_id=university_id)

        payload = decode_token(token)

        assert payload is not None
        assert payload["sub"] == str(actor_id)
        assert payload["role"] == "university-admin"
        assert payload["university_id"] == str(university_id)
        assert payload["type"] == ACTOR_TOKEN_TYPE

    def test_university_claim_omitted_when_absent(self):
        payload = decode_token(create_actor_token(uuid4(), "partner"))
        assert payload is not None
        assert "university_id" not in payload

    def test_expired_token_rejected(self):
        token = create_actor_token(uuid4(), "partner", expires_delta=timedelta(seconds=-5))
        assert decode_token(token) is None

    def test_foreign_signature_rejected(self):
        token = jwt.encode({"sub": str(uuid4()), "role": "partner"}, "x" * 40, algorithm="HS256")
        assert decode_token(token) is None

    def test_garbage_rejected(self):
        assert decode_token("not-a-token") is None
