import pytest
from fastapi import HTTPException

from app.services.auth import _parse_payload


def test_parse_payload_prefers_user_id_claim() -> None:
    user = _parse_payload(
        {
            "user_id": "uid-123",
            "sub": "ignored",
            "email": "U@Example.com",
            "name": "Cook",
        }
    )
    assert user.uid == "uid-123"
    assert user.email == "u@example.com"
    assert user.display_name == "Cook"


def test_parse_payload_falls_back_to_sub() -> None:
    user = _parse_payload({"sub": "abc"})
    assert user.uid == "abc"
    assert user.display_name == "abc"


def test_parse_payload_requires_uid() -> None:
    with pytest.raises(HTTPException):
        _parse_payload({"email": "u@example.com"})
