import jwt
import pytest

from school_admin.auth import jwt_handler
from school_admin.core import config


def test_token_round_trip_carries_subject() -> None:
    token = jwt_handler.create_access_token(subject='user-1')

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == 'user-1'
    assert payload['exp'] > payload['iat']


def test_expired_token_is_distinguished() -> None:
    token = jwt_handler.create_access_token(subject='user-1', expires_minutes=-1)

    with pytest.raises(jwt.ExpiredSignatureError):
        jwt_handler.decode_access_token(token)


def test_token_signed_with_another_key_is_invalid() -> None:
    token = jwt.encode({'sub': 'user-1', 'exp': 4102444800}, 'some-other-secret-key-of-enough-length', algorithm='HS256')

    with pytest.raises(jwt.InvalidTokenError):
        jwt_handler.decode_access_token(token)


def test_token_without_subject_is_invalid() -> None:
    token = jwt.encode({'exp': 4102444800}, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)

    with pytest.raises(jwt.InvalidTokenError):
        jwt_handler.decode_access_token(token)


def test_expires_in_seconds(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'JWT_EXPIRES_MINUTES', 90)

    assert jwt_handler.expires_in_seconds() == 5400
