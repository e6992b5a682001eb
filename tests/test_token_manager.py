# tests/test_token_manager.py
import time
from datetime import datetime, timedelta, timezone

import pytest
from flask import Flask
from flask_jwt_extended import JWTManager, decode_token
from jwt.exceptions import ExpiredSignatureError

from memberhub.security.token_manager import TokenManager, sha256


@pytest.fixture
def app():
    app = Flask(__name__)
    app.config['TESTING'] = True
    app.config['JWT_SECRET_KEY'] = "test-secret-key-with-at-least-32-bytes"
    app.config['JWT_EXPIRES_IN'] = '2h'
    JWTManager(app)
    with app.app_context():
        yield app


@pytest.fixture
def token_manager(app):
    return TokenManager()


def test_generate_token_claims(token_manager):
    token = token_manager.generate_token("user1", "12345678", expires_in=5)
    assert isinstance(token, str)
    claims = decode_token(token)
    assert claims["sub"] == "user1"
    assert claims["dni"] == "12345678"


def test_token_expiry(token_manager):
    token = token_manager.generate_token("user2", "12345678", expires_in=1)  # 1 sec expiry
    # Immediately valid
    assert decode_token(token)["sub"] == "user2"
    # Wait for expiry
    time.sleep(2)
    with pytest.raises(ExpiredSignatureError):
        decode_token(token)


def test_tokens_are_unique(token_manager):
    first = token_manager.generate_token("user3", "12345678")
    second = token_manager.generate_token("user3", "12345678")
    assert first != second


def test_session_ttl_from_config(token_manager, app):
    assert token_manager.session_ttl_seconds() == 7200
    app.config['JWT_EXPIRES_IN'] = 'soon'
    assert token_manager.session_ttl_seconds() == 900


def test_token_expiry_comes_from_exp_claim(token_manager):
    token = token_manager.generate_token("user4", "12345678", expires_in=600)
    expiry = token_manager.token_expiry(token, fallback_seconds=5)
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    assert expiry.tzinfo is None
    assert now + timedelta(seconds=590) < expiry <= now + timedelta(seconds=601)


def test_token_expiry_falls_back_on_undecodable_token(token_manager):
    expiry = token_manager.token_expiry("not-a-jwt", fallback_seconds=300)
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    assert now + timedelta(seconds=290) < expiry <= now + timedelta(seconds=301)


def test_reset_token_is_256_bits(token_manager):
    token = token_manager.generate_reset_token()
    assert len(token) == 64
    int(token, 16)
    assert token != token_manager.generate_reset_token()


def test_sha256_is_stable_hex():
    assert sha256("abc") == sha256("abc")
    assert len(sha256("abc")) == 64
    assert sha256("abc") != "abc"
