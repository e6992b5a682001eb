# memberhub/security/token_manager.py

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

from flask import current_app
from flask_jwt_extended import create_access_token, decode_token

from memberhub.config import parse_duration_to_seconds

# Signed, time-boxed bearer tokens (Flask-JWT-Extended) plus the one-way
# hashes under which tokens, reset tokens and client IPs are stored.


def sha256(value: str) -> str:
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


class TokenManager:
    def session_ttl_seconds(self) -> int:
        return parse_duration_to_seconds(current_app.config.get('JWT_EXPIRES_IN'))

    def generate_token(self, user_id: str, dni: str, expires_in: int = None) -> str:
        # Create a JWT with user_id as identity (``sub``) and the DNI as a claim.
        if expires_in is None:
            expires_in = self.session_ttl_seconds()
        return create_access_token(
            identity=user_id,
            additional_claims={'dni': dni},
            expires_delta=timedelta(seconds=expires_in),
        )

    def token_expiry(self, token: str, fallback_seconds: int) -> datetime:
        """Expiry taken from the token's ``exp`` claim, else now + fallback (naive UTC)."""
        try:
            claims = decode_token(token, allow_expired=True)
            exp = claims.get('exp')
        except Exception as e:
            current_app.logger.warning(f"Token decode failed: {str(e)}")
            exp = None
        if exp:
            return datetime.fromtimestamp(exp, tz=timezone.utc).replace(tzinfo=None)
        return datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=fallback_seconds)

    def generate_reset_token(self) -> str:
        # 256 random bits
        return secrets.token_hex(32)
