# memberhub/authentication/password_reset.py

from datetime import timedelta
from urllib.parse import urlencode

from flask import current_app
from sqlalchemy import select, update
from werkzeug.exceptions import BadRequest

from memberhub import db
from memberhub.authentication.sessions import revoke_sessions
from memberhub.database.models import PasswordResetToken, User, utcnow
from memberhub.database.transactions import atomic
from memberhub.encryption.password_hashing import MIN_PASSWORD_LENGTH
from memberhub.security.token_manager import sha256

GENERIC_RESET_MESSAGE = 'If the account exists, you will receive an email with instructions.'


class PasswordResetService:
    """Single-use, time-bound reset tokens.

    Only the token hash is stored. Issuing a token retires every unused token
    of the user; redeeming one changes the password, marks the token used and
    revokes all sessions in one transaction.
    """

    def __init__(self, passwords, tokens, mail_service, audit_logger):
        self.passwords = passwords
        self.tokens = tokens
        self.mail = mail_service
        self.audit = audit_logger

    def request_reset(self, dni):
        # Same answer whether or not the account exists
        response = {'message': GENERIC_RESET_MESSAGE}
        user = db.session.execute(
            select(User).where(User.dni == dni, User.deleted_at.is_(None))
        ).scalar_one_or_none()
        if user is None or not user.is_active or not user.email:
            return response

        raw_token = self.tokens.generate_reset_token()
        ttl = current_app.config['PASSWORD_RESET_TTL_SECONDS']
        user_id, email, full_name = user.id, user.email, user.full_name

        with atomic() as session:
            now = utcnow()
            session.execute(
                update(PasswordResetToken)
                .where(PasswordResetToken.user_id == user_id, PasswordResetToken.used_at.is_(None))
                .values(used_at=now)
            )
            session.add(PasswordResetToken(
                user_id=user_id,
                token_hash=sha256(raw_token),
                expires_at=now + timedelta(seconds=ttl),
            ))

        reset_url = f"{current_app.config['PASSWORD_RESET_URL']}?{urlencode({'token': raw_token})}"
        self.mail.send_password_reset_email(to=email, full_name=full_name, reset_url=reset_url)
        self.audit.log('PASSWORD_RESET_REQUEST', 'User', user_id, user_id=user_id)
        return response

    def reset_password(self, raw_token, new_password):
        if not raw_token:
            raise BadRequest('Invalid or expired token')
        if not self.passwords.is_strong_password(new_password):
            raise BadRequest(f'Password must have at least {MIN_PASSWORD_LENGTH} characters')

        with atomic() as session:
            now = utcnow()
            record = session.execute(
                select(PasswordResetToken)
                .where(
                    PasswordResetToken.token_hash == sha256(raw_token),
                    PasswordResetToken.used_at.is_(None),
                    PasswordResetToken.expires_at > now,
                )
                .with_for_update()
            ).scalar_one_or_none()
            if record is None:
                raise BadRequest('Invalid or expired token')
            user = session.get(User, record.user_id)
            if user is None or user.deleted_at is not None:
                raise BadRequest('Invalid or expired token')

            user.password_hash = self.passwords.hash_password(new_password)
            record.used_at = now
            revoke_sessions(session, user.id)
            user_id = user.id

        self.audit.log('PASSWORD_RESET', 'User', user_id, user_id=user_id)
        return {'success': True}
