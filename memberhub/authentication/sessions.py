# memberhub/authentication/sessions.py

# Credential verification and the single-active-session lifecycle.
# Sessions are stored by the SHA-256 of the bearer token, never the token.

import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from werkzeug.exceptions import BadRequest, Conflict, Forbidden, Unauthorized

from memberhub import db
from memberhub.database.models import Session, User, utcnow
from memberhub.database.transactions import is_serialization_failure, serializable_transaction
from memberhub.security.token_manager import sha256

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 512


def revoke_sessions(session, user_id):
    """Delete every session of the user. Caller owns the transaction."""
    session.execute(delete(Session).where(Session.user_id == user_id))


@dataclass
class AuthenticatedMember:
    id: str
    dni: str
    chapter_id: str
    roles: list = field(default_factory=list)
    permissions: list = field(default_factory=list)
    session_token_hash: str = None


class SessionManager:
    def __init__(self, passwords, tokens, audit_logger):
        self.passwords = passwords
        self.tokens = tokens
        self.audit = audit_logger

    def login(self, dni, password, client_ip=None, user_agent=None):
        user = db.session.execute(select(User).filter_by(dni=dni)).scalar_one_or_none()
        if user is None:
            self.passwords.burn_verification(password)
            raise Unauthorized('Invalid credentials')
        if not self.passwords.verify_password(password, user.password_hash):
            raise Unauthorized('Invalid credentials')
        if not user.can_sign_in:
            reason = f': {user.status_reason}' if user.status_reason else ''
            raise Forbidden(f'User is inactive{reason}')

        user_id, user_dni = user.id, user.dni
        # Hashes made with older Argon2 parameters are upgraded on the next good login
        new_hash = None
        if self.passwords.needs_rehash(user.password_hash):
            new_hash = self.passwords.hash_password(password)
        ip_hash = sha256(client_ip) if client_ip else None
        if user_agent:
            user_agent = user_agent[:USER_AGENT_MAX_LENGTH]
        ttl = self.tokens.session_ttl_seconds()

        try:
            with serializable_transaction() as session:
                # Row lock on the user serializes concurrent logins for the same account
                session.execute(select(User.id).where(User.id == user_id).with_for_update())
                revoke_sessions(session, user_id)
                if new_hash is not None:
                    session.execute(update(User).where(User.id == user_id).values(password_hash=new_hash))
                token = self.tokens.generate_token(user_id, user_dni, ttl)
                now = utcnow()
                session.add(Session(
                    user_id=user_id,
                    token_hash=sha256(token),
                    expires_at=self.tokens.token_expiry(token, ttl),
                    ip_hash=ip_hash,
                    user_agent=user_agent,
                    last_used_at=now,
                ))
        except IntegrityError as exc:
            raise Conflict('Concurrent login detected, please retry') from exc
        except DBAPIError as exc:
            if is_serialization_failure(exc):
                raise Conflict('Concurrent login detected, please retry') from exc
            raise

        self.audit.log('LOGIN', 'User', user_id, user_id=user_id, ip_hash=ip_hash,
                       metadata={'userAgent': user_agent})

        user = db.session.get(User, user_id)
        return {
            'accessToken': token,
            'userId': user_id,
            'user': {
                'id': user.id,
                'dni': user.dni,
                'firstName': user.first_name,
                'lastName': user.last_name,
                'chapterId': user.chapter_id,
                'roles': user.role_names(),
                'permissions': user.permission_keys(),
            },
        }

    def logout(self, raw_token, user_id=None):
        if not raw_token:
            raise BadRequest('Missing token')
        # Deleting zero rows is fine: logout is idempotent
        db.session.execute(delete(Session).where(Session.token_hash == sha256(raw_token)))
        db.session.commit()
        if user_id:
            self.audit.log('LOGOUT', 'User', user_id, user_id=user_id)
        return {'success': True}

    def validate_session(self, claims, raw_token):
        token_hash = sha256(raw_token)
        session_row = db.session.execute(
            select(Session).filter_by(token_hash=token_hash)
        ).scalar_one_or_none()
        if session_row is None:
            raise Unauthorized('Session expired')
        if session_row.expires_at < utcnow():
            db.session.execute(delete(Session).where(Session.token_hash == token_hash))
            db.session.commit()
            raise Unauthorized('Session expired')
        if session_row.user_id != claims.get('sub'):
            raise Unauthorized('Invalid session')

        user = db.session.get(User, session_row.user_id)
        if user is None or not user.can_sign_in:
            raise Unauthorized('User not found')

        member = AuthenticatedMember(
            id=user.id,
            dni=user.dni,
            chapter_id=user.chapter_id,
            roles=user.role_names(),
            permissions=user.permission_keys(),
            session_token_hash=token_hash,
        )

        try:
            session_row.last_used_at = utcnow()
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Could not update last_used_at for session of user %s", member.id)
        return member
