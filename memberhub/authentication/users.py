# memberhub/authentication/users.py

from sqlalchemy import select
from werkzeug.exceptions import BadRequest, Conflict, NotFound

from memberhub import db
from memberhub.database.models import Chapter, Role, User, UserRole
from memberhub.database.transactions import atomic
from memberhub.encryption.password_hashing import MIN_PASSWORD_LENGTH
from memberhub.errors import conflict_on_integrity_error

MEMBER_ROLE = 'Member'
PROFILE_FIELDS = ('first_name', 'last_name', 'phone', 'email')


def active_role(name):
    return db.session.execute(
        select(Role).where(Role.name == name, Role.deleted_at.is_(None))
    ).scalar_one_or_none()


def active_user(user_id):
    user = db.session.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    ).scalar_one_or_none()
    if user is None:
        raise NotFound('User not found')
    return user


class UserService:
    """Self-service registration and profile."""

    def __init__(self, passwords, audit_logger):
        self.passwords = passwords
        self.audit = audit_logger

    def register(self, dni, password, first_name, last_name, chapter_id, phone=None, email=None):
        if not self.passwords.is_strong_password(password):
            raise BadRequest(f'Password must have at least {MIN_PASSWORD_LENGTH} characters')
        chapter = db.session.get(Chapter, chapter_id)
        if chapter is None or chapter.deleted_at is not None:
            raise BadRequest('Invalid chapter')
        if db.session.execute(select(User.id).where(User.dni == dni)).first():
            raise Conflict('User already exists')

        with conflict_on_integrity_error('User already exists'), atomic() as session:
            user = User(
                dni=dni,
                password_hash=self.passwords.hash_password(password),
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                email=email,
                chapter_id=chapter_id,
            )
            session.add(user)
            member_role = active_role(MEMBER_ROLE)
            if member_role is not None:
                session.add(UserRole(user=user, role=member_role))

        self.audit.log('USER_REGISTER', 'User', user.id)
        return user

    def get_me(self, user_id):
        if not user_id:
            raise NotFound('User not found')
        return active_user(user_id)

    def update_profile(self, user_id, changes):
        """``changes`` holds only the editable profile fields that were sent."""
        user = self.get_me(user_id)
        with conflict_on_integrity_error('Email or phone already in use'), atomic():
            for name in PROFILE_FIELDS:
                if name in changes:
                    setattr(user, name, changes[name])
        self.audit.log('USER_UPDATE_PROFILE', 'User', user.id, user_id=user.id)
        return user
