# memberhub/authentication/rbac.py

# Role-Based Access Control: permission keys, request guards and the
# role/permission/user administration service.

from enum import Enum
from functools import wraps

from flask import g, request
from flask_jwt_extended import get_jwt, verify_jwt_in_request
from sqlalchemy import delete, select
from werkzeug.exceptions import BadRequest, Conflict, Forbidden, NotFound, Unauthorized

from memberhub import db, services
from memberhub.authentication.sessions import revoke_sessions
from memberhub.authentication.users import MEMBER_ROLE, active_role, active_user
from memberhub.database.models import Chapter, Permission, Role, RolePermission, User, UserRole, utcnow
from memberhub.database.transactions import atomic
from memberhub.encryption.password_hashing import MIN_PASSWORD_LENGTH
from memberhub.errors import conflict_on_integrity_error


class UserRoleName(Enum):
    SYSTEM_ADMIN = "SystemAdmin"
    MEMBER = MEMBER_ROLE
    PADRON_MANAGER = "PadronManager"


class PermissionKey(Enum):
    RBAC_MANAGE = "rbac.manage"
    USERS_MANAGE = "users.manage"
    ELECTIONS_MANAGE = "elections.manage"
    PADRON_MANAGE = "padron.manage"
    ASSOCIATIONS_MANAGE = "associations.manage"
    BRANCHES_MANAGE = "branches.manage"
    CHAPTERS_MANAGE = "chapters.manage"
    SPECIALTIES_MANAGE = "specialties.manage"
    PARTIES_MANAGE = "parties.manage"
    AUDIT_VIEW = "audit.view"


DEFAULT_PERMISSIONS = [key.value for key in PermissionKey]


def _value(item):
    return item.value if isinstance(item, Enum) else str(item)


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def authenticate_request():
    """Verify the JWT, then the server-side session behind it."""
    verify_jwt_in_request()
    raw_token = _bearer_token()
    if not raw_token:
        raise Unauthorized('Missing token')
    member = services().sessions.validate_session(get_jwt(), raw_token)
    g.current_member = member
    g.raw_token = raw_token
    return member


def current_member():
    return g.get('current_member')


def session_required(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        authenticate_request()
        return func(*args, **kwargs)
    return wrapper


# Decorator for required permissions (all of them)
def require_permission(*permissions):
    required = [_value(p) for p in permissions]

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            member = authenticate_request()
            if not all(key in member.permissions for key in required):
                raise Forbidden('Insufficient permissions')
            return func(*args, **kwargs)
        return wrapper
    return decorator


# Decorator for required role (any of them)
def require_role(*roles):
    accepted = [_value(r) for r in roles]

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            member = authenticate_request()
            if not any(role in member.roles for role in accepted):
                raise Forbidden('Insufficient role')
            return func(*args, **kwargs)
        return wrapper
    return decorator


def _unique_names(names):
    return list(dict.fromkeys(name.strip() for name in names if name and name.strip()))


class RBACService:
    def __init__(self, passwords, audit_logger):
        self.passwords = passwords
        self.audit = audit_logger

    # Lookups

    def list_roles(self):
        return db.session.execute(
            select(Role).where(Role.deleted_at.is_(None)).order_by(Role.name)
        ).scalars().all()

    def list_permissions(self):
        return db.session.execute(
            select(Permission).where(Permission.deleted_at.is_(None)).order_by(Permission.key)
        ).scalars().all()

    def list_users(self):
        return db.session.execute(
            select(User).where(User.deleted_at.is_(None)).order_by(User.created_at.desc())
        ).scalars().all()

    def _role(self, role_id):
        role = db.session.execute(
            select(Role).where(Role.id == role_id, Role.deleted_at.is_(None))
        ).scalar_one_or_none()
        if role is None:
            raise NotFound('Role not found')
        return role

    def _permission(self, permission_id):
        permission = db.session.execute(
            select(Permission).where(Permission.id == permission_id, Permission.deleted_at.is_(None))
        ).scalar_one_or_none()
        if permission is None:
            raise NotFound('Permission not found')
        return permission

    def _roles_by_name(self, names):
        names = _unique_names(names)
        roles = db.session.execute(
            select(Role).where(Role.name.in_(names), Role.deleted_at.is_(None))
        ).scalars().all() if names else []
        if len(roles) != len(names):
            raise BadRequest('Some roles do not exist')
        return roles

    def _permissions_by_key(self, keys):
        keys = _unique_names(keys)
        permissions = db.session.execute(
            select(Permission).where(Permission.key.in_(keys), Permission.deleted_at.is_(None))
        ).scalars().all() if keys else []
        if len(permissions) != len(keys):
            raise BadRequest('Some permissions do not exist')
        return permissions

    def user_by_dni(self, dni):
        user = db.session.execute(
            select(User).where(User.dni == dni, User.deleted_at.is_(None))
        ).scalar_one_or_none()
        if user is None:
            raise NotFound('User not found')
        return user

    # Roles

    def create_role(self, name, description=None):
        existing = db.session.execute(select(Role).where(Role.name == name)).scalar_one_or_none()
        if existing is not None:
            if existing.deleted_at is None:
                raise Conflict('Role already exists')
            with atomic():
                existing.deleted_at = None
                if description is not None:
                    existing.description = description
            self.audit.log('RBAC_RESTORE_ROLE', 'Role', existing.id, metadata={'name': name})
            return existing

        with conflict_on_integrity_error('Role already exists'), atomic() as session:
            role = Role(name=name, description=description)
            session.add(role)
        self.audit.log('RBAC_CREATE_ROLE', 'Role', role.id, metadata={'name': name})
        return role

    def update_role(self, role_id, name=None, description=None):
        role = self._role(role_id)
        with conflict_on_integrity_error('Role already exists'), atomic():
            if name is not None:
                role.name = name
            if description is not None:
                role.description = description
        self.audit.log('RBAC_UPDATE_ROLE', 'Role', role.id, metadata={'name': role.name})
        return role

    def delete_role(self, role_id):
        role = self._role(role_id)
        with atomic():
            role.deleted_at = utcnow()
        self.audit.log('RBAC_DELETE_ROLE', 'Role', role.id, metadata={'name': role.name})
        return {'success': True}

    # Permissions

    def create_permission(self, key, description=None):
        existing = db.session.execute(select(Permission).where(Permission.key == key)).scalar_one_or_none()
        if existing is not None:
            if existing.deleted_at is None:
                raise Conflict('Permission already exists')
            with atomic():
                existing.deleted_at = None
                if description is not None:
                    existing.description = description
            self.audit.log('RBAC_RESTORE_PERMISSION', 'Permission', existing.id, metadata={'key': key})
            return existing

        with conflict_on_integrity_error('Permission already exists'), atomic() as session:
            permission = Permission(key=key, description=description)
            session.add(permission)
        self.audit.log('RBAC_CREATE_PERMISSION', 'Permission', permission.id, metadata={'key': key})
        return permission

    def update_permission(self, permission_id, key=None, description=None):
        permission = self._permission(permission_id)
        with conflict_on_integrity_error('Permission already exists'), atomic():
            if key is not None:
                permission.key = key
            if description is not None:
                permission.description = description
        self.audit.log('RBAC_UPDATE_PERMISSION', 'Permission', permission.id, metadata={'key': permission.key})
        return permission

    def delete_permission(self, permission_id):
        permission = self._permission(permission_id)
        with atomic():
            permission.deleted_at = utcnow()
        self.audit.log('RBAC_DELETE_PERMISSION', 'Permission', permission.id, metadata={'key': permission.key})
        return {'success': True}

    def assign_permissions(self, role_id, keys, replace=False):
        """Grant ``keys`` to the role; with ``replace`` the role ends up with exactly ``keys``."""
        role = self._role(role_id)
        permissions = self._permissions_by_key(keys)
        with atomic() as session:
            if replace:
                session.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
                granted = set()
            else:
                granted = {link.permission_id for link in role.permissions}
            for permission in permissions:
                if permission.id not in granted:
                    session.add(RolePermission(role_id=role.id, permission_id=permission.id))
        session.expire(role, ['permissions'])
        action = 'RBAC_REPLACE_PERMISSIONS' if replace else 'RBAC_ASSIGN_PERMISSIONS'
        self.audit.log(action, 'Role', role.id, metadata={'permissions': [p.key for p in permissions]})
        return role

    # Users

    def create_user(self, dni, password, first_name, last_name, chapter_id,
                    phone=None, email=None, roles=None):
        chapter = db.session.get(Chapter, chapter_id)
        if chapter is None or chapter.deleted_at is not None:
            raise NotFound('Chapter not found')
        if not self.passwords.is_strong_password(password):
            raise BadRequest(f'Password must have at least {MIN_PASSWORD_LENGTH} characters')
        requested = self._roles_by_name(roles or [])
        member_role = active_role(MEMBER_ROLE)
        if member_role is not None and member_role not in requested:
            requested.append(member_role)

        existing = db.session.execute(select(User).where(User.dni == dni)).scalar_one_or_none()
        if existing is not None and existing.deleted_at is None:
            raise Conflict('User already exists')

        with conflict_on_integrity_error('User already exists'), atomic() as session:
            if existing is not None:
                user = existing
                user.deleted_at = None
                user.is_active = True
                session.execute(delete(UserRole).where(UserRole.user_id == user.id))
                session.expire(user, ['roles'])
            else:
                user = User(dni=dni)
                session.add(user)
            user.password_hash = self.passwords.hash_password(password)
            user.first_name = first_name
            user.last_name = last_name
            user.phone = phone
            user.email = email
            user.chapter_id = chapter_id
            for role in requested:
                session.add(UserRole(user=user, role=role))

        action = 'RBAC_RESTORE_USER' if existing is not None else 'RBAC_CREATE_USER'
        self.audit.log(action, 'User', user.id, user_id=user.id, metadata={'dni': user.dni})
        return user

    def update_user(self, user_id, changes):
        """Apply the typed admin update; ``roles`` replaces the user's roles."""
        user = active_user(user_id)
        if changes.get('chapter_id'):
            chapter = db.session.get(Chapter, changes['chapter_id'])
            if chapter is None or chapter.deleted_at is not None:
                raise NotFound('Chapter not found')
        roles = self._roles_by_name(changes['roles']) if changes.get('roles') is not None else None
        password = changes.get('password')
        if password is not None and not self.passwords.is_strong_password(password):
            raise BadRequest(f'Password must have at least {MIN_PASSWORD_LENGTH} characters')

        with conflict_on_integrity_error('User already exists'), atomic() as session:
            for name in ('first_name', 'last_name', 'phone', 'email', 'chapter_id', 'status_reason'):
                if name in changes:
                    setattr(user, name, changes[name])
            if password is not None:
                user.password_hash = self.passwords.hash_password(password)
            if changes.get('is_active') is not None:
                user.is_active = changes['is_active']
                if not user.is_active:
                    revoke_sessions(session, user.id)
            if roles is not None:
                session.execute(delete(UserRole).where(UserRole.user_id == user.id))
                session.expire(user, ['roles'])
                for role in roles:
                    session.add(UserRole(user=user, role=role))

        self.audit.log('RBAC_UPDATE_USER', 'User', user.id, user_id=user.id, metadata={'dni': user.dni})
        return user

    def delete_user(self, user_id):
        user = active_user(user_id)
        with atomic() as session:
            user.deleted_at = utcnow()
            user.is_active = False
            revoke_sessions(session, user.id)
        self.audit.log('RBAC_DELETE_USER', 'User', user.id, user_id=user.id, metadata={'dni': user.dni})
        return {'success': True}

    def assign_roles(self, user, names, replace=False):
        """Add ``names`` to the user's roles; with ``replace`` set them exactly."""
        roles = self._roles_by_name(names)
        with atomic() as session:
            if replace:
                session.execute(delete(UserRole).where(UserRole.user_id == user.id))
                held = set()
            else:
                held = {link.role_id for link in user.roles}
            for role in roles:
                if role.id not in held:
                    session.add(UserRole(user_id=user.id, role_id=role.id))
        session.expire(user, ['roles'])
        action = 'RBAC_REPLACE_ROLE' if replace else 'RBAC_ASSIGN_ROLE'
        self.audit.log(action, 'User', user.id, user_id=user.id, metadata={'roles': [r.name for r in roles]})
        return user
