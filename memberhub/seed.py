# memberhub/seed.py

# Default permissions, roles, organization and administrator. Safe to re-run.

import logging

from flask import current_app
from sqlalchemy import select

from memberhub import db, services
from memberhub.authentication.rbac import DEFAULT_PERMISSIONS, PermissionKey, UserRoleName
from memberhub.database.models import (
    Association, Branch, Chapter, ChapterSpecialty, Permission, Role, RolePermission, Specialty, User, UserRole,
)

logger = logging.getLogger(__name__)


def _upsert(model, lookup, **create_values):
    """Return the row matching ``lookup``, restoring or creating it."""
    row = db.session.execute(select(model).filter_by(**lookup)).scalar_one_or_none()
    if row is None:
        row = model(**lookup, **create_values)
        db.session.add(row)
        db.session.flush()
    elif getattr(row, 'deleted_at', None) is not None:
        row.deleted_at = None
    return row


def _link(model, **keys):
    if db.session.execute(select(model).filter_by(**keys)).scalar_one_or_none() is None:
        db.session.add(model(**keys))


def seed_permissions():
    return [_upsert(Permission, {'key': key}) for key in DEFAULT_PERMISSIONS]


def seed_roles(permissions):
    roles = {role.value: _upsert(Role, {'name': role.value}) for role in UserRoleName}

    admin_role = roles[UserRoleName.SYSTEM_ADMIN.value]
    for permission in permissions:
        _link(RolePermission, role_id=admin_role.id, permission_id=permission.id)

    padron_role = roles[UserRoleName.PADRON_MANAGER.value]
    padron_permission = next(p for p in permissions if p.key == PermissionKey.PADRON_MANAGE.value)
    _link(RolePermission, role_id=padron_role.id, permission_id=padron_permission.id)
    return roles


def seed_organization(config):
    association = _upsert(Association, {'name': config['ASSOCIATION_NAME']})
    branch = _upsert(Branch, {'association_id': association.id, 'name': config['BRANCH_NAME']})
    chapter = _upsert(Chapter, {'branch_id': branch.id, 'name': config['CHAPTER_NAME']})
    specialty = _upsert(Specialty, {'association_id': association.id, 'name': config['SPECIALTY_NAME']})
    _link(ChapterSpecialty, chapter_id=chapter.id, specialty_id=specialty.id, branch_id=branch.id)
    return chapter


def seed_admin(config, roles, chapter):
    admin = db.session.execute(select(User).filter_by(dni=config['ADMIN_DNI'])).scalar_one_or_none()
    if admin is None:
        admin = User(
            dni=config['ADMIN_DNI'],
            password_hash=services().passwords.hash_password(config['ADMIN_PASSWORD']),
            email=config['ADMIN_EMAIL'],
            phone=config['ADMIN_PHONE'],
            first_name=config['ADMIN_FIRST_NAME'],
            last_name=config['ADMIN_LAST_NAME'],
            chapter_id=chapter.id,
        )
        db.session.add(admin)
        db.session.flush()
    else:
        admin.deleted_at = None
        admin.is_active = True
    _link(UserRole, user_id=admin.id, role_id=roles[UserRoleName.SYSTEM_ADMIN.value].id)
    return admin


def run_seed():
    config = current_app.config
    try:
        permissions = seed_permissions()
        roles = seed_roles(permissions)
        chapter = seed_organization(config)
        admin = seed_admin(config, roles, chapter)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Seed completed (admin DNI %s)", admin.dni)
    return admin
