from sqlalchemy import func, select

from memberhub import db
from memberhub.database.models import Association, Permission, Role, User, UserRole
from memberhub.seed import run_seed


def count(model):
    return db.session.execute(select(func.count()).select_from(model)).scalar_one()


def test_seed_is_idempotent(app):
    before = {model: count(model) for model in (Association, Permission, Role, User, UserRole)}
    admin = run_seed()
    after = {model: count(model) for model in (Association, Permission, Role, User, UserRole)}

    assert before == after
    assert admin.dni == app.config['ADMIN_DNI']
    assert 'SystemAdmin' in admin.role_names()


def test_seed_restores_soft_deleted_rows(app, svc):
    role = db.session.execute(select(Role).filter_by(name='PadronManager')).scalar_one()
    svc.rbac.delete_role(role.id)
    admin = svc.rbac.user_by_dni(app.config['ADMIN_DNI'])
    svc.rbac.delete_user(admin.id)

    run_seed()

    assert role.deleted_at is None
    assert admin.deleted_at is None
    assert admin.is_active is True


def test_padron_manager_role_can_import(svc):
    role = db.session.execute(select(Role).filter_by(name='PadronManager')).scalar_one()
    assert [link.permission.key for link in role.permissions] == ['padron.manage']
