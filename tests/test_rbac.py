import pytest
from werkzeug.exceptions import BadRequest, Conflict, NotFound

from memberhub.database.models import Role, Session
from memberhub.authentication.rbac import DEFAULT_PERMISSIONS, PermissionKey


def test_seeded_admin_role_holds_every_permission(svc):
    admin_role = Role.query.filter_by(name='SystemAdmin').one()
    keys = {link.permission.key for link in admin_role.permissions}
    assert keys == set(DEFAULT_PERMISSIONS)


def test_role_lifecycle_with_restore(svc):
    role = svc.rbac.create_role('Auditor', 'Lee la bitácora')
    with pytest.raises(Conflict):
        svc.rbac.create_role('Auditor')

    svc.rbac.delete_role(role.id)
    assert 'Auditor' not in [r.name for r in svc.rbac.list_roles()]

    restored = svc.rbac.create_role('Auditor')
    assert restored.id == role.id
    assert restored.deleted_at is None


def test_permission_lifecycle(svc):
    permission = svc.rbac.create_permission('reports.view')
    svc.rbac.update_permission(permission.id, description='Ver reportes')
    assert permission.description == 'Ver reportes'
    svc.rbac.delete_permission(permission.id)
    with pytest.raises(NotFound):
        svc.rbac.update_permission(permission.id, key='x')


def test_assign_and_replace_role_permissions(svc):
    role = svc.rbac.create_role('Auditor')
    svc.rbac.assign_permissions(role.id, [PermissionKey.AUDIT_VIEW.value])
    svc.rbac.assign_permissions(role.id, [PermissionKey.AUDIT_VIEW.value, 'users.manage'])
    assert sorted(link.permission.key for link in role.permissions) == ['audit.view', 'users.manage']

    svc.rbac.assign_permissions(role.id, ['padron.manage'], replace=True)
    assert [link.permission.key for link in role.permissions] == ['padron.manage']

    with pytest.raises(BadRequest):
        svc.rbac.assign_permissions(role.id, ['does.not.exist'])


def test_create_user_always_adds_member_role(svc, org):
    user = svc.rbac.create_user('55555555', 'Password123', 'Rosa', 'Quispe', org['c1'].id,
                                roles=['PadronManager'])
    assert set(user.role_names()) == {'PadronManager', 'Member'}

    with pytest.raises(Conflict):
        svc.rbac.create_user('55555555', 'Password123', 'Rosa', 'Quispe', org['c1'].id)
    with pytest.raises(BadRequest):
        svc.rbac.create_user('55555556', 'Password123', 'Rosa', 'Quispe', org['c1'].id, roles=['Ghost'])


def test_soft_deleted_user_is_restored_on_create(svc, org):
    user = svc.rbac.create_user('55555555', 'Password123', 'Rosa', 'Quispe', org['c1'].id)
    svc.rbac.delete_user(user.id)
    restored = svc.rbac.create_user('55555555', 'OtraClave123', 'Rosa', 'Quispe', org['c2'].id)

    assert restored.id == user.id
    assert restored.deleted_at is None
    assert restored.chapter_id == org['c2'].id
    assert svc.sessions.login('55555555', 'OtraClave123')['userId'] == user.id


def test_deactivating_user_revokes_sessions(svc, org, make_user, login):
    user = make_user(org['c1'])
    login(user)
    svc.rbac.update_user(user.id, {'is_active': False, 'status_reason': 'Baja voluntaria'})

    assert Session.query.filter_by(user_id=user.id).count() == 0
    assert user.status_reason == 'Baja voluntaria'


def test_update_user_replaces_roles(svc, org, make_user):
    user = make_user(org['c1'], roles=('Member', 'PadronManager'))
    svc.rbac.update_user(user.id, {'roles': ['Member']})
    assert user.role_names() == ['Member']


def test_delete_user_soft_deletes_and_revokes(svc, org, make_user, login):
    user = make_user(org['c1'])
    login(user)
    svc.rbac.delete_user(user.id)
    assert user.deleted_at is not None
    assert Session.query.filter_by(user_id=user.id).count() == 0
    assert user not in svc.rbac.list_users()


def test_assign_roles_by_dni(svc, org, make_user):
    user = make_user(org['c1'])
    svc.rbac.assign_roles(svc.rbac.user_by_dni(user.dni), ['PadronManager'])
    assert set(user.role_names()) == {'Member', 'PadronManager'}

    svc.rbac.assign_roles(user, ['SystemAdmin'], replace=True)
    assert user.role_names() == ['SystemAdmin']

    with pytest.raises(NotFound):
        svc.rbac.user_by_dni('99999999')


def test_mutations_are_audited(svc):
    svc.rbac.create_role('Auditor')
    assert svc.audit.list_entries(action='RBAC_CREATE_ROLE')
