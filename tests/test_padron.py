from io import BytesIO

import pytest
from openpyxl import Workbook
from sqlalchemy import select
from werkzeug.exceptions import BadRequest

from memberhub import db
from memberhub.database.models import Session, User
from memberhub.padron.importer import PadronRow, normalize_header, parse_bool, read_rows

HEADER = ['DNI', 'Nombres', 'Apellidos', 'Correo', 'Telefono', 'Sede', 'Capitulo', 'Al dia']


def workbook_bytes(rows, header=HEADER):
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(header)
    for row in rows:
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def admin(svc):
    return svc.rbac.user_by_dni('00000001')


@pytest.fixture
def run_import(svc, admin):
    def _run(rows, user=None, roles=('SystemAdmin',), filename='padron.xlsx', header=HEADER):
        user = user or admin
        return svc.padron.import_padron(workbook_bytes(rows, header), filename, user.id, list(roles))
    return _run


def member(dni):
    return db.session.execute(select(User).where(User.dni == dni)).scalar_one_or_none()


def test_header_normalization_and_flags():
    assert normalize_header(' Is_Paid Up ') == 'ispaidup'
    assert parse_bool('Si') is True
    assert parse_bool('0') is False
    assert parse_bool('quizás') is None


def test_read_rows_accepts_english_aliases_and_numeric_cells():
    data = workbook_bytes(
        [[12345678, 'Rosa', 'Quispe', None, 987654321.0, 'Norte', 'Civil', 'true']],
        header=['dni', 'firstName', 'lastName', 'email', 'phone', 'branchName', 'chapterName', 'isPaidUp'],
    )
    [row] = read_rows(data, max_rows=10)
    assert row == PadronRow(dni='12345678', first_name='Rosa', last_name='Quispe', phone='987654321',
                            branch_name='Norte', chapter_name='Civil', is_paid_up=True)


def test_read_rows_rejects_garbage_and_oversized_files():
    with pytest.raises(BadRequest):
        read_rows(b'not a workbook', max_rows=10)
    data = workbook_bytes([[f'{10000000 + i}', 'A', 'B', None, None, 'Norte', 'Civil', 'si'] for i in range(3)])
    with pytest.raises(BadRequest):
        read_rows(data, max_rows=2)


def test_file_checks(svc, admin):
    with pytest.raises(BadRequest):
        svc.padron.import_padron(b'', 'padron.xlsx', admin.id, ['SystemAdmin'])
    with pytest.raises(BadRequest):
        svc.padron.import_padron(b'x', 'padron.csv', admin.id, ['SystemAdmin'])


def test_empty_sheet_is_rejected(run_import):
    with pytest.raises(BadRequest):
        run_import([])


def test_system_admin_creates_members_in_any_chapter(org, run_import):
    result = run_import([
        ['11111111', 'Rosa', 'Quispe', 'rosa@example.com', '900000001', 'Norte', 'Civil', 'si'],
        ['22222222', 'Luis', 'Rojas', None, None, 'sur', 'CIVIL', 'no'],
    ])

    assert result['created'] == 2
    assert result['disabled'] == 1
    assert result['skipped'] == 0

    rosa, luis = member('11111111'), member('22222222')
    assert rosa.chapter_id == org['c1'].id
    assert rosa.is_active is True
    assert rosa.role_names() == ['Member']
    assert luis.chapter_id == org['c3'].id
    assert luis.is_active is False


def test_invalid_rows_are_skipped_with_reasons(org, run_import):
    result = run_import([
        ['123', 'Corto', 'Dni', None, None, 'Norte', 'Civil', 'si'],
        ['33333333', 'Sin', 'Capitulo', None, None, 'Norte', None, 'si'],
        ['44444444', 'Capitulo', 'Inexistente', None, None, 'Norte', 'Química', 'si'],
        ['55555555', 'Sin', 'Estado', None, None, 'Norte', 'Civil', 'tal vez'],
    ])

    assert result['created'] == 0
    assert result['skipped'] == 4
    assert [d['reason'] for d in result['skippedDetails']] == [
        'DNI inválido', 'Falta sede o capítulo', 'No existe la sede o capítulo', 'Falta el estado de pagos al día',
    ]


def test_skipped_details_are_capped(org, run_import):
    result = run_import([[f'{i}', 'X', 'Y', None, None, 'Norte', 'Civil', 'si'] for i in range(12)])
    assert result['skipped'] == 12
    assert len(result['skippedDetails']) == 10


def test_padron_manager_is_limited_to_own_chapter(org, make_user, run_import):
    manager = make_user(org['c1'], roles=('Member', 'PadronManager'))
    result = run_import([
        ['11111111', 'Rosa', 'Quispe', None, None, 'Norte', 'Civil', 'si'],
        ['22222222', 'Luis', 'Rojas', None, None, 'Norte', 'Minas', 'si'],
    ], user=manager, roles=('Member', 'PadronManager'))

    assert result['created'] == 1
    assert result['rejected'] == ['Luis Rojas - 22222222 (Capítulo fuera de tu alcance)']
    assert result['message'].startswith('Estos usuarios no pudieron registrarse')
    assert member('22222222') is None


def test_existing_member_is_updated_and_disabled(org, make_user, login, run_import):
    user = make_user(org['c1'])
    login(user)

    result = run_import([[user.dni, None, 'Mamani', None, None, 'Norte', 'Minas', 'no']])

    assert result['updated'] == 1
    assert result['disabled'] == 1
    refreshed = member(user.dni)
    assert refreshed.first_name == 'Ana'
    assert refreshed.last_name == 'Mamani'
    assert refreshed.chapter_id == org['c2'].id
    assert refreshed.is_active is False
    assert db.session.execute(select(Session).where(Session.user_id == refreshed.id)).first() is None


def test_disabled_member_is_reactivated(org, make_user, run_import):
    user = make_user(org['c1'], is_active=False)
    result = run_import([[user.dni, None, None, None, None, 'Norte', 'Civil', 'si']])
    assert result['updated'] == 1
    assert result['disabled'] == 0
    assert member(user.dni).is_active is True


def test_duplicate_email_is_skipped_and_import_continues(org, make_user, run_import):
    taken = make_user(org['c1'])
    result = run_import([
        ['11111111', 'Rosa', 'Quispe', taken.email, None, 'Norte', 'Civil', 'si'],
        ['22222222', 'Luis', 'Rojas', None, None, 'Norte', 'Civil', 'si'],
    ])
    assert result['created'] == 1
    assert result['skippedDetails'] == [{'dni': '11111111', 'reason': 'Correo o teléfono duplicado'}]
    assert member('11111111') is None


def test_new_members_are_emailed_their_temporary_password(org, svc, run_import, monkeypatch):
    sent = []
    monkeypatch.setattr(svc.mail, 'send_account_status_email',
                        lambda to, full_name, dni, is_active, temp_password: sent.append((to, dni, temp_password)))

    run_import([['11111111', 'Rosa', 'Quispe', 'rosa@example.com', None, 'Norte', 'Civil', 'si']])

    [(to, dni, temp_password)] = sent
    assert (to, dni) == ('rosa@example.com', '11111111')
    assert svc.sessions.login(dni, temp_password)['userId'] == member(dni).id
