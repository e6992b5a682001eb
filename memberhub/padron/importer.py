# memberhub/padron/importer.py

# Member registry ("padron") import from an .xlsx workbook. Each row creates,
# updates, reactivates or disables one member according to its paid-up flag.

import logging
import zipfile
from dataclasses import dataclass
from io import BytesIO

from flask import current_app
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import BadRequest

from memberhub import db
from memberhub.authentication.sessions import revoke_sessions
from memberhub.authentication.users import MEMBER_ROLE, active_role
from memberhub.database.models import Branch, Chapter, User, UserRole
from memberhub.database.transactions import atomic

logger = logging.getLogger(__name__)

SYSTEM_ADMIN_ROLE = 'SystemAdmin'
MAX_SKIPPED_DETAILS = 10

HEADER_ALIASES = {
    'dni': ['dni'],
    'first_name': ['firstname', 'nombres', 'name'],
    'last_name': ['lastname', 'apellidos', 'surname'],
    'email': ['email', 'correo'],
    'phone': ['phone', 'telefono', 'celular'],
    'branch_name': ['branchname', 'sede', 'branch'],
    'chapter_name': ['chaptername', 'capitulo', 'chapter'],
    'is_paid_up': ['ispaidup', 'pagosaldia', 'aldiam', 'aldia', 'activo', 'habilitado'],
}

TRUE_VALUES = ('true', '1', 'si', 'yes')
FALSE_VALUES = ('false', '0', 'no')


@dataclass
class PadronRow:
    dni: str
    first_name: str = None
    last_name: str = None
    email: str = None
    phone: str = None
    branch_name: str = None
    chapter_name: str = None
    is_paid_up: bool = None

    def full_name(self, fallback=None):
        first = self.first_name or (fallback.first_name if fallback else '') or ''
        last = self.last_name or (fallback.last_name if fallback else '') or ''
        return f'{first} {last}'.strip() or 'Colegiado'

    def rejected_label(self, reason=None):
        name = ' '.join(part for part in (self.first_name, self.last_name) if part).strip()
        suffix = f' ({reason})' if reason else ''
        return f'{name} - {self.dni}{suffix}' if name else f'{self.dni}{suffix}'


def normalize_header(value):
    return ''.join(str(value or '').strip().lower().split()).replace('_', '')


def cell_text(value):
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_bool(value):
    normalized = value.strip().lower()
    if not normalized:
        return None
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    return None


def read_rows(file_bytes, max_rows):
    """Parse the first sheet into ``PadronRow`` objects (rows without DNI dropped)."""
    try:
        workbook = load_workbook(BytesIO(file_bytes), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise BadRequest('Invalid .xlsx file') from exc

    try:
        if not workbook.worksheets:
            return []
        values = workbook.worksheets[0].iter_rows(values_only=True)
        header = next(values, None)
        if header is None:
            return []
        columns = [normalize_header(name) for name in header]

        records = []
        for raw in values:
            if all(cell is None or cell_text(cell) == '' for cell in raw):
                continue
            records.append({columns[i]: cell_text(cell) for i, cell in enumerate(raw) if i < len(columns)})
            if len(records) > max_rows:
                raise BadRequest(f'File exceeds {max_rows} rows')
    finally:
        workbook.close()

    rows = []
    for record in records:
        picked = {}
        for field, aliases in HEADER_ALIASES.items():
            picked[field] = next((record[a] for a in aliases if a in record), '')
        if not picked['dni']:
            continue
        rows.append(PadronRow(
            dni=picked['dni'],
            first_name=picked['first_name'] or None,
            last_name=picked['last_name'] or None,
            email=picked['email'] or None,
            phone=picked['phone'] or None,
            branch_name=picked['branch_name'] or None,
            chapter_name=picked['chapter_name'] or None,
            is_paid_up=parse_bool(picked['is_paid_up']),
        ))
    return rows


class PadronImporter:
    def __init__(self, passwords, mail_service):
        self.passwords = passwords
        self.mail = mail_service

    def import_padron(self, file_bytes, filename, admin_user_id, roles):
        if not file_bytes:
            raise BadRequest('Missing file')
        if not (filename or '').lower().endswith('.xlsx'):
            raise BadRequest('Only .xlsx files are allowed')
        if len(file_bytes) > current_app.config['PADRON_MAX_FILE_BYTES']:
            raise BadRequest('File too large')

        admin = db.session.execute(
            select(User).where(User.id == admin_user_id, User.deleted_at.is_(None))
        ).scalar_one_or_none()
        if admin is None:
            raise BadRequest('Admin user not found')

        rows = read_rows(file_bytes, current_app.config['PADRON_MAX_ROWS'])
        if not rows:
            raise BadRequest('No rows found in file')

        is_system_admin = SYSTEM_ADMIN_ROLE in roles
        admin_chapter_id = admin.chapter_id
        admin_branch = admin.chapter.branch.name.strip().lower()
        admin_chapter = admin.chapter.name.strip().lower()

        result = {
            'created': 0,
            'updated': 0,
            'disabled': 0,
            'skipped': 0,
            'rejected': [],
            'skippedDetails': [],
        }

        def skip(dni, reason):
            result['skipped'] += 1
            if len(result['skippedDetails']) < MAX_SKIPPED_DETAILS:
                result['skippedDetails'].append({'dni': dni, 'reason': reason})

        for row in rows:
            dni = row.dni.strip()
            if len(dni) != 8:
                skip(row.dni, 'DNI inválido')
                continue

            branch_name = (row.branch_name or '').strip().lower()
            chapter_name = (row.chapter_name or '').strip().lower()
            if not branch_name or not chapter_name:
                skip(dni, 'Falta sede o capítulo')
                continue

            if is_system_admin:
                chapter_id = self._find_chapter(branch_name, chapter_name)
                if chapter_id is None:
                    skip(dni, 'No existe la sede o capítulo')
                    continue
            else:
                if branch_name != admin_branch or chapter_name != admin_chapter:
                    result['rejected'].append(row.rejected_label('Capítulo fuera de tu alcance'))
                    continue
                chapter_id = admin_chapter_id

            if row.is_paid_up is None:
                skip(dni, 'Falta el estado de pagos al día')
                continue

            existing = db.session.execute(select(User).where(User.dni == dni)).scalar_one_or_none()
            try:
                if existing is not None:
                    self._update_member(existing, row, chapter_id, result)
                else:
                    self._create_member(dni, row, chapter_id, result)
            except IntegrityError:
                skip(dni, 'Correo o teléfono duplicado')

        if result['rejected']:
            result['message'] = (
                'Estos usuarios no pudieron registrarse porque sus capítulos no te corresponden: '
                + ', '.join(result['rejected'])
            )

        logger.info("Padron import by %s: %d created, %d updated, %d disabled, %d skipped, %d rejected",
                    admin_user_id, result['created'], result['updated'], result['disabled'],
                    result['skipped'], len(result['rejected']))
        return result

    def _find_chapter(self, branch_name, chapter_name):
        return db.session.execute(
            select(Chapter.id)
            .join(Branch)
            .where(
                Chapter.deleted_at.is_(None),
                Branch.deleted_at.is_(None),
                func.lower(Chapter.name) == chapter_name,
                func.lower(Branch.name) == branch_name,
            )
        ).scalars().first()

    def _update_member(self, user, row, chapter_id, result):
        was_active = user.is_active
        is_active = row.is_paid_up
        with atomic() as session:
            user.first_name = row.first_name or user.first_name
            user.last_name = row.last_name or user.last_name
            user.email = row.email or user.email
            user.phone = row.phone or user.phone
            user.chapter_id = chapter_id or user.chapter_id
            user.is_active = is_active
            user.deleted_at = None
            if was_active and not is_active:
                revoke_sessions(session, user.id)

        result['updated'] += 1
        if was_active and not is_active:
            result['disabled'] += 1
        if was_active != is_active and user.email:
            self.mail.send_account_status_change_email(user.email, row.full_name(user), is_active)

    def _create_member(self, dni, row, chapter_id, result):
        temp_password = self.passwords.generate_temp_password()
        with atomic() as session:
            user = User(
                dni=dni,
                password_hash=self.passwords.hash_password(temp_password),
                first_name=row.first_name or 'Pendiente',
                last_name=row.last_name or 'Pendiente',
                email=row.email or f'{dni}@example.com',
                phone=row.phone or f'tmp-{dni}',
                chapter_id=chapter_id,
                is_active=row.is_paid_up,
            )
            session.add(user)
            member_role = active_role(MEMBER_ROLE)
            if member_role is not None:
                session.add(UserRole(user=user, role=member_role))

        result['created'] += 1
        if not row.is_paid_up:
            result['disabled'] += 1
        if row.email:
            self.mail.send_account_status_email(row.email, row.full_name(), dni, row.is_paid_up, temp_password)
