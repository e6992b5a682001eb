# tests/conftest.py

from datetime import timedelta

import pytest

from memberhub import create_app, db, services
from memberhub.database.models import (
    Association, Branch, Candidate, CandidateList, Chapter, Election, ElectionPosition,
    ElectionScope, ElectionStatus, Role, User, UserRole, utcnow,
)
from memberhub.seed import run_seed

PASSWORD = 'Password123'


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'JWT_SECRET_KEY': 'test-secret-key-with-at-least-32-bytes',
        'SCHEDULER_ENABLED': False,
        'AUDIT_LOG_DIR': str(tmp_path / 'audit'),
        'MAIL_SUPPRESS_SEND': True,
        'RATELIMIT_ENABLED': False,
    })
    with app.app_context():
        db.create_all()
        run_seed()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def svc(app):
    return services()


@pytest.fixture
def org(app):
    """Association A with branches B1 (chapters C1, C2) and B2 (chapter C3), plus a foreign association."""
    association = Association(name='Asociación A')
    other = Association(name='Asociación Z')
    b1 = Branch(name='Norte', association=association)
    b2 = Branch(name='Sur', association=association)
    bz = Branch(name='Centro', association=other)
    c1 = Chapter(name='Civil', branch=b1)
    c2 = Chapter(name='Minas', branch=b1)
    c3 = Chapter(name='Civil', branch=b2)
    cz = Chapter(name='Civil', branch=bz)
    db.session.add_all([association, other, b1, b2, bz, c1, c2, c3, cz])
    db.session.commit()
    return {
        'association': association, 'other_association': other,
        'b1': b1, 'b2': b2, 'bz': bz, 'c1': c1, 'c2': c2, 'c3': c3, 'cz': cz,
    }


@pytest.fixture
def make_user(app):
    counter = {'n': 0}

    def _make_user(chapter, roles=('Member',), dni=None, password=PASSWORD, **fields):
        counter['n'] += 1
        user = User(
            dni=dni or f'{40000000 + counter["n"]:08d}',
            password_hash=services().passwords.hash_password(password),
            first_name=fields.pop('first_name', 'Ana'),
            last_name=fields.pop('last_name', f'Pérez {counter["n"]}'),
            email=fields.pop('email', f'user{counter["n"]}@example.com'),
            chapter_id=chapter.id,
            **fields,
        )
        db.session.add(user)
        for name in roles:
            role = Role.query.filter_by(name=name).one()
            db.session.add(UserRole(user=user, role=role))
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_election(app):
    """Election with two positions and two lists, each list fielding one candidate per position."""

    def _make_election(association, scope=ElectionScope.ASSOCIATION, status=ElectionStatus.OPEN,
                       branch=None, chapter=None, starts_in=timedelta(hours=-1), ends_in=timedelta(hours=1),
                       positions=('Decano', 'Tesorero')):
        now = utcnow()
        election = Election(
            name='Elecciones generales',
            start_date=now + starts_in,
            end_date=now + ends_in,
            status=status,
            scope=scope,
            association_id=association.id,
            branch_id=branch.id if branch else None,
            chapter_id=chapter.id if chapter else None,
        )
        for order, title in enumerate(positions):
            election.positions.append(ElectionPosition(title=title, order=order))
        db.session.add(election)
        db.session.flush()

        for number, list_name in enumerate(('Lista Azul', 'Lista Verde'), start=1):
            candidate_list = CandidateList(election_id=election.id, name=list_name, number=number)
            db.session.add(candidate_list)
            db.session.flush()
            for position in election.positions:
                db.session.add(Candidate(
                    candidate_list_id=candidate_list.id,
                    position_id=position.id,
                    first_name=f'{list_name} {position.title}',
                    last_name='Candidato',
                ))
        db.session.commit()
        return election

    return _make_election


@pytest.fixture
def ballot_for(app):
    """Selections voting a whole list: ``ballot_for(election, "Lista Azul")``."""

    def _ballot_for(election, list_name):
        candidate_list = next(cl for cl in election.candidate_lists if cl.name == list_name)
        ordered = sorted(candidate_list.candidates, key=lambda c: c.position.order)
        return [(c.id, c.position_id) for c in ordered]

    return _ballot_for


@pytest.fixture
def login(svc):
    def _login(user, password=PASSWORD):
        return svc.sessions.login(user.dni, password, '127.0.0.1', 'pytest')['accessToken']
    return _login


@pytest.fixture
def auth_headers(login):
    def _headers(user, password=PASSWORD):
        return {'Authorization': f'Bearer {login(user, password)}'}
    return _headers
