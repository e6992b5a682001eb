# memberhub/routes.py

# HTTP surface. Routes parse and validate the request, call the service
# container and shape the JSON response; business rules live in the services.

from flask import Blueprint, current_app, g, jsonify, request
from werkzeug.exceptions import BadRequest

from memberhub import limiter, services
from memberhub.authentication.rbac import PermissionKey, UserRoleName, require_permission, require_role, session_required
from memberhub.authentication.users import active_user
from memberhub.database.models import ElectionScope, ElectionStatus, PartyScope
from memberhub.elections.admin import CandidateUpdate, ElectionUpdate
from memberhub.errors import error_body
from memberhub.security.input_validator import InputValidator
from memberhub.serializers import (
    association_json, branch_json, candidate_json, candidate_list_json, chapter_json, election_json,
    party_json, permission_json, role_json, specialty_json, user_json,
)

bp = Blueprint('api', __name__)
validator = InputValidator()


@bp.errorhandler(ValueError)
def handle_validation_error(exc):
    return jsonify(error_body(400, str(exc), BadRequest.name)), 400


def json_body(allowed=None):
    payload = validator.require_json_object(request.get_json(silent=True))
    if allowed is not None:
        validator.reject_unknown_fields(payload, allowed)
    return payload


def member():
    return g.current_member


def login_rate_limit():
    return current_app.config['LOGIN_RATE_LIMIT']


# Authentication

@bp.route('/auth/login', methods=['POST'])
@limiter.limit(login_rate_limit)
def login():
    payload = json_body(['dni', 'password'])
    dni = validator.required_dni(payload)
    password = payload.get('password')
    if not isinstance(password, str) or not password:
        raise ValueError("password is required")
    result = services().sessions.login(dni, password, request.remote_addr, request.headers.get('User-Agent'))
    return jsonify(result)


@bp.route('/auth/logout', methods=['POST'])
@session_required
def logout():
    return jsonify(services().sessions.logout(g.raw_token, member().id))


@bp.route('/auth/forgot-password', methods=['POST'])
@limiter.limit(login_rate_limit)
def forgot_password():
    payload = json_body(['dni'])
    return jsonify(services().password_reset.request_reset(validator.required_dni(payload)))


@bp.route('/auth/reset-password', methods=['POST'])
def reset_password():
    payload = json_body(['token', 'newPassword'])
    token = payload.get('token')
    new_password = payload.get('newPassword')
    if not isinstance(token, str) or not isinstance(new_password, str):
        raise ValueError("token and newPassword are required")
    return jsonify(services().password_reset.reset_password(token, new_password))


@bp.route('/auth/register', methods=['POST'])
def register():
    payload = json_body(['dni', 'password', 'firstName', 'lastName', 'phone', 'email', 'chapterId'])
    password = payload.get('password')
    if not isinstance(password, str):
        raise ValueError("password is required")
    user = services().users.register(
        dni=validator.required_dni(payload),
        password=password,
        first_name=validator.required_string(payload, 'firstName', max_length=100),
        last_name=validator.required_string(payload, 'lastName', max_length=100),
        chapter_id=validator.required_uuid(payload, 'chapterId'),
        phone=validator.optional_string(payload, 'phone', max_length=20),
        email=validator.optional_email(payload),
    )
    return jsonify(user_json(user)), 201


# Profile

@bp.route('/users/me', methods=['GET'])
@session_required
def get_me():
    return jsonify(user_json(services().users.get_me(member().id)))


@bp.route('/users/me', methods=['PATCH', 'PUT'])
@session_required
def update_me():
    payload = json_body(['firstName', 'lastName', 'phone', 'email'])
    changes = {}
    if 'firstName' in payload:
        changes['first_name'] = validator.required_string(payload, 'firstName', max_length=100)
    if 'lastName' in payload:
        changes['last_name'] = validator.required_string(payload, 'lastName', max_length=100)
    if 'phone' in payload:
        changes['phone'] = validator.optional_string(payload, 'phone', max_length=20)
    if 'email' in payload:
        changes['email'] = validator.optional_email(payload)
    return jsonify(user_json(services().users.update_profile(member().id, changes)))


# RBAC

def _names(payload, field):
    return validator.string_list(payload, field, required=True)


@bp.route('/rbac/roles', methods=['GET'])
@require_permission(PermissionKey.RBAC_MANAGE)
def list_roles():
    return jsonify([role_json(r) for r in services().rbac.list_roles()])


@bp.route('/rbac/roles', methods=['POST'])
@require_permission(PermissionKey.RBAC_MANAGE)
def create_role():
    payload = json_body(['name', 'description'])
    role = services().rbac.create_role(
        validator.required_string(payload, 'name', max_length=50),
        validator.optional_string(payload, 'description'),
    )
    return jsonify(role_json(role)), 201


@bp.route('/rbac/roles/<role_id>', methods=['PATCH'])
@require_permission(PermissionKey.RBAC_MANAGE)
def update_role(role_id):
    payload = json_body(['name', 'description'])
    role = services().rbac.update_role(
        role_id,
        validator.optional_string(payload, 'name', max_length=50),
        validator.optional_string(payload, 'description'),
    )
    return jsonify(role_json(role))


@bp.route('/rbac/roles/<role_id>', methods=['DELETE'])
@require_permission(PermissionKey.RBAC_MANAGE)
def delete_role(role_id):
    return jsonify(services().rbac.delete_role(role_id))


@bp.route('/rbac/permissions', methods=['GET'])
@require_permission(PermissionKey.RBAC_MANAGE)
def list_permissions():
    return jsonify([permission_json(p) for p in services().rbac.list_permissions()])


@bp.route('/rbac/permissions', methods=['POST'])
@require_permission(PermissionKey.RBAC_MANAGE)
def create_permission():
    payload = json_body(['key', 'description'])
    permission = services().rbac.create_permission(
        validator.required_string(payload, 'key', max_length=100),
        validator.optional_string(payload, 'description'),
    )
    return jsonify(permission_json(permission)), 201


@bp.route('/rbac/permissions/<permission_id>', methods=['PATCH'])
@require_permission(PermissionKey.RBAC_MANAGE)
def update_permission(permission_id):
    payload = json_body(['key', 'description'])
    permission = services().rbac.update_permission(
        permission_id,
        validator.optional_string(payload, 'key', max_length=100),
        validator.optional_string(payload, 'description'),
    )
    return jsonify(permission_json(permission))


@bp.route('/rbac/permissions/<permission_id>', methods=['DELETE'])
@require_permission(PermissionKey.RBAC_MANAGE)
def delete_permission(permission_id):
    return jsonify(services().rbac.delete_permission(permission_id))


@bp.route('/rbac/roles/<role_id>/permissions', methods=['POST', 'PUT'])
@require_permission(PermissionKey.RBAC_MANAGE)
def assign_permissions(role_id):
    payload = json_body(['permissions'])
    role = services().rbac.assign_permissions(role_id, _names(payload, 'permissions'),
                                              replace=request.method == 'PUT')
    return jsonify(role_json(role))


@bp.route('/rbac/users', methods=['GET'])
@require_permission(PermissionKey.USERS_MANAGE)
def list_users():
    return jsonify([user_json(u) for u in services().rbac.list_users()])


@bp.route('/rbac/users', methods=['POST'])
@require_permission(PermissionKey.USERS_MANAGE)
def create_user():
    payload = json_body(['dni', 'password', 'firstName', 'lastName', 'phone', 'email', 'chapterId', 'roles'])
    password = payload.get('password')
    if not isinstance(password, str):
        raise ValueError("password is required")
    user = services().rbac.create_user(
        dni=validator.required_dni(payload),
        password=password,
        first_name=validator.required_string(payload, 'firstName', max_length=100),
        last_name=validator.required_string(payload, 'lastName', max_length=100),
        chapter_id=validator.required_uuid(payload, 'chapterId'),
        phone=validator.optional_string(payload, 'phone', max_length=20),
        email=validator.optional_email(payload),
        roles=validator.string_list(payload, 'roles'),
    )
    return jsonify(user_json(user)), 201


@bp.route('/rbac/users/<user_id>', methods=['PUT', 'PATCH'])
@require_permission(PermissionKey.USERS_MANAGE)
def update_user(user_id):
    payload = json_body(['firstName', 'lastName', 'phone', 'email', 'chapterId', 'password',
                         'isActive', 'statusReason', 'roles'])
    changes = {}
    if payload.get('firstName') is not None:
        changes['first_name'] = validator.required_string(payload, 'firstName', max_length=100)
    if payload.get('lastName') is not None:
        changes['last_name'] = validator.required_string(payload, 'lastName', max_length=100)
    if 'phone' in payload:
        changes['phone'] = validator.optional_string(payload, 'phone', max_length=20)
    if 'email' in payload:
        changes['email'] = validator.optional_email(payload)
    if payload.get('chapterId') is not None:
        changes['chapter_id'] = validator.required_uuid(payload, 'chapterId')
    if 'statusReason' in payload:
        changes['status_reason'] = validator.optional_string(payload, 'statusReason')
    if payload.get('password') is not None:
        if not isinstance(payload['password'], str):
            raise ValueError("password must be a string")
        changes['password'] = payload['password']
    changes['is_active'] = validator.optional_bool(payload, 'isActive')
    changes['roles'] = validator.string_list(payload, 'roles')
    return jsonify(user_json(services().rbac.update_user(user_id, changes)))


@bp.route('/rbac/users/<user_id>', methods=['DELETE'])
@require_permission(PermissionKey.USERS_MANAGE)
def delete_user(user_id):
    return jsonify(services().rbac.delete_user(user_id))


@bp.route('/rbac/users/<user_id>/roles', methods=['POST', 'PUT'])
@require_permission(PermissionKey.RBAC_MANAGE)
def assign_roles(user_id):
    payload = json_body(['roles'])
    user = services().rbac.assign_roles(active_user(user_id), _names(payload, 'roles'),
                                        replace=request.method == 'PUT')
    return jsonify(user_json(user))


@bp.route('/rbac/users/by-dni/<dni>/roles', methods=['POST', 'PUT'])
@require_permission(PermissionKey.RBAC_MANAGE)
def assign_roles_by_dni(dni):
    payload = json_body(['roles'])
    rbac = services().rbac
    user = rbac.assign_roles(rbac.user_by_dni(dni), _names(payload, 'roles'),
                             replace=request.method == 'PUT')
    return jsonify(user_json(user))


# Audit

@bp.route('/audit/logs', methods=['GET'])
@require_permission(PermissionKey.AUDIT_VIEW)
def list_audit_logs():
    limit = request.args.get('limit', default=50, type=int)
    if limit < 1 or limit > 200:
        raise ValueError("limit must be between 1 and 200")
    entries = services().audit.list_entries(
        action=request.args.get('action'),
        entity=request.args.get('entity'),
        user_id=request.args.get('userId'),
        limit=limit,
    )
    return jsonify(entries)


# Padron

@bp.route('/padron/import', methods=['POST'])
@require_permission(PermissionKey.PADRON_MANAGE)
def import_padron():
    upload = request.files.get('file')
    if upload is None:
        raise ValueError("Missing file")
    result = services().padron.import_padron(upload.read(), upload.filename, member().id, member().roles)
    return jsonify(result)


# Organizations

@bp.route('/associations', methods=['GET'])
@require_permission(PermissionKey.ASSOCIATIONS_MANAGE)
def list_associations():
    return jsonify([association_json(a) for a in services().organizations.list_associations()])


@bp.route('/associations', methods=['POST'])
@require_permission(PermissionKey.ASSOCIATIONS_MANAGE)
def create_association():
    payload = json_body(['name'])
    association = services().organizations.create_association(
        validator.required_string(payload, 'name', max_length=200), actor_id=member().id)
    return jsonify(association_json(association)), 201


@bp.route('/associations/<association_id>', methods=['PUT'])
@require_permission(PermissionKey.ASSOCIATIONS_MANAGE)
def update_association(association_id):
    payload = json_body(['name'])
    association = services().organizations.update_association(
        association_id, validator.optional_string(payload, 'name', max_length=200), actor_id=member().id)
    return jsonify(association_json(association))


@bp.route('/associations/<association_id>', methods=['DELETE'])
@require_permission(PermissionKey.ASSOCIATIONS_MANAGE)
def delete_association(association_id):
    return jsonify(services().organizations.delete_association(association_id, actor_id=member().id))


@bp.route('/branches', methods=['GET'])
@require_permission(PermissionKey.BRANCHES_MANAGE)
def list_branches():
    branches = services().organizations.list_branches(request.args.get('associationId'))
    return jsonify([branch_json(b) for b in branches])


@bp.route('/branches', methods=['POST'])
@require_permission(PermissionKey.BRANCHES_MANAGE)
def create_branch():
    payload = json_body(['name', 'associationId'])
    branch = services().organizations.create_branch(
        validator.required_string(payload, 'name', max_length=200),
        validator.required_uuid(payload, 'associationId'),
        actor_id=member().id,
    )
    return jsonify(branch_json(branch)), 201


@bp.route('/branches/<branch_id>', methods=['PUT'])
@require_permission(PermissionKey.BRANCHES_MANAGE)
def update_branch(branch_id):
    payload = json_body(['name'])
    branch = services().organizations.update_branch(
        branch_id, validator.optional_string(payload, 'name', max_length=200), actor_id=member().id)
    return jsonify(branch_json(branch))


@bp.route('/branches/<branch_id>', methods=['DELETE'])
@require_permission(PermissionKey.BRANCHES_MANAGE)
def delete_branch(branch_id):
    return jsonify(services().organizations.delete_branch(branch_id, actor_id=member().id))


@bp.route('/chapters', methods=['GET'])
@require_permission(PermissionKey.CHAPTERS_MANAGE)
def list_chapters():
    chapters = services().organizations.list_chapters(request.args.get('branchId'))
    return jsonify([chapter_json(c) for c in chapters])


@bp.route('/chapters', methods=['POST'])
@require_permission(PermissionKey.CHAPTERS_MANAGE)
def create_chapter():
    payload = json_body(['name', 'branchId', 'specialtyIds'])
    chapter = services().organizations.create_chapter(
        validator.required_string(payload, 'name', max_length=200),
        validator.required_uuid(payload, 'branchId'),
        specialty_ids=validator.string_list(payload, 'specialtyIds'),
        actor_id=member().id,
    )
    return jsonify(chapter_json(chapter)), 201


@bp.route('/chapters/<chapter_id>', methods=['PUT'])
@require_permission(PermissionKey.CHAPTERS_MANAGE)
def update_chapter(chapter_id):
    payload = json_body(['name', 'specialtyIds'])
    chapter = services().organizations.update_chapter(
        chapter_id,
        name=validator.optional_string(payload, 'name', max_length=200),
        specialty_ids=validator.string_list(payload, 'specialtyIds'),
        actor_id=member().id,
    )
    return jsonify(chapter_json(chapter))


@bp.route('/chapters/<chapter_id>', methods=['DELETE'])
@require_permission(PermissionKey.CHAPTERS_MANAGE)
def delete_chapter(chapter_id):
    return jsonify(services().organizations.delete_chapter(chapter_id, actor_id=member().id))


@bp.route('/specialties', methods=['GET'])
@require_permission(PermissionKey.SPECIALTIES_MANAGE)
def list_specialties():
    specialties = services().organizations.list_specialties(request.args.get('associationId'))
    return jsonify([specialty_json(s) for s in specialties])


@bp.route('/specialties', methods=['POST'])
@require_permission(PermissionKey.SPECIALTIES_MANAGE)
def create_specialty():
    payload = json_body(['name', 'associationId'])
    specialty = services().organizations.create_specialty(
        validator.required_string(payload, 'name', max_length=200),
        validator.required_uuid(payload, 'associationId'),
        actor_id=member().id,
    )
    return jsonify(specialty_json(specialty)), 201


@bp.route('/specialties/<specialty_id>', methods=['PUT'])
@require_permission(PermissionKey.SPECIALTIES_MANAGE)
def update_specialty(specialty_id):
    payload = json_body(['name'])
    specialty = services().organizations.update_specialty(
        specialty_id, validator.optional_string(payload, 'name', max_length=200), actor_id=member().id)
    return jsonify(specialty_json(specialty))


@bp.route('/specialties/<specialty_id>', methods=['DELETE'])
@require_permission(PermissionKey.SPECIALTIES_MANAGE)
def delete_specialty(specialty_id):
    return jsonify(services().organizations.delete_specialty(specialty_id, actor_id=member().id))


@bp.route('/parties', methods=['GET'])
@require_permission(PermissionKey.PARTIES_MANAGE)
def list_parties():
    parties = services().organizations.list_parties(
        scope=validator.optional_enum(request.args, 'scope', PartyScope),
        association_id=request.args.get('associationId'),
        branch_id=request.args.get('branchId'),
        chapter_id=request.args.get('chapterId'),
    )
    return jsonify([party_json(p) for p in parties])


PARTY_FIELDS = ['name', 'acronym', 'scope', 'isActive', 'associationId', 'branchId', 'chapterId']


@bp.route('/parties', methods=['POST'])
@require_permission(PermissionKey.PARTIES_MANAGE)
def create_party():
    payload = json_body(PARTY_FIELDS)
    party = services().organizations.create_party(
        name=validator.required_string(payload, 'name', max_length=200),
        scope=validator.optional_enum(payload, 'scope', PartyScope),
        acronym=validator.optional_string(payload, 'acronym', max_length=50),
        is_active=validator.optional_bool(payload, 'isActive'),
        association_id=validator.optional_uuid(payload, 'associationId'),
        branch_id=validator.optional_uuid(payload, 'branchId'),
        chapter_id=validator.optional_uuid(payload, 'chapterId'),
        actor_id=member().id,
    )
    return jsonify(party_json(party)), 201


@bp.route('/parties/<party_id>', methods=['PUT'])
@require_permission(PermissionKey.PARTIES_MANAGE)
def update_party(party_id):
    payload = json_body(PARTY_FIELDS)
    party = services().organizations.update_party(
        party_id,
        name=validator.optional_string(payload, 'name', max_length=200),
        acronym=validator.optional_string(payload, 'acronym', max_length=50),
        scope=validator.optional_enum(payload, 'scope', PartyScope),
        is_active=validator.optional_bool(payload, 'isActive'),
        association_id=validator.optional_uuid(payload, 'associationId'),
        branch_id=validator.optional_uuid(payload, 'branchId'),
        chapter_id=validator.optional_uuid(payload, 'chapterId'),
        actor_id=member().id,
    )
    return jsonify(party_json(party))


@bp.route('/parties/<party_id>', methods=['DELETE'])
@require_permission(PermissionKey.PARTIES_MANAGE)
def delete_party(party_id):
    return jsonify(services().organizations.delete_party(party_id, actor_id=member().id))


# Elections: members

@bp.route('/elections/votable', methods=['GET'])
@require_role(UserRoleName.MEMBER)
def votable_elections():
    votable = services().eligibility.votable_elections(member().id)
    return jsonify([
        dict(election_json(election, detailed=True), votedPositionIds=voted)
        for election, voted in votable
    ])


@bp.route('/elections/<election_id>/bulk-vote', methods=['POST'])
@require_role(UserRoleName.MEMBER)
def bulk_vote(election_id):
    selections = validator.validate_bulk_vote(request.get_json(silent=True))
    return jsonify(services().ballots.bulk_vote(election_id, member().id, selections)), 201


# Elections: administration

def _positions(payload):
    positions = payload.get('positions', [])
    if not isinstance(positions, list):
        raise ValueError("positions must be a list")
    parsed = []
    for index, position in enumerate(positions):
        if not isinstance(position, dict):
            raise ValueError("Each position must be an object")
        title = validator.required_string(position, 'title', max_length=200)
        order = validator.optional_int(position, 'order')
        parsed.append((title, index if order is None else order))
    return parsed


@bp.route('/elections', methods=['POST'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def create_election():
    payload = json_body(['name', 'description', 'startDate', 'endDate', 'scope',
                         'associationId', 'branchId', 'chapterId', 'positions'])
    scope = validator.optional_enum(payload, 'scope', ElectionScope)
    if scope is None:
        raise ValueError("scope is required")
    election = services().elections.create(
        name=validator.required_string(payload, 'name', max_length=200),
        description=validator.optional_string(payload, 'description', max_length=2000),
        start_date=validator.parse_datetime(payload.get('startDate'), 'startDate'),
        end_date=validator.parse_datetime(payload.get('endDate'), 'endDate'),
        scope=scope,
        association_id=validator.required_uuid(payload, 'associationId'),
        branch_id=validator.optional_uuid(payload, 'branchId'),
        chapter_id=validator.optional_uuid(payload, 'chapterId'),
        positions=_positions(payload),
        actor_id=member().id,
    )
    return jsonify(election_json(election)), 201


@bp.route('/elections', methods=['GET'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def list_elections():
    return jsonify([election_json(e) for e in services().elections.list_elections()])


@bp.route('/elections/<election_id>', methods=['GET'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def get_election(election_id):
    return jsonify(election_json(services().elections.get(election_id), detailed=True))


@bp.route('/elections/<election_id>', methods=['PUT'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def update_election(election_id):
    payload = json_body(['name', 'description', 'startDate', 'endDate', 'status'])
    changes = ElectionUpdate(
        name=validator.optional_string(payload, 'name', max_length=200),
        description=validator.optional_string(payload, 'description', max_length=2000),
        status=validator.optional_enum(payload, 'status', ElectionStatus),
    )
    if payload.get('startDate') is not None:
        changes.start_date = validator.parse_datetime(payload['startDate'], 'startDate')
    if payload.get('endDate') is not None:
        changes.end_date = validator.parse_datetime(payload['endDate'], 'endDate')
    election = services().elections.update(election_id, changes, actor_id=member().id)
    return jsonify(election_json(election))


@bp.route('/elections/<election_id>/lists', methods=['POST'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def create_candidate_list(election_id):
    payload = json_body(['name', 'number', 'politicalPartyId'])
    candidate_list = services().elections.create_list(
        election_id,
        validator.required_string(payload, 'name', max_length=200),
        number=validator.optional_int(payload, 'number'),
        political_party_id=validator.optional_uuid(payload, 'politicalPartyId'),
        actor_id=member().id,
    )
    return jsonify(candidate_list_json(candidate_list)), 201


@bp.route('/elections/lists/<list_id>', methods=['DELETE'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def delete_candidate_list(list_id):
    return jsonify(services().elections.delete_list(list_id, actor_id=member().id))


@bp.route('/elections/lists/<list_id>/candidates', methods=['POST'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def add_candidate(list_id):
    payload = json_body(['firstName', 'lastName', 'dni', 'positionId', 'photoUrl'])
    candidate = services().elections.add_candidate(
        list_id,
        validator.required_uuid(payload, 'positionId'),
        validator.required_string(payload, 'firstName', max_length=100),
        validator.required_string(payload, 'lastName', max_length=100),
        dni=validator.optional_string(payload, 'dni', max_length=8),
        photo_url=validator.optional_string(payload, 'photoUrl', max_length=500),
        actor_id=member().id,
    )
    return jsonify(candidate_json(candidate)), 201


@bp.route('/elections/candidates/<candidate_id>', methods=['PUT'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def update_candidate(candidate_id):
    payload = json_body(['firstName', 'lastName', 'dni', 'photoUrl'])
    changes = CandidateUpdate(
        first_name=validator.optional_string(payload, 'firstName', max_length=100),
        last_name=validator.optional_string(payload, 'lastName', max_length=100),
        dni=validator.optional_string(payload, 'dni', max_length=8),
        photo_url=validator.optional_string(payload, 'photoUrl', max_length=500),
    )
    candidate = services().elections.update_candidate(candidate_id, changes, actor_id=member().id)
    return jsonify(candidate_json(candidate))


@bp.route('/elections/candidates/<candidate_id>', methods=['DELETE'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def delete_candidate(candidate_id):
    return jsonify(services().elections.delete_candidate(candidate_id, actor_id=member().id))


@bp.route('/elections/<election_id>/results', methods=['GET'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def election_results(election_id):
    return jsonify(services().results.results(election_id))


@bp.route('/elections/<election_id>/results/by-position', methods=['GET'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def election_results_by_position(election_id):
    return jsonify(services().results.results_by_position(election_id))


@bp.route('/elections/<election_id>/results/by-list', methods=['GET'])
@require_permission(PermissionKey.ELECTIONS_MANAGE)
def election_results_by_list(election_id):
    return jsonify(services().results.results_by_list(election_id))
