# memberhub/serializers.py

# JSON shapes returned by the API (camelCase keys).


def iso(value):
    return value.isoformat() + 'Z' if value is not None else None


def user_json(user):
    return {
        'id': user.id,
        'dni': user.dni,
        'firstName': user.first_name,
        'lastName': user.last_name,
        'email': user.email,
        'phone': user.phone,
        'isActive': user.is_active,
        'statusReason': user.status_reason,
        'chapterId': user.chapter_id,
        'roles': user.role_names(),
        'createdAt': iso(user.created_at),
    }


def role_json(role):
    return {
        'id': role.id,
        'name': role.name,
        'description': role.description,
        'permissions': sorted(
            link.permission.key for link in role.permissions if link.permission.deleted_at is None
        ),
    }


def permission_json(permission):
    return {'id': permission.id, 'key': permission.key, 'description': permission.description}


def association_json(association):
    return {'id': association.id, 'name': association.name}


def branch_json(branch):
    return {'id': branch.id, 'name': branch.name, 'associationId': branch.association_id}


def specialty_json(specialty):
    return {'id': specialty.id, 'name': specialty.name, 'associationId': specialty.association_id}


def chapter_json(chapter):
    return {
        'id': chapter.id,
        'name': chapter.name,
        'branchId': chapter.branch_id,
        'specialties': [
            specialty_json(link.specialty) for link in chapter.specialties
            if link.specialty.deleted_at is None
        ],
    }


def party_json(party):
    return {
        'id': party.id,
        'name': party.name,
        'acronym': party.acronym,
        'scope': party.scope.value,
        'isActive': party.is_active,
        'associationId': party.association_id,
        'branchId': party.branch_id,
        'chapterId': party.chapter_id,
    }


def position_json(position):
    return {'id': position.id, 'title': position.title, 'order': position.order}


def candidate_json(candidate):
    return {
        'id': candidate.id,
        'candidateListId': candidate.candidate_list_id,
        'positionId': candidate.position_id,
        'firstName': candidate.first_name,
        'lastName': candidate.last_name,
        'dni': candidate.dni,
        'photoUrl': candidate.photo_url,
    }


def candidate_list_json(candidate_list, with_candidates=False):
    data = {
        'id': candidate_list.id,
        'electionId': candidate_list.election_id,
        'name': candidate_list.name,
        'number': candidate_list.number,
        'politicalPartyId': candidate_list.political_party_id,
        'politicalParty': party_json(candidate_list.political_party) if candidate_list.political_party else None,
    }
    if with_candidates:
        data['candidates'] = [candidate_json(c) for c in candidate_list.candidates]
    return data


def election_json(election, detailed=False):
    data = {
        'id': election.id,
        'name': election.name,
        'description': election.description,
        'startDate': iso(election.start_date),
        'endDate': iso(election.end_date),
        'status': election.status.value,
        'scope': election.scope.value,
        'associationId': election.association_id,
        'branchId': election.branch_id,
        'chapterId': election.chapter_id,
        'positions': [position_json(p) for p in election.positions],
    }
    if detailed:
        data['candidateLists'] = [candidate_list_json(cl, with_candidates=True) for cl in election.candidate_lists]
    return data
