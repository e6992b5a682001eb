# memberhub/elections/admin.py

# Election administration: elections with their positions, candidate lists
# and candidates. Partial updates are typed; only the listed fields change.

from dataclasses import dataclass, fields
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload
from werkzeug.exceptions import BadRequest, Conflict, NotFound

from memberhub import db
from memberhub.database.models import (
    Branch, Candidate, CandidateList, Chapter, Election, ElectionPosition,
    ElectionScope, ElectionStatus, PoliticalParty, Vote,
)
from memberhub.database.transactions import atomic
from memberhub.errors import conflict_on_integrity_error

STATUS_ORDER = [ElectionStatus.DRAFT, ElectionStatus.OPEN, ElectionStatus.CLOSED, ElectionStatus.COMPLETED]


@dataclass
class ElectionUpdate:
    name: str = None
    description: str = None
    start_date: datetime = None
    end_date: datetime = None
    status: ElectionStatus = None

    def changes(self):
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass
class CandidateUpdate:
    first_name: str = None
    last_name: str = None
    dni: str = None
    photo_url: str = None

    def changes(self):
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


def can_transition(current, target):
    """Status only moves forward along DRAFT -> OPEN -> CLOSED -> COMPLETED."""
    return STATUS_ORDER.index(target) >= STATUS_ORDER.index(current)


class ElectionAdminService:
    def __init__(self, audit_logger):
        self.audit = audit_logger

    def _election(self, election_id):
        election = db.session.get(Election, election_id)
        if election is None:
            raise NotFound('Election not found')
        return election

    def _candidate_list(self, list_id):
        candidate_list = db.session.get(CandidateList, list_id)
        if candidate_list is None:
            raise NotFound('Candidate List not found')
        return candidate_list

    def _candidate(self, candidate_id):
        candidate = db.session.get(Candidate, candidate_id)
        if candidate is None:
            raise NotFound('Candidate not found')
        return candidate

    def _check_scope(self, scope, association_id, branch_id, chapter_id):
        if scope == ElectionScope.BRANCH and not branch_id:
            raise BadRequest('Branch elections require branchId')
        if scope == ElectionScope.CHAPTER and not chapter_id:
            raise BadRequest('Chapter elections require chapterId')
        if branch_id:
            branch = db.session.get(Branch, branch_id)
            if branch is None or branch.deleted_at is not None or branch.association_id != association_id:
                raise BadRequest('Branch does not belong to the association')
        if chapter_id:
            chapter = db.session.get(Chapter, chapter_id)
            if chapter is None or chapter.deleted_at is not None \
                    or chapter.branch.association_id != association_id:
                raise BadRequest('Chapter does not belong to the association')

    def create(self, name, start_date, end_date, scope, association_id,
               positions, description=None, branch_id=None, chapter_id=None, actor_id=None):
        """``positions`` is a list of ``(title, order)``."""
        if start_date >= end_date:
            raise BadRequest('startDate must be before endDate')
        self._check_scope(scope, association_id, branch_id, chapter_id)

        with atomic() as session:
            election = Election(
                name=name,
                description=description,
                start_date=start_date,
                end_date=end_date,
                scope=scope,
                association_id=association_id,
                branch_id=branch_id,
                chapter_id=chapter_id,
            )
            for title, order in positions:
                election.positions.append(ElectionPosition(title=title, order=order))
            session.add(election)

        self.audit.log('ELECTION_CREATE', 'Election', election.id, user_id=actor_id,
                       metadata={'name': name, 'scope': scope.value})
        return election

    def list_elections(self):
        return db.session.execute(
            select(Election)
            .options(selectinload(Election.positions), selectinload(Election.candidate_lists))
            .order_by(Election.created_at.desc())
        ).scalars().all()

    def get(self, election_id):
        return self._election(election_id)

    def update(self, election_id, changes, actor_id=None):
        election = self._election(election_id)
        values = changes.changes()

        status = values.get('status')
        if status is not None and not can_transition(election.status, status):
            raise BadRequest(f'Cannot move election from {election.status.value} to {status.value}')
        start = values.get('start_date', election.start_date)
        end = values.get('end_date', election.end_date)
        if start >= end:
            raise BadRequest('startDate must be before endDate')

        with atomic():
            for name, value in values.items():
                setattr(election, name, value)

        metadata = {k: (v.value if isinstance(v, ElectionStatus) else str(v)) for k, v in values.items()}
        self.audit.log('ELECTION_UPDATE', 'Election', election.id, user_id=actor_id, metadata=metadata)
        return election

    def create_list(self, election_id, name, number=None, political_party_id=None, actor_id=None):
        election = self._election(election_id)
        if political_party_id:
            party = db.session.get(PoliticalParty, political_party_id)
            if party is None or party.deleted_at is not None:
                raise NotFound('Political party not found')

        with atomic() as session:
            candidate_list = CandidateList(
                election_id=election.id,
                name=name,
                number=number,
                political_party_id=political_party_id,
            )
            session.add(candidate_list)

        self.audit.log('CANDIDATE_LIST_CREATE', 'CandidateList', candidate_list.id, user_id=actor_id,
                       metadata={'electionId': election.id})
        return candidate_list

    def add_candidate(self, list_id, position_id, first_name, last_name, dni=None, photo_url=None,
                      actor_id=None):
        candidate_list = self._candidate_list(list_id)
        position = db.session.get(ElectionPosition, position_id)
        if position is None:
            raise NotFound('Position not found')
        if position.election_id != candidate_list.election_id:
            raise BadRequest('Position does not belong to the same election as the candidate list')
        if any(c.position_id == position_id for c in candidate_list.candidates):
            raise Conflict('This position already has a candidate in this list')

        with conflict_on_integrity_error('This position already has a candidate in this list'), \
                atomic() as session:
            candidate = Candidate(
                candidate_list_id=candidate_list.id,
                position_id=position.id,
                first_name=first_name,
                last_name=last_name,
                dni=dni,
                photo_url=photo_url,
            )
            session.add(candidate)

        self.audit.log('CANDIDATE_CREATE', 'Candidate', candidate.id, user_id=actor_id,
                       metadata={'listId': candidate_list.id, 'positionId': position.id})
        return candidate

    def update_candidate(self, candidate_id, changes, actor_id=None):
        candidate = self._candidate(candidate_id)
        values = changes.changes()
        with atomic():
            for name, value in values.items():
                setattr(candidate, name, value)
        self.audit.log('CANDIDATE_UPDATE', 'Candidate', candidate.id, user_id=actor_id,
                       metadata={'fields': sorted(values)})
        return candidate

    def _votes_for(self, candidate_ids):
        if not candidate_ids:
            return 0
        return db.session.execute(
            select(func.count(Vote.id)).where(Vote.candidate_id.in_(candidate_ids))
        ).scalar_one()

    def delete_list(self, list_id, actor_id=None):
        candidate_list = self._candidate_list(list_id)
        candidate_ids = [c.id for c in candidate_list.candidates]
        if self._votes_for(candidate_ids):
            raise Conflict('Cannot delete a list whose candidates have votes')

        with atomic() as session:
            for candidate in list(candidate_list.candidates):
                session.delete(candidate)
            session.delete(candidate_list)

        self.audit.log('CANDIDATE_LIST_DELETE', 'CandidateList', list_id, user_id=actor_id,
                       metadata={'candidates': len(candidate_ids)})
        return {'success': True}

    def delete_candidate(self, candidate_id, actor_id=None):
        candidate = self._candidate(candidate_id)
        if self._votes_for([candidate.id]):
            raise Conflict('Cannot delete a candidate with votes')
        with atomic() as session:
            session.delete(candidate)
        self.audit.log('CANDIDATE_DELETE', 'Candidate', candidate_id, user_id=actor_id)
        return {'success': True}
