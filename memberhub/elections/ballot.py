# memberhub/elections/ballot.py

# Bulk ballot casting. Every check and write runs in one transaction, so a
# ballot is recorded completely or not at all.

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload
from werkzeug.exceptions import BadRequest, Conflict, Forbidden, NotFound

from memberhub import db
from memberhub.database.models import Candidate, Chapter, Election, User, Vote, utcnow
from memberhub.database.transactions import atomic
from memberhub.elections.eligibility import is_eligible, member_chain

logger = logging.getLogger(__name__)


class BallotService:
    def __init__(self, audit_logger):
        self.audit = audit_logger

    def bulk_vote(self, election_id, user_id, selections):
        """Cast one vote per position of the election.

        ``selections`` is a list of ``(candidate_id, position_id)`` pairs.
        """
        try:
            with atomic() as session:
                count = self._cast(session, election_id, user_id, selections)
        except IntegrityError as exc:
            # Lost a race against a concurrent ballot for the same position
            raise Conflict('You have already voted for one or more of these positions.') from exc

        self.audit.log('VOTE_CAST', 'Election', election_id, user_id=user_id,
                       metadata={'positions': count})
        logger.info("User %s cast %d votes in election %s", user_id, count, election_id)
        return {'message': 'Votes cast successfully', 'count': count}

    def _cast(self, session, election_id, user_id, selections):
        now = utcnow()

        election = session.execute(
            select(Election).options(selectinload(Election.positions)).where(Election.id == election_id)
        ).scalar_one_or_none()
        if election is None:
            raise NotFound('Election not found')
        user = session.execute(
            select(User)
            .options(joinedload(User.chapter).joinedload(Chapter.branch))
            .where(User.id == user_id)
        ).scalar_one_or_none()
        if user is None:
            raise NotFound('User not found or is not active.')

        if not election.is_open_at(now):
            raise Forbidden('This election is not open for voting.')
        if not user.can_sign_in:
            raise NotFound('User not found or is not active.')
        if not is_eligible(election, member_chain(user)):
            raise Forbidden('You are not eligible to vote in this election.')

        if len(selections) != len(election.positions):
            raise BadRequest('You must vote for all available positions.')
        position_ids = [position_id for _, position_id in selections]
        if len(set(position_ids)) != len(position_ids):
            raise BadRequest('Duplicate votes for the same position are not allowed.')

        already_voted = session.execute(
            select(Vote.id).where(Vote.user_id == user_id, Vote.election_position_id.in_(position_ids))
        ).first()
        if already_voted is not None:
            raise Forbidden('You have already voted for one or more of these positions.')

        candidate_ids = [candidate_id for candidate_id, _ in selections]
        candidates = {
            candidate.id: candidate
            for candidate in session.execute(
                select(Candidate)
                .options(joinedload(Candidate.candidate_list))
                .where(Candidate.id.in_(candidate_ids))
            ).scalars()
        }
        if len(candidates) != len(selections):
            raise NotFound('One or more candidates were not found.')

        for candidate_id, position_id in selections:
            candidate = candidates.get(candidate_id)
            if (candidate is None
                    or candidate.candidate_list.election_id != election.id
                    or candidate.position_id != position_id):
                raise BadRequest(f'Invalid candidate or position mismatch for candidate ID {candidate_id}.')

        session.add_all([
            Vote(election_id=election.id, user_id=user_id,
                 candidate_id=candidate_id, election_position_id=position_id)
            for candidate_id, position_id in selections
        ])
        session.flush()

        for candidate_id in candidate_ids:
            self._increment_tally(session, candidate_id)
        return len(selections)

    def _increment_tally(self, session, candidate_id):
        session.execute(
            update(Candidate)
            .where(Candidate.id == candidate_id)
            .values(vote_count=Candidate.vote_count + 1)
        )
