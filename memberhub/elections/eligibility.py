# memberhub/elections/eligibility.py

from collections import namedtuple

from sqlalchemy import and_, or_, select
from werkzeug.exceptions import NotFound

from memberhub import db
from memberhub.database.models import Election, ElectionScope, ElectionStatus, User, Vote, utcnow

# A member's place in the organizational hierarchy
MemberChain = namedtuple('MemberChain', ['association_id', 'branch_id', 'chapter_id'])


def member_chain(user):
    branch = user.chapter.branch
    return MemberChain(branch.association_id, branch.id, user.chapter_id)


def is_eligible(election, chain):
    """Scope predicate shared by the votable listing and ballot casting."""
    if election.association_id != chain.association_id:
        return False
    if election.scope == ElectionScope.ASSOCIATION:
        return True
    if election.scope == ElectionScope.BRANCH:
        return election.branch_id == chain.branch_id
    if election.scope == ElectionScope.CHAPTER:
        return election.chapter_id == chain.chapter_id
    return False


def eligibility_clause(chain):
    """SQL form of ``is_eligible`` for pre-filtering at the store."""
    return and_(
        Election.association_id == chain.association_id,
        or_(
            Election.scope == ElectionScope.ASSOCIATION,
            and_(Election.scope == ElectionScope.BRANCH, Election.branch_id == chain.branch_id),
            and_(Election.scope == ElectionScope.CHAPTER, Election.chapter_id == chain.chapter_id),
        ),
    )


class EligibilityResolver:
    def votable_elections(self, user_id):
        """Open elections the member may still vote in, with the positions already voted.

        Returns a list of ``(election, voted_position_ids)``.
        """
        user = db.session.execute(
            select(User).where(User.id == user_id, User.deleted_at.is_(None))
        ).scalar_one_or_none()
        if user is None:
            raise NotFound('User not found')

        chain = member_chain(user)
        now = utcnow()
        candidates = db.session.execute(
            select(Election)
            .where(
                Election.status == ElectionStatus.OPEN,
                Election.start_date <= now,
                Election.end_date >= now,
                eligibility_clause(chain),
            )
            .order_by(Election.start_date)
        ).scalars().all()
        if not candidates:
            return []

        voted = {}
        rows = db.session.execute(
            select(Vote.election_id, Vote.election_position_id)
            .where(Vote.user_id == user_id, Vote.election_id.in_([e.id for e in candidates]))
        ).all()
        for election_id, position_id in rows:
            voted.setdefault(election_id, set()).add(position_id)

        votable = []
        for election in candidates:
            # Re-check in Python so listing and casting share one predicate
            if not is_eligible(election, chain):
                continue
            voted_ids = voted.get(election.id, set())
            position_ids = {position.id for position in election.positions}
            # An election with no positions has nothing left to vote
            if len(position_ids & voted_ids) >= len(position_ids):
                continue
            votable.append((election, sorted(voted_ids)))
        return votable
