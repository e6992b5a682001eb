# memberhub/elections/results.py

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from werkzeug.exceptions import Forbidden, NotFound

from memberhub import db
from memberhub.database.models import Candidate, CandidateList, Election, ElectionStatus


def percentage(part, total):
    return (part / total) * 100 if total > 0 else 0


class ResultTabulator:
    """Read-only tallies of completed elections."""

    def _completed_election(self, election_id):
        election = db.session.execute(
            select(Election)
            .options(
                selectinload(Election.positions),
                selectinload(Election.candidate_lists)
                .selectinload(CandidateList.candidates)
                .selectinload(Candidate.position),
                selectinload(Election.candidate_lists).selectinload(CandidateList.political_party),
            )
            .where(Election.id == election_id)
        ).scalar_one_or_none()
        if election is None:
            raise NotFound('Election not found')
        if election.status != ElectionStatus.COMPLETED:
            raise Forbidden('Results are only available for completed elections')
        return election

    def results(self, election_id):
        election = self._completed_election(election_id)
        lists = sorted(election.candidate_lists, key=lambda item: (item.number is None, item.number or 0, item.name))

        total_votes = sum(c.vote_count for cl in lists for c in cl.candidates)
        votes_by_position = {}
        for candidate_list in lists:
            for candidate in candidate_list.candidates:
                votes_by_position[candidate.position_id] = (
                    votes_by_position.get(candidate.position_id, 0) + candidate.vote_count
                )

        candidate_results = []
        for candidate_list in lists:
            party = candidate_list.political_party
            for candidate in candidate_list.candidates:
                candidate_results.append({
                    'candidateId': candidate.id,
                    'candidateName': candidate.full_name,
                    'positionId': candidate.position_id,
                    'positionTitle': candidate.position.title,
                    'listId': candidate_list.id,
                    'listName': candidate_list.name,
                    'partyName': party.name if party else None,
                    'voteCount': candidate.vote_count,
                    'percentage': percentage(candidate.vote_count,
                                             votes_by_position.get(candidate.position_id, 0)),
                })

        list_results = []
        for candidate_list in lists:
            party = candidate_list.political_party
            list_total = sum(c.vote_count for c in candidate_list.candidates)
            list_results.append({
                'listId': candidate_list.id,
                'listName': candidate_list.name,
                'listNumber': candidate_list.number,
                'partyName': party.name if party else None,
                'totalVotes': list_total,
                'percentage': percentage(list_total, total_votes),
                'candidates': [c for c in candidate_results if c['listId'] == candidate_list.id],
            })

        position_results = [
            {
                'positionId': position.id,
                'positionTitle': position.title,
                'order': position.order,
                'candidates': [c for c in candidate_results if c['positionId'] == position.id],
            }
            for position in election.positions
        ]

        return {
            'electionId': election.id,
            'electionName': election.name,
            'electionScope': election.scope.value,
            'electionStatus': election.status.value,
            'associationName': election.association.name,
            'branchName': election.branch.name if election.branch else None,
            'chapterName': election.chapter.name if election.chapter else None,
            'totalVotes': total_votes,
            'candidateResults': candidate_results,
            'listResults': list_results,
            'positionResults': position_results,
        }

    def results_by_position(self, election_id):
        return self.results(election_id)['positionResults']

    def results_by_list(self, election_id):
        return self.results(election_id)['listResults']
