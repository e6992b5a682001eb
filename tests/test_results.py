import pytest
from werkzeug.exceptions import Forbidden, NotFound

from memberhub import db
from memberhub.database.models import ElectionStatus, PartyScope, PoliticalParty, new_id


@pytest.fixture
def completed_election(svc, org, make_user, make_election, ballot_for):
    """Three voters for Lista Azul, one for Lista Verde, then completed."""
    election = make_election(org['association'])
    for _ in range(3):
        svc.ballots.bulk_vote(election.id, make_user(org['c1']).id, ballot_for(election, 'Lista Azul'))
    svc.ballots.bulk_vote(election.id, make_user(org['c2']).id, ballot_for(election, 'Lista Verde'))
    election.status = ElectionStatus.COMPLETED
    db.session.commit()
    return election


@pytest.mark.parametrize("status", [ElectionStatus.DRAFT, ElectionStatus.OPEN, ElectionStatus.CLOSED])
def test_results_hidden_until_completed(svc, org, make_election, status):
    election = make_election(org['association'], status=status)
    with pytest.raises(Forbidden):
        svc.results.results(election.id)


def test_results_unknown_election(svc):
    with pytest.raises(NotFound):
        svc.results.results(new_id())


def test_results_totals_and_percentages(svc, completed_election):
    results = svc.results.results(completed_election.id)

    assert results['electionStatus'] == 'COMPLETED'
    assert results['associationName'] == 'Asociación A'
    assert results['totalVotes'] == 8

    for position in results['positionResults']:
        percentages = {c['listName']: c['percentage'] for c in position['candidates']}
        assert percentages == pytest.approx({'Lista Azul': 75.0, 'Lista Verde': 25.0})
        assert sum(percentages.values()) == pytest.approx(100.0)

    by_list = {entry['listName']: entry for entry in results['listResults']}
    assert by_list['Lista Azul']['totalVotes'] == 6
    assert by_list['Lista Azul']['percentage'] == pytest.approx(75.0)
    assert by_list['Lista Verde']['listNumber'] == 2
    assert len(by_list['Lista Verde']['candidates']) == 2


def test_positions_keep_their_order(svc, completed_election):
    titles = [p['positionTitle'] for p in svc.results.results_by_position(completed_election.id)]
    assert titles == ['Decano', 'Tesorero']


def test_zero_votes_gives_zero_percentages(svc, org, make_election):
    election = make_election(org['association'], status=ElectionStatus.COMPLETED)
    results = svc.results.results(election.id)
    assert results['totalVotes'] == 0
    assert all(c['percentage'] == 0 for c in results['candidateResults'])
    assert all(entry['percentage'] == 0 for entry in svc.results.results_by_list(election.id))


def test_party_name_is_reported(svc, org, make_election):
    election = make_election(org['association'], status=ElectionStatus.COMPLETED)
    party = PoliticalParty(name='Frente Técnico', scope=PartyScope.NATIONAL)
    db.session.add(party)
    target = election.candidate_lists[0]
    target_name = target.name
    target.political_party = party
    db.session.commit()

    names = {entry['listName']: entry['partyName'] for entry in svc.results.results_by_list(election.id)}
    assert names[target_name] == 'Frente Técnico'
    assert sum(1 for name in names.values() if name is None) == 1
