import pytest

from conftest import add_group, seed_competition
from errors import ValidationError
from models import PublicVote, db
from voting import cast_public_vote


@pytest.fixture
def voting_round(app):
    """Round 2 open for public voting with two votes per voter."""
    with app.app_context():
        competition = seed_competition(voting_enabled=True)
        second = competition.rounds[1]
        second.status = "active"
        second.public_votes_per_user = 2
        db.session.commit()
        yield second, add_group(competition, "Harmony")


def test_votes_are_limited_per_voter(voting_round):
    round_, group = voting_round

    assert cast_public_vote(db.session, round_.id, group.id, "voter-a") == {"votes_used": 1, "votes_remaining": 1}
    cast_public_vote(db.session, round_.id, group.id, "voter-a")

    with pytest.raises(ValidationError) as exc:
        cast_public_vote(db.session, round_.id, group.id, "voter-a")
    assert exc.value.key == "vote.limit_reached"
    assert exc.value.localized("en") == "Each voter may cast at most 2 votes in this round"

    cast_public_vote(db.session, round_.id, group.id, "voter-b")
    assert db.session.query(PublicVote).count() == 3


def test_round_must_be_open_for_voting(voting_round):
    round_, group = voting_round
    round_.is_public_voting = False
    db.session.commit()

    with pytest.raises(ValidationError) as exc:
        cast_public_vote(db.session, round_.id, group.id, "voter-a")
    assert exc.value.key == "vote.round_not_open"


def test_eliminated_or_foreign_groups_cannot_receive_votes(voting_round):
    round_, group = voting_round
    stranger = add_group(seed_competition("Autumn Showcase"), "Stranger")

    with pytest.raises(ValidationError):
        cast_public_vote(db.session, round_.id, stranger.id, "voter-a")

    group.is_eliminated = True
    db.session.commit()
    with pytest.raises(ValidationError) as exc:
        cast_public_vote(db.session, round_.id, group.id, "voter-a")
    assert exc.value.key == "vote.invalid_group"


def test_vote_endpoint_keeps_voter_cookie(app, client):
    with app.app_context():
        competition = seed_competition(voting_enabled=True)
        second = competition.rounds[1]
        second.status = "active"
        second.public_votes_per_user = 2
        db.session.commit()
        url = f"/api/rounds/{second.id}/vote"
        payload = {"group_id": add_group(competition, "Harmony").id}

    first = client.post(url, json=payload)
    assert first.status_code == 200
    token = client.get_cookie("voter_id").value

    again = client.post(url, json=payload)
    assert again.get_json() == {"votes_used": 2, "votes_remaining": 0}
    assert client.get_cookie("voter_id").value == token

    assert client.post(url, json=payload).status_code == 400
