import pytest

from conftest import add_group, add_judge
from errors import NotFoundError
from models import CompetitionResult, JudgeScore, PublicVote, Round
from results import (
    advance_to_next_round,
    calculate_round_results,
    get_competition_summary,
    get_led_screen_data,
    get_round_results,
)
from rounds import start_round


@pytest.fixture
def scored_round(admin_session, competition):
    """Round 1 active, eliminating one of three groups; one judge scored everyone."""
    first = competition.rounds[0]
    first.elimination_count = 1
    competition.status = "active"
    admin_session.commit()
    start_round(admin_session, first.id)

    judge = add_judge(competition)
    groups = [add_group(competition, name) for name in ("Harmony", "Echo", "Tempo")]
    for group, score in zip(groups, (9, 6, 3)):
        for factor in competition.scoring_factors:
            admin_session.add(JudgeScore(judge_id=judge.id, group_id=group.id, factor_id=factor.id,
                                         round_id=first.id, score=score))
    admin_session.commit()
    return competition, first, groups


def test_results_rank_and_eliminate(admin_session, scored_round):
    competition, first, (harmony, echo, tempo) = scored_round

    results = calculate_round_results(admin_session, competition.id, first.id)

    assert [r["group_id"] for r in results] == [harmony.id, echo.id, tempo.id]
    assert results[0]["judge_score"] == pytest.approx(9.0)
    assert [r["is_qualified"] for r in results] == [True, True, False]
    assert tempo.is_eliminated is True
    assert tempo.elimination_round == 1
    assert echo.is_eliminated is False


def test_public_votes_change_the_order(admin_session, scored_round):
    competition, first, (harmony, echo, tempo) = scored_round
    admin_session.add_all(PublicVote(round_id=first.id, group_id=echo.id, voter_token=f"v{i}")
                          for i in range(31))
    admin_session.commit()

    results = calculate_round_results(admin_session, competition.id, first.id)

    assert results[0]["group_id"] == echo.id
    assert results[0]["public_votes"] == 31
    assert results[0]["total_score"] == pytest.approx(9.1)


def test_recalculating_replaces_results(admin_session, scored_round):
    competition, first, _ = scored_round
    calculate_round_results(admin_session, competition.id, first.id)
    calculate_round_results(admin_session, competition.id, first.id)

    # The eliminated group no longer takes part in the second calculation
    assert admin_session.query(CompetitionResult).filter_by(round_id=first.id).count() == 2
    stored = get_round_results(admin_session, competition.id, first.id)
    assert [r.rank for r in stored] == [1, 2]


def test_advance_to_next_round_then_finish(admin_session, scored_round):
    competition, first, _ = scored_round
    second = competition.rounds[1]

    outcome = advance_to_next_round(admin_session, competition.id, first.id)

    admin_session.refresh(first)
    assert outcome == {"is_complete": False, "next_round": 2}
    assert first.status == "completed"
    assert second.status == "active"
    assert competition.current_round == 2

    outcome = advance_to_next_round(admin_session, competition.id, second.id)
    assert outcome == {"is_complete": True}
    assert second.status == "completed"
    assert second.end_time is not None
    assert competition.status == "completed"


def test_advance_needs_next_round_row(admin_session, scored_round):
    competition, first, _ = scored_round
    admin_session.delete(competition.rounds[1])
    admin_session.commit()

    with pytest.raises(NotFoundError):
        advance_to_next_round(admin_session, competition.id, first.id)
    assert admin_session.get(Round, first.id).status == "active"


def test_summary_and_led_screen(admin_session, scored_round):
    competition, first, (harmony, _, _) = scored_round
    calculate_round_results(admin_session, competition.id, first.id)

    summary = get_competition_summary(admin_session, competition.id)
    assert list(summary["results_by_round"]) == [first.id]
    assert summary["aggregate_scores"][0]["group_id"] == harmony.id
    assert summary["aggregate_scores"][0]["group"]["name"] == "Harmony"

    screen = get_led_screen_data(admin_session)
    assert [c["id"] for c in screen["competitions"]] == [competition.id]
    assert [r["rank"] for r in screen["results"]] == [1, 2, 3]
    assert screen["results"][0]["group"]["name"] == "Harmony"


def test_results_routes(admin_client):
    competition = admin_client.post("/admin/competitions", json={"name": "Spring"}).get_json()
    rounds = admin_client.get(f"/admin/competitions/{competition['id']}/rounds").get_json()
    base = f"/admin/competitions/{competition['id']}/rounds/{rounds[0]['id']}"

    assert admin_client.post(f"{base}/start").status_code == 200
    assert admin_client.post(f"{base}/results").get_json() == {"results": []}
    response = admin_client.post(f"{base}/advance")
    assert response.get_json() == {"is_complete": False, "next_round": 2}

    response = admin_client.get(f"/api/competitions/{competition['id']}/summary")
    assert response.status_code == 200
    assert admin_client.get("/api/led").status_code == 200
