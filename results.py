import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from admin_auth import admin_action
from competitions import get_competition
from errors import NotFoundError, StoreError
from models import Competition, CompetitionResult, Group, JudgeScore, PublicVote, Round, ScoringFactor, utcnow
from rounds import activate_round, get_round
from scoring import aggregate_scores, rank_results, round_total, weighted_judge_score

logger = logging.getLogger(__name__)


def _score_rows_by_group(session, round_id):
    rows = (session.query(JudgeScore.group_id, JudgeScore.judge_id, JudgeScore.score,
                          ScoringFactor.weight, ScoringFactor.max_score)
            .join(ScoringFactor, JudgeScore.factor_id == ScoringFactor.id)
            .filter(JudgeScore.round_id == round_id)
            .all())
    by_group = {}
    for group_id, judge_id, score, weight, max_score in rows:
        by_group.setdefault(group_id, []).append(
            {"judge_id": judge_id, "score": score, "weight": weight, "max_score": max_score}
        )
    return by_group


def _vote_counts(session, round_id):
    rows = (session.query(PublicVote.group_id, func.count(PublicVote.id))
            .filter(PublicVote.round_id == round_id)
            .group_by(PublicVote.group_id)
            .all())
    return dict(rows)


@admin_action
def calculate_round_results(session, competition_id, round_id):
    """
    Rank every non-eliminated group of the competition for one round and
    replace the round's stored results. Groups below the round's elimination
    cut are eliminated with the round's number. One transaction.
    """
    round_ = get_round(session, round_id, competition_id)
    groups = (session.query(Group)
              .filter_by(competition_id=round_.competition_id, is_eliminated=False)
              .all())

    scores = _score_rows_by_group(session, round_.id)
    votes = _vote_counts(session, round_.id)

    results = []
    for group in groups:
        judge_score = weighted_judge_score(scores.get(group.id, []))
        public_votes = votes.get(group.id, 0)
        results.append({
            "group_id": group.id,
            "judge_score": judge_score,
            "public_votes": public_votes,
            "total_score": round_total(judge_score, public_votes),
        })
    results = rank_results(results, round_.elimination_count)

    eliminated = {r["group_id"] for r in results if not r["is_qualified"]}
    try:
        session.query(CompetitionResult).filter_by(round_id=round_.id).delete(synchronize_session=False)
        session.add_all(
            CompetitionResult(competition_id=round_.competition_id, round_id=round_.id, **result)
            for result in results
        )
        for group in groups:
            if group.id in eliminated:
                group.is_eliminated = True
                group.elimination_round = round_.round_number
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error calculating results of round %s", round_id)
        raise StoreError("results.calculate_failed")

    logger.info("Calculated round %s results: %d groups, %d eliminated",
                round_.id, len(results), len(eliminated))
    return results


def get_round_results(session, competition_id, round_id):
    return (session.query(CompetitionResult)
            .filter_by(competition_id=competition_id, round_id=round_id)
            .order_by(CompetitionResult.rank)
            .all())


def get_competition_summary(session, competition_id):
    competition = get_competition(session, competition_id)
    rows = (session.query(CompetitionResult, Round.round_number)
            .join(Round, CompetitionResult.round_id == Round.id)
            .filter(CompetitionResult.competition_id == competition.id)
            .order_by(Round.round_number, CompetitionResult.rank)
            .all())

    results_by_round = {}
    flat = []
    for result, round_number in rows:
        results_by_round.setdefault(result.round_id, []).append(result.to_dict())
        flat.append(dict(result.to_dict(), round_number=round_number))

    groups = {g.id: g.to_dict() for g in competition.groups}
    aggregate = aggregate_scores(flat)
    for entry in aggregate:
        entry["group"] = groups.get(entry["group_id"])

    return {
        "rounds": [r.to_dict() for r in competition.rounds],
        "results_by_round": results_by_round,
        "aggregate_scores": aggregate,
    }


@admin_action
def advance_to_next_round(session, competition_id, current_round_id):
    """
    Complete the current round and activate the next one. When there is no
    next round the competition itself is marked completed.
    """
    competition = (session.query(Competition)
                   .filter_by(id=competition_id)
                   .with_for_update()
                   .first())
    if competition is None:
        raise NotFoundError("competition.not_found")
    current = get_round(session, current_round_id, competition.id)

    next_number = current.round_number + 1
    try:
        if next_number > competition.total_rounds:
            current.status = "completed"
            current.end_time = current.end_time or utcnow()
            competition.status = "completed"
            session.commit()
            logger.info("Competition %s completed", competition.id)
            return {"is_complete": True}

        next_round = (session.query(Round)
                      .filter_by(competition_id=competition.id, round_number=next_number)
                      .first())
        if next_round is None:
            raise NotFoundError("round.no_next_round")

        activate_round(session, competition, next_round)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error advancing competition %s past round %s", competition_id, current_round_id)
        raise StoreError("round.advance_failed")

    return {"is_complete": False, "next_round": next_number}


def get_led_screen_data(session):
    """Active competitions and the ranked results of each one's current round."""
    competitions = (session.query(Competition)
                    .filter_by(status="active")
                    .order_by(Competition.created_at.desc(), Competition.id.desc())
                    .all())

    results = []
    for competition in competitions:
        rows = (session.query(CompetitionResult, Group, Round)
                .join(Group, CompetitionResult.group_id == Group.id)
                .join(Round, CompetitionResult.round_id == Round.id)
                .filter(CompetitionResult.competition_id == competition.id,
                        Round.round_number == competition.current_round)
                .order_by(CompetitionResult.rank)
                .all())
        for result, group, round_ in rows:
            entry = result.to_dict()
            entry["group"] = {"name": group.name, "photo_url": group.photo_url}
            entry["round"] = {"name": round_.name, "round_number": round_.round_number,
                              "status": round_.status}
            results.append(entry)

    return {
        "competitions": [c.to_dict() for c in competitions],
        "results": results,
    }
