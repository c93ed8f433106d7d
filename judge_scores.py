"""
Scoring actions of a signed-in judge.

Callers pass the Judge resolved from the judge_session cookie; a judge can
only score groups of its own competition, only while the round is active,
and only delete its own scores.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from errors import NotFoundError, StoreError, ValidationError
from forms import parse_int, text
from models import Group, JudgeScore, Round, ScoringFactor, utcnow
from scoring import scoring_progress

logger = logging.getLogger(__name__)


def _active_round(session, judge, round_id):
    round_ = session.get(Round, parse_int(round_id, field="round_id"))
    if round_ is None or round_.competition_id != judge.competition_id or round_.status != "active":
        raise ValidationError("score.round_not_active")
    return round_


def _competition_group(session, judge, group_id):
    group = session.get(Group, parse_int(group_id, field="group_id"))
    if group is None or group.competition_id != judge.competition_id:
        raise ValidationError("score.invalid_group")
    return group


def _factor(session, judge, factor_id):
    factor = session.get(ScoringFactor, parse_int(factor_id, field="factor_id"))
    if factor is None or factor.competition_id != judge.competition_id or not factor.is_active:
        raise ValidationError("score.invalid_factor")
    return factor


def _score_value(value, factor):
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise ValidationError("score.invalid_value")
    if score < 0 or score > factor.max_score:
        raise ValidationError("score.out_of_range", max_score=factor.max_score)
    return score


def _upsert(session, judge, group, factor, round_, score, comments):
    existing = (session.query(JudgeScore)
                .filter_by(judge_id=judge.id, group_id=group.id, factor_id=factor.id, round_id=round_.id)
                .first())
    if existing:
        existing.score = score
        existing.comments = comments
        existing.updated_at = utcnow()
        return existing

    record = JudgeScore(judge_id=judge.id, group_id=group.id, factor_id=factor.id,
                        round_id=round_.id, score=score, comments=comments)
    session.add(record)
    return record


def submit_score(session, judge, data):
    round_ = _active_round(session, judge, data.get("round_id"))
    group = _competition_group(session, judge, data.get("group_id"))
    factor = _factor(session, judge, data.get("factor_id"))
    score = _score_value(data.get("score"), factor)

    try:
        record = _upsert(session, judge, group, factor, round_, score, text(data, "comments"))
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error submitting score of judge %s", judge.id)
        raise StoreError("score.submit_failed")
    return record


def submit_batch_scores(session, judge, data):
    """Score several factors of one group at once; every score is saved or none."""
    round_ = _active_round(session, judge, data.get("round_id"))
    group = _competition_group(session, judge, data.get("group_id"))
    entries = data.get("scores") or []
    if not entries:
        raise ValidationError("score.empty_batch")

    prepared = []
    for entry in entries:
        factor = _factor(session, judge, entry.get("factor_id"))
        prepared.append((factor, _score_value(entry.get("score"), factor), text(entry, "comments")))

    try:
        records = [
            _upsert(session, judge, group, factor, round_, score, comments)
            for factor, score, comments in prepared
        ]
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error submitting batch scores of judge %s", judge.id)
        raise StoreError("score.submit_failed")
    return records


def get_judge_scores(session, judge, round_id, group_id=None):
    query = session.query(JudgeScore).filter_by(judge_id=judge.id, round_id=round_id)
    if group_id is not None:
        query = query.filter_by(group_id=group_id)
    return query.order_by(JudgeScore.created_at, JudgeScore.id).all()


def delete_score(session, judge, score_id):
    record = session.get(JudgeScore, score_id)
    if record is None or record.judge_id != judge.id:
        raise NotFoundError("score.not_found")

    try:
        session.delete(record)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error deleting score %s", score_id)
        raise StoreError("score.delete_failed")


def get_scoring_summary(session, judge, round_id):
    groups = (session.query(Group)
              .filter_by(competition_id=judge.competition_id, is_eliminated=False)
              .order_by(Group.name)
              .all())
    factors = (session.query(ScoringFactor)
               .filter_by(competition_id=judge.competition_id, is_active=True)
               .order_by(ScoringFactor.order_index)
               .all())
    scores = session.query(JudgeScore).filter_by(judge_id=judge.id, round_id=round_id).all()

    scores_by_group = {}
    for score in scores:
        scores_by_group.setdefault(score.group_id, []).append(score.to_dict())

    summary = scoring_progress(len(groups), len(factors), len(scores))
    summary.update({
        "scores_by_group": scores_by_group,
        "groups": [g.to_dict() for g in groups],
        "factors": [f.to_dict() for f in factors],
    })
    return summary
