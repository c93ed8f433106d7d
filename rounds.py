import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from admin_auth import admin_action
from errors import DuplicateError, NotFoundError, StoreError, ValidationError
from forms import int_field, parse_bool, text
from models import ROUND_STATUSES, Competition, Round, utcnow

logger = logging.getLogger(__name__)


def get_round(session, round_id, competition_id=None):
    round_ = session.get(Round, round_id)
    if round_ is None or (competition_id is not None and round_.competition_id != int(competition_id)):
        raise NotFoundError("round.not_found")
    return round_


def _round_fields(form, current_status=None):
    data = {
        "round_number": int_field(form, "round_number"),
        "name": text(form, "name"),
        "name_en": text(form, "name_en"),
        "description": text(form, "description"),
        "elimination_count": int_field(form, "elimination_count", 0) or 0,
        "is_public_voting": parse_bool(form, "is_public_voting"),
        "public_votes_per_user": int_field(form, "public_votes_per_user", 5) or 5,
        "status": text(form, "status") or current_status or "pending",
    }

    if not data["name"]:
        raise ValidationError("round.name_required")
    if data["round_number"] is None or data["round_number"] <= 0:
        raise ValidationError("round.number_positive")
    if data["status"] not in ROUND_STATUSES:
        raise ValidationError("round.invalid_status")
    # Activation has to go through start_round so the other rounds get completed
    if data["status"] == "active" and current_status != "active":
        raise ValidationError("round.activate_via_start")
    if data["elimination_count"] < 0:
        data["elimination_count"] = 0
    return data


def _check_round_number(session, competition, round_number, exclude_id=None):
    if round_number > competition.total_rounds:
        raise ValidationError("round.number_exceeds_total")

    query = session.query(Round.id).filter_by(competition_id=competition.id, round_number=round_number)
    if exclude_id is not None:
        query = query.filter(Round.id != exclude_id)
    if query.first():
        raise DuplicateError("round.number_exists")


def list_rounds(session, competition_id):
    return (session.query(Round)
            .filter_by(competition_id=competition_id)
            .order_by(Round.round_number)
            .all())


@admin_action
def create_round(session, form):
    competition_id = int_field(form, "competition_id")
    if not competition_id:
        raise ValidationError("round.competition_required")

    data = _round_fields(form)
    competition = session.get(Competition, competition_id)
    if competition is None:
        raise NotFoundError("competition.not_found")
    _check_round_number(session, competition, data["round_number"])

    try:
        round_ = Round(competition_id=competition.id, **data)
        session.add(round_)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error creating round %s for competition %s", data["round_number"], competition_id)
        raise StoreError("round.create_failed")
    return round_


@admin_action
def update_round(session, round_id, form):
    round_ = get_round(session, round_id)
    data = _round_fields(form, current_status=round_.status)
    _check_round_number(session, round_.competition, data["round_number"], exclude_id=round_.id)

    try:
        for key, value in data.items():
            setattr(round_, key, value)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error updating round %s", round_id)
        raise StoreError("round.update_failed")
    return round_


@admin_action
def delete_round(session, round_id):
    round_ = get_round(session, round_id)
    try:
        session.delete(round_)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error deleting round %s", round_id)
        raise StoreError("round.delete_failed")


def activate_round(session, competition, round_, now=None):
    """
    Complete every other active round of the competition, activate round_ and
    stamp the competition's current_round. Does not commit.
    """
    now = now or utcnow()
    (session.query(Round)
     .filter(Round.competition_id == competition.id,
             Round.status == "active",
             Round.id != round_.id)
     .update({Round.status: "completed", Round.end_time: func.coalesce(Round.end_time, now)},
             synchronize_session="fetch"))

    round_.status = "active"
    round_.start_time = now
    round_.end_time = None
    competition.current_round = round_.round_number
    competition.updated_at = now
    session.flush()


@admin_action
def start_round(session, round_id, competition_id=None):
    round_ = get_round(session, round_id, competition_id)
    competition = (session.query(Competition)
                   .filter_by(id=round_.competition_id)
                   .with_for_update()
                   .one())
    if round_.round_number > competition.total_rounds:
        raise ValidationError("round.number_exceeds_total")

    try:
        activate_round(session, competition, round_)
        session.commit()
    except SQLAlchemyError:
        # Includes losing a race against a concurrent start on uq_round_one_active
        session.rollback()
        logger.exception("Error starting round %s", round_id)
        raise StoreError("round.start_failed")

    logger.info("Started round %s of competition %s", round_.round_number, competition.id)
    return round_


@admin_action
def end_round(session, round_id, competition_id=None):
    round_ = get_round(session, round_id, competition_id)
    try:
        round_.status = "completed"
        round_.end_time = utcnow()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error ending round %s", round_id)
        raise StoreError("round.end_failed")
    return round_


@admin_action
def update_round_status(session, round_id, status, competition_id=None):
    if status not in ROUND_STATUSES:
        raise ValidationError("round.invalid_status")
    if status == "active":
        return start_round(session, round_id, competition_id)

    round_ = get_round(session, round_id, competition_id)
    try:
        round_.status = status
        if status == "completed" and round_.end_time is None:
            round_.end_time = utcnow()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error updating round status %s", round_id)
        raise StoreError("round.status_failed")
    return round_
