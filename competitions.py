import logging

from sqlalchemy.exc import SQLAlchemyError

from admin_auth import admin_action
from errors import NotFoundError, StoreError, ValidationError
from forms import int_field, parse_bool, text
from models import COMPETITION_STATUSES, Competition, Round, ScoringFactor, utcnow

logger = logging.getLogger(__name__)

# Seeded for every new competition
DEFAULT_SCORING_FACTORS = [
    {"name": "創意", "name_en": "Creativity", "max_score": 10, "weight": 1.0, "order_index": 1},
    {"name": "默契", "name_en": "Teamwork", "max_score": 10, "weight": 1.0, "order_index": 2},
    {"name": "氣氛", "name_en": "Atmosphere", "max_score": 10, "weight": 1.0, "order_index": 3},
    {"name": "演繹", "name_en": "Performance", "max_score": 10, "weight": 1.0, "order_index": 4},
    {"name": "演唱", "name_en": "Singing", "max_score": 10, "weight": 1.0, "order_index": 5},
]

# Truncated to total_rounds on creation
DEFAULT_ROUNDS = [
    {
        "round_number": 1,
        "name": "第一回合",
        "name_en": "Round 1",
        "description": "初賽回合",
        "is_public_voting": False,
        "status": "pending",
    },
    {
        "round_number": 2,
        "name": "第二回合",
        "name_en": "Round 2",
        "description": "決賽回合",
        "is_public_voting": True,
        "public_votes_per_user": 5,
        "status": "pending",
    },
]


def _competition_fields(form):
    data = {
        "name": text(form, "name"),
        "name_en": text(form, "name_en"),
        "description": text(form, "description"),
        "status": text(form, "status") or "draft",
        "current_round": int_field(form, "current_round", 1),
        "total_rounds": int_field(form, "total_rounds", 2),
        "voting_enabled": parse_bool(form, "voting_enabled"),
        "display_mode": text(form, "display_mode") or "ranking",
    }

    if not data["name"]:
        raise ValidationError("competition.name_required")
    if data["status"] not in COMPETITION_STATUSES:
        raise ValidationError("competition.invalid_status")
    if data["total_rounds"] < 1:
        raise ValidationError("competition.total_rounds_invalid")
    if data["current_round"] > data["total_rounds"]:
        raise ValidationError("competition.round_exceeds_total")
    return data


def get_competition(session, competition_id):
    competition = session.get(Competition, competition_id)
    if competition is None:
        raise NotFoundError("competition.not_found")
    return competition


def list_competitions(session, status=None):
    query = session.query(Competition)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Competition.created_at.desc(), Competition.id.desc()).all()


@admin_action
def create_competition(session, form):
    """
    Insert a competition together with its default scoring factors and
    rounds. The three inserts share one transaction.
    """
    data = _competition_fields(form)

    try:
        competition = Competition(**data)
        session.add(competition)
        session.flush()

        for factor in DEFAULT_SCORING_FACTORS:
            session.add(ScoringFactor(competition_id=competition.id, **factor))

        for template in DEFAULT_ROUNDS[:competition.total_rounds]:
            session.add(Round(competition_id=competition.id, **template))

        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error creating competition %r", data["name"])
        raise StoreError("competition.create_failed")

    logger.info("Created competition %s (%s)", competition.id, competition.name)
    return competition


@admin_action
def update_competition(session, competition_id, form):
    competition = get_competition(session, competition_id)
    data = _competition_fields(form)

    try:
        for key, value in data.items():
            setattr(competition, key, value)
        competition.updated_at = utcnow()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error updating competition %s", competition_id)
        raise StoreError("competition.update_failed")
    return competition


@admin_action
def delete_competition(session, competition_id):
    competition = get_competition(session, competition_id)
    try:
        session.delete(competition)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error deleting competition %s", competition_id)
        raise StoreError("competition.delete_failed")
    logger.info("Deleted competition %s", competition_id)


@admin_action
def update_competition_status(session, competition_id, status):
    if status not in COMPETITION_STATUSES:
        raise ValidationError("competition.invalid_status")

    competition = get_competition(session, competition_id)
    try:
        competition.status = status
        competition.updated_at = utcnow()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error updating competition status %s", competition_id)
        raise StoreError("competition.status_failed")
    return competition
