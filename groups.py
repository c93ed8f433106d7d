import logging

from sqlalchemy.exc import SQLAlchemyError

from admin_auth import admin_action
from errors import ConflictError, DuplicateError, NotFoundError, StoreError, ValidationError
from forms import int_field, optional_id, parse_bool, parse_int, text
from models import Competition, Group, Participant, utcnow

logger = logging.getLogger(__name__)


def get_group(session, group_id, competition_id=None):
    group = session.get(Group, group_id)
    if group is None or (competition_id is not None and group.competition_id != int(competition_id)):
        raise NotFoundError("group.not_found")
    return group


def list_groups(session, competition_id, include_eliminated=True):
    query = session.query(Group).filter_by(competition_id=competition_id)
    if not include_eliminated:
        query = query.filter_by(is_eliminated=False)
    return query.order_by(Group.name).all()


def _group_fields(form):
    is_eliminated = parse_bool(form, "is_eliminated")
    data = {
        "name": text(form, "name"),
        "photo_url": text(form, "photo_url"),
        "leader_id": optional_id(form, "leader_id"),
        "is_eliminated": is_eliminated,
        "elimination_round": int_field(form, "elimination_round") if is_eliminated else None,
    }
    if not data["name"]:
        raise ValidationError("group.name_required")
    return data


def _check_name_available(session, competition_id, name, exclude_id=None):
    query = session.query(Group.id).filter_by(competition_id=competition_id, name=name)
    if exclude_id is not None:
        query = query.filter(Group.id != exclude_id)
    if query.first():
        raise DuplicateError("group.name_exists")


def _check_leader(session, leader_id, group_id=None):
    """A leader must be unassigned or already a member of the group."""
    if leader_id is None:
        return
    participant = session.get(Participant, leader_id)
    if participant is None or participant.group_id not in (None, group_id):
        raise ValidationError("group.invalid_leader")


@admin_action
def create_group(session, form):
    competition_id = int_field(form, "competition_id")
    if not competition_id:
        raise ValidationError("group.competition_required")

    data = _group_fields(form)
    if session.get(Competition, competition_id) is None:
        raise NotFoundError("competition.not_found")
    _check_name_available(session, competition_id, data["name"])
    _check_leader(session, data["leader_id"])

    try:
        group = Group(competition_id=competition_id, **data)
        session.add(group)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error creating group %r", data["name"])
        raise StoreError("group.create_failed")
    return group


@admin_action
def update_group(session, group_id, form):
    group = get_group(session, group_id)
    data = _group_fields(form)
    _check_name_available(session, group.competition_id, data["name"], exclude_id=group.id)
    _check_leader(session, data["leader_id"], group.id)

    try:
        for key, value in data.items():
            setattr(group, key, value)
        group.updated_at = utcnow()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error updating group %s", group_id)
        raise StoreError("group.update_failed")
    return group


@admin_action
def delete_group(session, group_id):
    group = get_group(session, group_id)

    if session.query(Participant.id).filter_by(group_id=group.id).first():
        raise ConflictError("group.has_participants")

    try:
        session.delete(group)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error deleting group %s", group_id)
        raise StoreError("group.delete_failed")


@admin_action
def eliminate_group(session, group_id, round_number):
    """Mark the group eliminated in the round number the caller gives."""
    round_number = parse_int(round_number, error_key="group.invalid_round")
    if round_number is None or round_number <= 0:
        raise ValidationError("group.invalid_round")

    group = get_group(session, group_id)
    try:
        group.is_eliminated = True
        group.elimination_round = round_number
        group.updated_at = utcnow()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error eliminating group %s", group_id)
        raise StoreError("group.eliminate_failed")

    logger.info("Eliminated group %s in round %s", group_id, round_number)
    return group


@admin_action
def reinstate_group(session, group_id):
    group = get_group(session, group_id)
    try:
        group.is_eliminated = False
        group.elimination_round = None
        group.updated_at = utcnow()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error reinstating group %s", group_id)
        raise StoreError("group.reinstate_failed")
    return group


@admin_action
def update_group_leader(session, group_id, participant_id):
    group = get_group(session, group_id)
    leader_id = parse_int(participant_id) if participant_id not in (None, "", "none") else None
    _check_leader(session, leader_id, group.id)

    try:
        group.leader_id = leader_id
        group.updated_at = utcnow()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error updating leader of group %s", group_id)
        raise StoreError("group.leader_failed")
    return group
