import logging

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from admin_auth import admin_action
from errors import ConflictError, NotFoundError, StoreError, ValidationError
from forms import optional_id, parse_int, text
from models import Group, Participant

logger = logging.getLogger(__name__)


def get_participant(session, participant_id):
    participant = session.get(Participant, participant_id)
    if participant is None:
        raise NotFoundError("participant.not_found")
    return participant


def _check_group(session, group_id, competition_id):
    """A participant may only join a group of the competition being edited."""
    if group_id is None:
        return
    group = (session.query(Group.id)
             .filter_by(id=group_id, competition_id=parse_int(competition_id))
             .first())
    if group is None:
        logger.warning("Rejected group %s for competition %s", group_id, competition_id)
        raise ValidationError("participant.invalid_group", group_id=group_id)


def _participant_fields(form):
    data = {
        "name": text(form, "name"),
        "photo_url": text(form, "photo_url"),
        "group_id": optional_id(form, "group_id"),
    }
    if not data["name"]:
        raise ValidationError("participant.name_required")
    return data


def list_participants(session, group_id=None, competition_id=None):
    """
    All participants ordered by name. With group_id only that group's members;
    with competition_id the members of the competition's groups plus every
    participant not yet assigned to a group.
    """
    query = session.query(Participant).order_by(Participant.name, Participant.id)

    if group_id is not None:
        query = query.filter(Participant.group_id == group_id)
    elif competition_id is not None:
        group_ids = session.query(Group.id).filter(Group.competition_id == competition_id)
        query = query.filter(or_(Participant.group_id.is_(None), Participant.group_id.in_(group_ids)))

    return query.all()


@admin_action
def create_participant(session, form, competition_id):
    data = _participant_fields(form)
    _check_group(session, data["group_id"], competition_id)

    try:
        participant = Participant(**data)
        session.add(participant)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error creating participant %r", data["name"])
        raise StoreError("participant.create_failed")
    return participant


@admin_action
def update_participant(session, participant_id, form, competition_id):
    participant = get_participant(session, participant_id)
    data = _participant_fields(form)
    _check_group(session, data["group_id"], competition_id)

    try:
        for key, value in data.items():
            setattr(participant, key, value)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error updating participant %s", participant_id)
        raise StoreError("participant.update_failed")
    return participant


@admin_action
def delete_participant(session, participant_id):
    participant = get_participant(session, participant_id)

    if session.query(Group.id).filter_by(leader_id=participant.id).first():
        raise ConflictError("participant.is_leader")

    try:
        session.delete(participant)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error deleting participant %s", participant_id)
        raise StoreError("participant.delete_failed")


@admin_action
def assign_participant_to_group(session, participant_id, group_id, competition_id):
    participant = get_participant(session, participant_id)
    group_id = parse_int(group_id) if group_id not in (None, "", "none") else None
    _check_group(session, group_id, competition_id)

    try:
        participant.group_id = group_id
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error assigning participant %s to group %s", participant_id, group_id)
        raise StoreError("participant.assign_failed")
    return participant


@admin_action
def bulk_create_participants(session, rows, competition_id):
    """Insert unassigned participants; all rows or none."""
    if not rows:
        raise ValidationError("participant.list_empty")
    for row in rows:
        if not (row.get("name") or "").strip():
            raise ValidationError("participant.all_need_names")

    try:
        participants = [
            Participant(name=row["name"].strip(), photo_url=row.get("photo_url") or None, group_id=None)
            for row in rows
        ]
        session.add_all(participants)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error bulk creating %d participants for competition %s", len(rows), competition_id)
        raise StoreError("participant.bulk_failed")
    return participants
