import logging

from sqlalchemy.exc import SQLAlchemyError

from errors import StoreError, ValidationError
from forms import parse_int
from models import Group, PublicVote, Round

logger = logging.getLogger(__name__)


def votes_cast(session, round_id, voter_token):
    return (session.query(PublicVote)
            .filter_by(round_id=round_id, voter_token=voter_token)
            .count())


def cast_public_vote(session, round_id, group_id, voter_token):
    """
    Record one audience vote. The round must be active with public voting on,
    the competition must have voting enabled, and the group must still be in
    the running. Each voter token gets public_votes_per_user votes per round.
    """
    round_ = session.get(Round, parse_int(round_id, field="round_id"))
    if (round_ is None or round_.status != "active" or not round_.is_public_voting
            or not round_.competition.voting_enabled):
        raise ValidationError("vote.round_not_open")

    group = session.get(Group, parse_int(group_id, field="group_id"))
    if group is None or group.competition_id != round_.competition_id or group.is_eliminated:
        raise ValidationError("vote.invalid_group")

    limit = round_.public_votes_per_user
    used = votes_cast(session, round_.id, voter_token)
    if used >= limit:
        raise ValidationError("vote.limit_reached", limit=limit)

    try:
        session.add(PublicVote(round_id=round_.id, group_id=group.id, voter_token=voter_token))
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error casting vote for group %s in round %s", group_id, round_id)
        raise StoreError("vote.failed")

    return {"votes_used": used + 1, "votes_remaining": limit - used - 1}
