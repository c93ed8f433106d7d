import secrets

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from forms import parse_int
from i18n import translate
from models import db
from participants import list_participants
from results import get_competition_summary, get_led_screen_data, get_round_results
from voting import cast_public_vote

public = Blueprint("public", __name__)

VOTER_COOKIE = "voter_id"
VOTER_COOKIE_MAX_AGE = 30 * 24 * 60 * 60


@public.route("/api/participants")
def participants():
    """Participants filtered by ?group_id= or ?competition_id=."""
    group_id = parse_int(request.args.get("group_id"), field="group_id")
    competition_id = parse_int(request.args.get("competition_id"), field="competition_id")
    try:
        items = list_participants(db.session, group_id=group_id, competition_id=competition_id)
    except SQLAlchemyError:
        current_app.logger.exception("Error fetching participants")
        return jsonify({"error": translate("participant.list_failed")}), 500
    return jsonify([p.to_dict() for p in items])


@public.route("/api/led")
def led_screen():
    return jsonify(get_led_screen_data(db.session))


@public.route("/api/competitions/<int:competition_id>/rounds/<int:round_id>/results")
def round_results(competition_id, round_id):
    results = get_round_results(db.session, competition_id, round_id)
    return jsonify([r.to_dict() for r in results])


@public.route("/api/competitions/<int:competition_id>/summary")
def competition_summary(competition_id):
    return jsonify(get_competition_summary(db.session, competition_id))


@public.route("/api/rounds/<int:round_id>/vote", methods=["POST"])
def vote(round_id):
    data = request.get_json(silent=True) or request.form
    voter_token = request.cookies.get(VOTER_COOKIE) or secrets.token_urlsafe(16)

    outcome = cast_public_vote(db.session, round_id, data.get("group_id"), voter_token)

    response = jsonify(outcome)
    response.set_cookie(VOTER_COOKIE, voter_token, max_age=VOTER_COOKIE_MAX_AGE,
                        httponly=True, samesite="Lax",
                        secure=current_app.config.get("JUDGE_COOKIE_SECURE", False))
    return response
