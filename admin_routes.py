from flask import Blueprint, current_app, jsonify, request

import competitions as competition_actions
import groups as group_actions
import judges as judge_actions
import participants as participant_actions
import results as result_actions
import rounds as round_actions
from admin_auth import require_admin_access
from models import db
from storage import get_photo_storage

admin = Blueprint("admin", __name__, url_prefix="/admin")


def _payload():
    return request.get_json(silent=True) or request.form


@admin.before_request
def require_admin():
    # Page-level gate; every action handler checks the allow-list again
    require_admin_access(db.session)


# -------------------------------------------------------
# ADMIN: WHO AM I
# -------------------------------------------------------
@admin.route("/me")
def me():
    profile = require_admin_access(db.session)
    return jsonify(profile.to_dict())


# -------------------------------------------------------
# COMPETITIONS
# -------------------------------------------------------
@admin.route("/competitions", methods=["GET"])
def list_competitions():
    items = competition_actions.list_competitions(db.session, request.args.get("status"))
    return jsonify([c.to_dict() for c in items])


@admin.route("/competitions", methods=["POST"])
def create_competition():
    competition = competition_actions.create_competition(db.session, _payload())
    return jsonify(competition.to_dict()), 201


@admin.route("/competitions/<int:competition_id>", methods=["GET"])
def get_competition(competition_id):
    competition = competition_actions.get_competition(db.session, competition_id)
    data = competition.to_dict()
    data["rounds"] = [r.to_dict() for r in competition.rounds]
    data["scoring_factors"] = [f.to_dict() for f in competition.scoring_factors]
    return jsonify(data)


@admin.route("/competitions/<int:competition_id>", methods=["PUT", "POST"])
def update_competition(competition_id):
    competition = competition_actions.update_competition(db.session, competition_id, _payload())
    return jsonify(competition.to_dict())


@admin.route("/competitions/<int:competition_id>", methods=["DELETE"])
def delete_competition(competition_id):
    competition_actions.delete_competition(db.session, competition_id)
    return jsonify({"success": True})


@admin.route("/competitions/<int:competition_id>/status", methods=["POST"])
def update_competition_status(competition_id):
    status = _payload().get("status")
    competition = competition_actions.update_competition_status(db.session, competition_id, status)
    return jsonify(competition.to_dict())


@admin.route("/competitions/<int:competition_id>/summary")
def competition_summary(competition_id):
    return jsonify(result_actions.get_competition_summary(db.session, competition_id))


# -------------------------------------------------------
# ROUNDS
# -------------------------------------------------------
@admin.route("/competitions/<int:competition_id>/rounds", methods=["GET"])
def list_rounds(competition_id):
    return jsonify([r.to_dict() for r in round_actions.list_rounds(db.session, competition_id)])


@admin.route("/rounds", methods=["POST"])
def create_round():
    round_ = round_actions.create_round(db.session, _payload())
    return jsonify(round_.to_dict()), 201


@admin.route("/rounds/<int:round_id>", methods=["PUT", "POST"])
def update_round(round_id):
    round_ = round_actions.update_round(db.session, round_id, _payload())
    return jsonify(round_.to_dict())


@admin.route("/rounds/<int:round_id>", methods=["DELETE"])
def delete_round(round_id):
    round_actions.delete_round(db.session, round_id)
    return jsonify({"success": True})


@admin.route("/competitions/<int:competition_id>/rounds/<int:round_id>/start", methods=["POST"])
def start_round(competition_id, round_id):
    round_ = round_actions.start_round(db.session, round_id, competition_id)
    return jsonify(round_.to_dict())


@admin.route("/competitions/<int:competition_id>/rounds/<int:round_id>/end", methods=["POST"])
def end_round(competition_id, round_id):
    round_ = round_actions.end_round(db.session, round_id, competition_id)
    return jsonify(round_.to_dict())


@admin.route("/competitions/<int:competition_id>/rounds/<int:round_id>/status", methods=["POST"])
def update_round_status(competition_id, round_id):
    status = _payload().get("status")
    round_ = round_actions.update_round_status(db.session, round_id, status, competition_id)
    return jsonify(round_.to_dict())


@admin.route("/competitions/<int:competition_id>/rounds/<int:round_id>/results", methods=["POST"])
def calculate_results(competition_id, round_id):
    results = result_actions.calculate_round_results(db.session, competition_id, round_id)
    return jsonify({"results": results})


@admin.route("/competitions/<int:competition_id>/rounds/<int:round_id>/results", methods=["GET"])
def round_results(competition_id, round_id):
    results = result_actions.get_round_results(db.session, competition_id, round_id)
    return jsonify([r.to_dict() for r in results])


@admin.route("/competitions/<int:competition_id>/rounds/<int:round_id>/advance", methods=["POST"])
def advance_round(competition_id, round_id):
    return jsonify(result_actions.advance_to_next_round(db.session, competition_id, round_id))


# -------------------------------------------------------
# GROUPS
# -------------------------------------------------------
@admin.route("/competitions/<int:competition_id>/groups", methods=["GET"])
def list_groups(competition_id):
    include_eliminated = request.args.get("include_eliminated", "true").lower() != "false"
    items = group_actions.list_groups(db.session, competition_id, include_eliminated)
    return jsonify([g.to_dict() for g in items])


@admin.route("/groups", methods=["POST"])
def create_group():
    group = group_actions.create_group(db.session, _payload())
    return jsonify(group.to_dict()), 201


@admin.route("/groups/<int:group_id>", methods=["PUT", "POST"])
def update_group(group_id):
    group = group_actions.update_group(db.session, group_id, _payload())
    return jsonify(group.to_dict())


@admin.route("/groups/<int:group_id>", methods=["DELETE"])
def delete_group(group_id):
    group_actions.delete_group(db.session, group_id)
    return jsonify({"success": True})


@admin.route("/groups/<int:group_id>/eliminate", methods=["POST"])
def eliminate_group(group_id):
    group = group_actions.eliminate_group(db.session, group_id, _payload().get("round_number"))
    return jsonify(group.to_dict())


@admin.route("/groups/<int:group_id>/reinstate", methods=["POST"])
def reinstate_group(group_id):
    group = group_actions.reinstate_group(db.session, group_id)
    return jsonify(group.to_dict())


@admin.route("/groups/<int:group_id>/leader", methods=["POST"])
def update_group_leader(group_id):
    group = group_actions.update_group_leader(db.session, group_id, _payload().get("participant_id"))
    return jsonify(group.to_dict())


# -------------------------------------------------------
# PARTICIPANTS
# -------------------------------------------------------
@admin.route("/competitions/<int:competition_id>/participants", methods=["POST"])
def create_participant(competition_id):
    participant = participant_actions.create_participant(db.session, _payload(), competition_id)
    return jsonify(participant.to_dict()), 201


@admin.route("/competitions/<int:competition_id>/participants/bulk", methods=["POST"])
def bulk_create_participants(competition_id):
    rows = _payload().get("participants") or []
    created = participant_actions.bulk_create_participants(db.session, rows, competition_id)
    return jsonify([p.to_dict() for p in created]), 201


@admin.route("/competitions/<int:competition_id>/participants/<int:participant_id>", methods=["PUT", "POST"])
def update_participant(competition_id, participant_id):
    participant = participant_actions.update_participant(db.session, participant_id, _payload(), competition_id)
    return jsonify(participant.to_dict())


@admin.route("/competitions/<int:competition_id>/participants/<int:participant_id>/group", methods=["POST"])
def assign_participant(competition_id, participant_id):
    participant = participant_actions.assign_participant_to_group(
        db.session, participant_id, _payload().get("group_id"), competition_id
    )
    return jsonify(participant.to_dict())


@admin.route("/participants/<int:participant_id>", methods=["DELETE"])
def delete_participant(participant_id):
    participant_actions.delete_participant(db.session, participant_id)
    return jsonify({"success": True})


# -------------------------------------------------------
# JUDGES
# -------------------------------------------------------
@admin.route("/competitions/<int:competition_id>/judges", methods=["GET"])
def list_judges(competition_id):
    return jsonify([j.to_dict() for j in judge_actions.list_judges(db.session, competition_id)])


@admin.route("/judges", methods=["POST"])
def create_judge():
    judge = judge_actions.create_judge(db.session, _payload())
    return jsonify(judge.to_dict()), 201


@admin.route("/competitions/<int:competition_id>/judges/bulk", methods=["POST"])
def bulk_create_judges(competition_id):
    rows = _payload().get("judges") or []
    created = judge_actions.bulk_create_judges(db.session, rows, competition_id)
    return jsonify([j.to_dict() for j in created]), 201


@admin.route("/judges/<int:judge_id>", methods=["PUT", "POST"])
def update_judge(judge_id):
    judge = judge_actions.update_judge(db.session, judge_id, _payload())
    return jsonify(judge.to_dict())


@admin.route("/judges/<int:judge_id>", methods=["DELETE"])
def delete_judge(judge_id):
    judge_actions.delete_judge(db.session, judge_id)
    return jsonify({"success": True})


@admin.route("/judges/<int:judge_id>/toggle", methods=["POST"])
def toggle_judge(judge_id):
    judge = judge_actions.toggle_judge_status(db.session, judge_id)
    return jsonify(judge.to_dict())


# -------------------------------------------------------
# PHOTO UPLOADS
# -------------------------------------------------------
@admin.route("/uploads", methods=["POST"])
def upload_photo():
    storage = get_photo_storage(current_app)
    url = storage.upload(request.files.get("file"), request.form.get("folder") or "photos")
    return jsonify({"url": url}), 201


@admin.route("/uploads", methods=["DELETE"])
def delete_photo():
    storage = get_photo_storage(current_app)
    storage.delete(_payload().get("url"))
    return jsonify({"success": True})
