from flask import Blueprint, current_app, g, jsonify, request

import judge_auth
import judge_scores
from errors import StoreError
from forms import parse_int
from models import Competition, Round, db

judge = Blueprint("judge", __name__)


def _payload():
    return request.get_json(silent=True) or request.form


# ---------------------------------------
# SIGN IN / OUT
# ---------------------------------------
@judge.route("/judge/login", methods=["GET"])
def login_page():
    competitions = (Competition.query
                    .filter(Competition.status != "completed")
                    .order_by(Competition.created_at.desc())
                    .all())
    return jsonify({"competitions": [{"id": c.id, "name": c.name, "name_en": c.name_en}
                                     for c in competitions]})


@judge.route("/judge/login", methods=["POST"])
def login():
    data = _payload()
    token, signed_in = judge_auth.login(
        db.session, data.get("name"), data.get("password"), data.get("competition_id")
    )
    response = jsonify({"success": True, "judge": signed_in.to_dict()})
    return judge_auth.set_session_cookie(response, token)


@judge.route("/api/judge/logout", methods=["POST"])
def logout():
    token = request.cookies.get(judge_auth.SESSION_COOKIE)
    try:
        judge_auth.logout(db.session, token)
    except StoreError:
        current_app.logger.warning("Judge session row not removed; clearing the cookie anyway")
    return judge_auth.clear_session_cookie(jsonify({"success": True}))


# ---------------------------------------
# DASHBOARD
# ---------------------------------------
@judge.route("/judge")
@judge_auth.judge_required
def dashboard():
    competition = g.judge.competition
    active_round = (Round.query
                    .filter_by(competition_id=competition.id, status="active")
                    .first())
    return jsonify({
        "judge": g.judge.to_dict(),
        "competition": competition.to_dict(),
        "active_round": active_round.to_dict() if active_round else None,
    })


@judge.route("/judge/rounds/<int:round_id>/summary")
@judge_auth.judge_required
def scoring_summary(round_id):
    return jsonify(judge_scores.get_scoring_summary(db.session, g.judge, round_id))


# ---------------------------------------
# SCORES
# ---------------------------------------
@judge.route("/judge/rounds/<int:round_id>/scores")
@judge_auth.judge_required
def list_scores(round_id):
    group_id = parse_int(request.args.get("group_id"), field="group_id")
    scores = judge_scores.get_judge_scores(db.session, g.judge, round_id, group_id)
    return jsonify([s.to_dict() for s in scores])


@judge.route("/judge/scores", methods=["POST"])
@judge_auth.judge_required
def submit_score():
    record = judge_scores.submit_score(db.session, g.judge, _payload())
    current_app.logger.info("Judge %s scored group %s", g.judge.id, record.group_id)
    return jsonify(record.to_dict())


@judge.route("/judge/scores/batch", methods=["POST"])
@judge_auth.judge_required
def submit_batch_scores():
    records = judge_scores.submit_batch_scores(db.session, g.judge, request.get_json(silent=True) or {})
    return jsonify([r.to_dict() for r in records])


@judge.route("/judge/scores/<int:score_id>", methods=["DELETE"])
@judge_auth.judge_required
def delete_score(score_id):
    judge_scores.delete_score(db.session, g.judge, score_id)
    return jsonify({"success": True})
