from flask import Blueprint, jsonify, request
from flask_login import current_user, login_user, logout_user

from admin_auth import check_admin_access
from extensions import bcrypt
from i18n import translate
from models import db, User

auth = Blueprint('auth', __name__)


def _credentials():
    data = request.get_json(silent=True) or request.form
    return (data.get('username') or '').strip(), data.get('password') or ''


@auth.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        username, password = _credentials()

        user = User.query.filter_by(username=username).first()

        if user and bcrypt.check_password_hash(user.password_hash, password):
            login_user(user)
            access = check_admin_access(db.session, user.get_id())
            return jsonify({
                "user_id": user.get_id(),
                "username": user.username,
                "is_admin": access["authorized"],
            })

        return jsonify({"error": translate("auth.invalid_login")}), 401

    if current_user.is_authenticated:
        return jsonify({"user_id": current_user.get_id(), "username": current_user.username})
    return jsonify({"error": translate("auth.sign_in_required")}), 401


@auth.route('/register', methods=['POST'])
def register():
    username, password = _credentials()
    if not username or not password:
        return jsonify({"error": translate("auth.fields_required")}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({"error": translate("auth.username_taken")}), 409

    user = User(username=username, password_hash=bcrypt.generate_password_hash(password).decode('utf-8'))
    db.session.add(user)
    db.session.commit()

    login_user(user)
    return jsonify({"user_id": user.get_id(), "username": user.username}), 201


@auth.route('/logout', methods=['GET', 'POST'])
def logout():
    logout_user()
    return jsonify({"message": translate("auth.logged_out")})
