import logging
import os

from flask import Flask, jsonify, redirect, url_for

from commands import register_commands
from errors import AuthenticationRequired, AuthorizationError, CompetitionError
from extensions import bcrypt, login_manager
from i18n import DEFAULT_LOCALE, translate
from models import db, User
from storage import create_photo_storage


def _database_url():
    database_url = os.environ.get("DATABASE_URL", "sqlite:///competition.db")

    # Render/Heroku hand out postgres://, SQLAlchemy needs postgresql+psycopg://
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return database_url


def _is_production():
    return "production" in (os.environ.get("FLASK_ENV"), os.environ.get("APP_ENV"))


def create_app(test_config=None):
    # ---------------------------------------
    # APP INIT
    # ---------------------------------------
    app = Flask(__name__)

    production = _is_production()
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY", "dev-secret-key"),
        SQLALCHEMY_DATABASE_URI=_database_url(),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SESSION_COOKIE_SECURE=production,
        JUDGE_COOKIE_SECURE=production,
        JUDGE_SESSION_DAYS=int(os.environ.get("JUDGE_SESSION_DAYS", 7)),
        SUPABASE_URL=os.environ.get("SUPABASE_URL"),
        SUPABASE_SERVICE_ROLE_KEY=os.environ.get("SUPABASE_SERVICE_ROLE_KEY"),
        PHOTO_BUCKET=os.environ.get("PHOTO_BUCKET", "photos"),
        DEFAULT_LOCALE=os.environ.get("DEFAULT_LOCALE", DEFAULT_LOCALE),
        LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO"),
    )
    if test_config is not None:
        app.config.from_mapping(test_config)

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # ---------------------------------------
    # EXTENSIONS
    # ---------------------------------------
    db.init_app(app)
    bcrypt.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    app.extensions["photo_storage"] = create_photo_storage(app)

    # ---------------------------------------
    # BLUEPRINTS
    # ---------------------------------------
    from admin_routes import admin as admin_blueprint
    from auth import auth as auth_blueprint
    from judge_routes import judge as judge_blueprint
    from public_routes import public as public_blueprint

    app.register_blueprint(auth_blueprint)
    app.register_blueprint(admin_blueprint)
    app.register_blueprint(judge_blueprint)
    app.register_blueprint(public_blueprint)

    register_commands(app)

    # ---------------------------------------
    # ERRORS
    # ---------------------------------------
    @app.errorhandler(AuthenticationRequired)
    def sign_in_first(error):
        return redirect(url_for("auth.login"))

    @app.errorhandler(AuthorizationError)
    def not_an_admin(error):
        return redirect(url_for("unauthorized"))

    @app.errorhandler(CompetitionError)
    def competition_error(error):
        if error.status_code >= 500:
            app.logger.error("Request failed: %s", error.key)
        return jsonify({"error": error.localized()}), error.status_code

    # ---------------------------------------
    # DB INIT (creates tables on first deploy)
    # ---------------------------------------
    with app.app_context():
        db.create_all()

    # ---------------------------------------
    # PAGE ROUTES
    # ---------------------------------------
    @app.route("/")
    def home():
        return jsonify({"name": "competition", "status": "ok"})

    @app.route("/unauthorized")
    def unauthorized():
        return jsonify({"error": translate("auth.admin_required")}), 403

    return app


# ---------------------------------------
# RUN SERVER
# ---------------------------------------
if __name__ == "__main__":
    debug_mode = os.environ.get("FLASK_DEBUG", "false").lower() == "true"
    create_app().run(debug=debug_mode)
