import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from admin_auth import admin_action
from errors import ConflictError, DuplicateError, NotFoundError, StoreError, ValidationError
from extensions import bcrypt
from forms import int_field, is_valid_email, parse_bool, text
from models import Competition, Judge, JudgeScore, utcnow

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
CHECK_VIOLATION = "23514"

# Store error code -> (error class, message key)
JUDGE_STORE_ERRORS = {
    UNIQUE_VIOLATION: (DuplicateError, "judge.name_exists"),
    FOREIGN_KEY_VIOLATION: (ValidationError, "judge.invalid_competition"),
    CHECK_VIOLATION: (ValidationError, "judge.invalid_value"),
}


def store_error_code(exc):
    """SQLSTATE of an IntegrityError; SQLite has none, so fall back to its message."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code

    message = str(orig).upper()
    if "UNIQUE" in message:
        return UNIQUE_VIOLATION
    if "FOREIGN KEY" in message:
        return FOREIGN_KEY_VIOLATION
    if "CHECK" in message:
        return CHECK_VIOLATION
    return None


def _raise_for_store_error(exc, fallback_key):
    mapped = JUDGE_STORE_ERRORS.get(store_error_code(exc))
    if mapped:
        error_class, key = mapped
        raise error_class(key)
    raise StoreError(fallback_key)


def get_judge(session, judge_id, competition_id=None):
    judge = session.get(Judge, judge_id)
    if judge is None or (competition_id is not None and judge.competition_id != int(competition_id)):
        raise NotFoundError("judge.not_found")
    return judge


def list_judges(session, competition_id):
    return (session.query(Judge)
            .filter_by(competition_id=competition_id)
            .order_by(Judge.name)
            .all())


def _judge_fields(form):
    data = {
        "name": text(form, "name"),
        "email": text(form, "email"),
        "phone": text(form, "phone"),
        "photo_url": text(form, "photo_url"),
        "is_active": parse_bool(form, "is_active", default=True),
        "specialization": text(form, "specialization"),
        "experience_years": int_field(form, "experience_years"),
    }
    if not data["name"]:
        raise ValidationError("judge.name_required")
    if data["email"] and not is_valid_email(data["email"]):
        raise ValidationError("judge.invalid_email")
    return data


def _check_unique(session, competition_id, data, exclude_id=None):
    query = session.query(Judge.id).filter_by(competition_id=competition_id)
    if exclude_id is not None:
        query = query.filter(Judge.id != exclude_id)

    if query.filter(Judge.name == data["name"]).first():
        raise DuplicateError("judge.name_exists")
    if data["email"] and query.filter(Judge.email == data["email"]).first():
        raise DuplicateError("judge.email_exists")


def hash_password(password):
    return bcrypt.generate_password_hash(password).decode("utf-8")


@admin_action
def create_judge(session, form):
    competition_id = int_field(form, "competition_id")
    if not competition_id:
        raise ValidationError("judge.competition_required")

    data = _judge_fields(form)
    password = form.get("password") or ""
    if not password.strip():
        raise ValidationError("judge.password_required")
    if session.get(Competition, competition_id) is None:
        raise NotFoundError("competition.not_found")
    _check_unique(session, competition_id, data)

    try:
        judge = Judge(competition_id=competition_id, password_hash=hash_password(password), **data)
        session.add(judge)
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.error("Store rejected judge %r: %s", data["name"], exc.orig)
        _raise_for_store_error(exc, "judge.create_failed")
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error creating judge %r", data["name"])
        raise StoreError("judge.create_failed")

    logger.info("Created judge %s for competition %s", judge.id, competition_id)
    return judge


@admin_action
def update_judge(session, judge_id, form):
    """Update profile fields; the password changes only when one is given."""
    judge = get_judge(session, judge_id)
    data = _judge_fields(form)
    _check_unique(session, judge.competition_id, data, exclude_id=judge.id)

    password = form.get("password") or ""
    try:
        for key, value in data.items():
            setattr(judge, key, value)
        if password.strip():
            judge.password_hash = hash_password(password)
        judge.updated_at = utcnow()
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.error("Store rejected update of judge %s: %s", judge_id, exc.orig)
        _raise_for_store_error(exc, "judge.update_failed")
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error updating judge %s", judge_id)
        raise StoreError("judge.update_failed")
    return judge


@admin_action
def delete_judge(session, judge_id):
    judge = get_judge(session, judge_id)

    if session.query(JudgeScore.id).filter_by(judge_id=judge.id).first():
        raise ConflictError("judge.has_scores")

    try:
        session.delete(judge)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error deleting judge %s", judge_id)
        raise StoreError("judge.delete_failed")


@admin_action
def toggle_judge_status(session, judge_id):
    """Flip is_active. Existing sessions of a deactivated judge fail their next check."""
    judge = get_judge(session, judge_id)
    try:
        judge.is_active = not judge.is_active
        judge.updated_at = utcnow()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error toggling judge status %s", judge_id)
        raise StoreError("judge.toggle_failed")
    return judge


@admin_action
def bulk_create_judges(session, rows, competition_id):
    if not rows:
        raise ValidationError("judge.list_empty")
    if session.get(Competition, competition_id) is None:
        raise NotFoundError("competition.not_found")

    for row in rows:
        if not (row.get("name") or "").strip():
            raise ValidationError("judge.all_need_names")
        if not (row.get("password") or "").strip():
            raise ValidationError("judge.all_need_passwords")
        if row.get("email") and not is_valid_email(row["email"]):
            raise ValidationError("judge.bulk_invalid_email", name=row["name"])

    emails = [row["email"] for row in rows if row.get("email")]
    if len(emails) != len(set(emails)):
        raise ValidationError("judge.bulk_duplicate_email")
    names = [row["name"].strip() for row in rows]
    if len(names) != len(set(names)):
        raise ValidationError("judge.bulk_duplicate_name")

    try:
        judges = [
            Judge(
                competition_id=competition_id,
                name=row["name"].strip(),
                password_hash=hash_password(row["password"]),
                email=row.get("email") or None,
                phone=row.get("phone") or None,
                specialization=row.get("specialization") or None,
                experience_years=row.get("experience_years") or None,
                is_active=True,
            )
            for row in rows
        ]
        session.add_all(judges)
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.error("Store rejected bulk judges for competition %s: %s", competition_id, exc.orig)
        _raise_for_store_error(exc, "judge.bulk_failed")
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error bulk creating judges for competition %s", competition_id)
        raise StoreError("judge.bulk_failed")
    return judges
