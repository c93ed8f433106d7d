"""
Judge sign-in, independent of the admin identity provider.

A successful login stores an opaque random token in judge_sessions and hands
it to the browser as the judge_session cookie. Every judge request looks the
token up again, so logout and deactivation take effect on the next request.
Expired rows are not swept; they are simply treated as absent.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache, wraps
from typing import Optional

from flask import current_app, g, has_app_context, redirect, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from errors import InvalidCredentials, StoreError, ValidationError
from forms import parse_int
from extensions import bcrypt
from models import Judge, JudgeSession, db, utcnow

logger = logging.getLogger(__name__)

SESSION_COOKIE = "judge_session"
SESSION_TTL = timedelta(days=7)


@lru_cache(maxsize=None)
def _dummy_hash():
    return bcrypt.generate_password_hash(secrets.token_urlsafe(16)).decode("utf-8")


@dataclass
class SessionCheck:
    judge: Optional[Judge]
    clear_cookie: bool = False


def _session_ttl():
    days = current_app.config.get("JUDGE_SESSION_DAYS") if has_app_context() else None
    return timedelta(days=days) if days else SESSION_TTL


def login(session, name, password, competition_id=None, now=None):
    """
    Returns (token, judge). Raises InvalidCredentials for an unknown name, a
    wrong password or a deactivated judge, all with the same message.
    """
    name = (name or "").strip()
    if not name or not password:
        raise ValidationError("auth.missing_credentials")

    query = session.query(Judge).filter_by(name=name)
    if competition_id:
        query = query.filter_by(competition_id=parse_int(competition_id, field="competition_id"))

    candidates = query.order_by(Judge.id).all()
    if not candidates:
        # Unknown names cost one hash check too
        bcrypt.check_password_hash(_dummy_hash(), password)

    # Names are unique per competition only, so several judges may share one
    judge = next(
        (candidate for candidate in candidates
         if bcrypt.check_password_hash(candidate.password_hash, password)),
        None,
    )
    if judge is None or not judge.is_active:
        logger.info("Rejected judge login for %r", name)
        raise InvalidCredentials()

    now = now or utcnow()
    token = secrets.token_urlsafe(32)
    try:
        session.add(JudgeSession(token=token, judge_id=judge.id, expires_at=now + _session_ttl()))
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error creating judge session for judge %s", judge.id)
        raise StoreError("auth.login_failed")

    logger.info("Judge %s signed in", judge.id)
    return token, judge


def validate(session, token, now=None):
    """Resolve a cookie token to an active judge."""
    if not token:
        return SessionCheck(judge=None)

    record = session.query(JudgeSession).filter_by(token=token).first()
    if record is None or record.expires_at < (now or utcnow()):
        return SessionCheck(judge=None, clear_cookie=True)

    judge = session.get(Judge, record.judge_id)
    if judge is None or not judge.is_active:
        return SessionCheck(judge=None)

    return SessionCheck(judge=judge)


def logout(session, token):
    """Delete the matching session row, if any. Never fails for an unknown token."""
    if not token:
        return 0
    try:
        deleted = session.query(JudgeSession).filter_by(token=token).delete(synchronize_session=False)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Error deleting judge session")
        raise StoreError("errors.generic")
    return deleted


def purge_expired_sessions(session, now=None):
    deleted = (session.query(JudgeSession)
               .filter(JudgeSession.expires_at < (now or utcnow()))
               .delete(synchronize_session=False))
    session.commit()
    return deleted


def set_session_cookie(response, token):
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=int(_session_ttl().total_seconds()),
        httponly=True,
        secure=current_app.config.get("JUDGE_COOKIE_SECURE", False),
        samesite="Lax",
    )
    return response


def clear_session_cookie(response):
    response.delete_cookie(
        SESSION_COOKIE,
        httponly=True,
        secure=current_app.config.get("JUDGE_COOKIE_SECURE", False),
        samesite="Lax",
    )
    return response


def judge_required(view):
    """Validate the judge cookie; anonymous callers go to the judge login page."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        check = validate(db.session, request.cookies.get(SESSION_COOKIE))
        if check.judge is None:
            response = redirect(url_for("judge.login_page"))
            if check.clear_cookie:
                clear_session_cookie(response)
            return response
        g.judge = check.judge
        return view(*args, **kwargs)
    return wrapped
