import logging
from functools import wraps

from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from errors import AuthenticationRequired, AuthorizationError
from models import AdminUser

logger = logging.getLogger(__name__)


def current_external_user_id():
    """Id the identity provider reports for the signed-in caller, or None."""
    if not current_user or not current_user.is_authenticated:
        return None
    return current_user.get_id()


def check_admin_access(session, external_user_id=None):
    """
    Look the caller up in the admin allow-list.

    Returns {"authorized": bool, "profile": AdminUser | None}. A missing
    identity, a missing row, or a failed lookup are all unauthorized.
    """
    if external_user_id is None:
        external_user_id = current_external_user_id()
    if not external_user_id:
        return {"authorized": False, "profile": None}

    try:
        profile = (session.query(AdminUser)
                   .filter_by(external_user_id=str(external_user_id))
                   .first())
    except SQLAlchemyError:
        logger.exception("Error checking admin access for %s", external_user_id)
        return {"authorized": False, "profile": None}

    return {"authorized": profile is not None, "profile": profile}


def require_admin_access(session, external_user_id=None):
    if external_user_id is None and current_external_user_id() is None:
        raise AuthenticationRequired()

    access = check_admin_access(session, external_user_id)
    if not access["authorized"]:
        raise AuthorizationError()
    return access["profile"]


def admin_action(func):
    """Re-check the allow-list on every call of an action handler."""
    @wraps(func)
    def wrapper(session, *args, **kwargs):
        require_admin_access(session)
        return func(session, *args, **kwargs)
    return wrapper
