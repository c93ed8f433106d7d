"""
Error taxonomy shared by the action handlers and the blueprints.

Handlers raise these with a message key from the locale catalogues; the
route boundary localizes the key for the current request and returns
{"error": message} with the class's HTTP status.
"""
from i18n import translate


class CompetitionError(Exception):
    status_code = 400

    def __init__(self, key, **params):
        super().__init__(key)
        self.key = key
        self.params = params

    def localized(self, locale=None):
        return translate(self.key, locale, **self.params)


class ValidationError(CompetitionError):
    """Missing required field or an out-of-range value."""
    status_code = 400


class DuplicateError(CompetitionError):
    status_code = 409


class ConflictError(CompetitionError):
    """The row is still referenced and may not be removed."""
    status_code = 409


class NotFoundError(CompetitionError):
    status_code = 404


class AuthenticationRequired(CompetitionError):
    status_code = 401

    def __init__(self, key="auth.sign_in_required", **params):
        super().__init__(key, **params)


class AuthorizationError(CompetitionError):
    status_code = 403

    def __init__(self, key="auth.admin_required", **params):
        super().__init__(key, **params)


class InvalidCredentials(CompetitionError):
    # Same message for unknown name, wrong password and disabled account
    status_code = 401

    def __init__(self, key="auth.invalid_credentials", **params):
        super().__init__(key, **params)


class StoreError(CompetitionError):
    """A database write failed. The original exception is logged, not shown."""
    status_code = 500
