# core/exceptions.py

"""
Error taxonomy for the fees and dues engine.

Every domain error carries a stable upper-snake ``code`` that clients can
branch on, a ``category`` and an HTTP ``status_code``. Validation and state
errors subclass Django's ValidationError so they read naturally next to
model validation; integrity, configuration and infrastructure errors do
not, since they are never the caller's fault to fix.
"""

from django.core.exceptions import ImproperlyConfigured, ValidationError


class LedgerError(Exception):
    """Base for every coded domain error."""

    category = 'ERROR'
    status_code = 500
    retryable = False

    def as_dict(self):
        return {
            'code': self.code,
            'message': self.message,
            'category': self.category,
            'retryable': self.retryable,
        }


# =============================================================================
# CALLER-FIXABLE
# =============================================================================

class LedgerValidationError(LedgerError, ValidationError):
    """Malformed or missing input: bad dates, missing fields, non-positive amounts."""

    category = 'VALIDATION'
    status_code = 400

    def __init__(self, code, message=None, status_code=None):
        super().__init__(message or code, code=code)
        if status_code is not None:
            self.status_code = status_code


class LedgerStateError(LedgerError, ValidationError):
    """
    The request is well-formed but conflicts with current state.

    Examples: demand already paid, amount exceeds remaining balance,
    submitted fees do not match the published schedule.
    """

    category = 'STATE_CONFLICT'
    status_code = 409

    def __init__(self, code, message=None, status_code=None):
        super().__init__(message or code, code=code)
        if status_code is not None:
            self.status_code = status_code


class LedgerNotFoundError(LedgerStateError):
    """
    Missing rows, and rows in the wrong state for a transition.

    Both produce the same externally visible shape so a caller cannot
    tell which references exist.
    """

    category = 'NOT_FOUND'
    status_code = 404


# =============================================================================
# NOT CALLER-FIXABLE
# =============================================================================

class PaymentIntegrityError(LedgerError):
    """Forged or replayed gateway callbacks. Never retried."""

    category = 'INTEGRITY'

    STATUS_BY_CODE = {
        'INVALID_GATEWAY_SIGNATURE': 400,
        'PAYMENT_REPLAY_DETECTED': 409,
    }

    def __init__(self, code, message=None):
        self.code = code
        self.message = message or code
        self.status_code = self.STATUS_BY_CODE.get(code, 400)
        super().__init__(self.message)


class PaymentConfigurationError(LedgerError, ImproperlyConfigured):
    """The server cannot verify payments; e.g. the signing secret is unset."""

    category = 'CONFIGURATION'
    status_code = 500

    def __init__(self, code, message=None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class InfrastructureError(LedgerError):
    """Storage or gateway unavailable. Raised before any monetary write is committed."""

    category = 'INFRASTRUCTURE'
    status_code = 503
    retryable = True

    def __init__(self, code, message=None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)
