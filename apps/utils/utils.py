# utils/utils.py

from functools import wraps
import json
import logging

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError
from django.http import JsonResponse

from core.exceptions import InfrastructureError, LedgerError

logger = logging.getLogger(__name__)


# =============================================================================
# JSON VIEW HELPERS
# =============================================================================

class JSONBodyError(ValueError):
    pass


def parse_json_body(request):
    """
    Decode a JSON object body. An empty body is an empty dict.

    Raises:
        JSONBodyError: body is not a JSON object
    """
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise JSONBodyError(f"Invalid JSON body: {e}") from e
    if not isinstance(data, dict):
        raise JSONBodyError("JSON body must be an object")
    return data


def error_response(code, message, status, category='VALIDATION', retryable=False):
    return JsonResponse(
        {
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "category": category,
                "retryable": retryable,
            },
        },
        status=status,
    )


def ledger_error_response(error):
    """Map a domain error to its JSON body and HTTP status."""
    return JsonResponse({"success": False, "error": error.as_dict()}, status=error.status_code)


def json_endpoint(view_func):
    """
    Wrap a JSON view with the shared error mapping.

    Domain errors keep their own code and status; malformed JSON is a 400;
    storage failures become a retryable 503. Anything else is logged and
    reported as a 500 without leaking internals.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except LedgerError as e:
            if e.status_code >= 500:
                logger.error(f"{request.method} {request.path} failed: {e.code}")
            return ledger_error_response(e)
        except JSONBodyError as e:
            return error_response('INVALID_JSON', str(e), 400)
        except ValidationError as e:
            return error_response(
                getattr(e, 'code', None) or 'VALIDATION_ERROR',
                '; '.join(e.messages),
                400,
            )
        except IntegrityError as e:
            logger.error(f"Integrity error on {request.method} {request.path}: {e}", exc_info=True)
            return error_response('CONFLICT', 'Conflicting concurrent update', 409, category='STATE_CONFLICT')
        except DatabaseError as e:
            logger.error(f"Storage unavailable on {request.method} {request.path}: {e}", exc_info=True)
            return ledger_error_response(InfrastructureError('STORAGE_UNAVAILABLE', 'Storage temporarily unavailable'))
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
            return error_response('INTERNAL_ERROR', 'An unexpected error occurred', 500, category='ERROR')
    return wrapper


def get_actor_id(request):
    """Acting identity for the request (authenticated user, else X-Actor-Id)."""
    from utils.context import resolve_actor_id
    return resolve_actor_id(request)
