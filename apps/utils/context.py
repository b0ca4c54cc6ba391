# utils/context.py

"""
Thread-local request context for audit logging.

Holds the acting identity, client IP, user agent and path for the
current request so models and audit rows can be stamped without
threading the request object through every service call.
"""

from threading import local
import logging

logger = logging.getLogger(__name__)

_thread_locals = local()

ACTOR_HEADER = 'HTTP_X_ACTOR_ID'


def resolve_actor_id(request):
    """
    The acting identity for a request.

    Authenticated user id first, then the ``X-Actor-Id`` header set by the
    upstream gateway that performed authentication.
    """
    user = getattr(request, 'user', None)
    if user is not None and getattr(user, 'is_authenticated', False):
        return str(user.pk)
    header = (request.META.get(ACTOR_HEADER) or '').strip()
    return header or None


def set_request_context(actor_id=None, ip_address=None, user_agent=None,
                        request_path=None, request=None):
    """
    Set the current request context for this thread.

    This should be called by middleware at the start of each request.

    Args:
        actor_id: Identity performing the request
        ip_address: Client IP address
        user_agent: Browser user agent string
        request_path: The request path
        request: The full request object (alternative to individual params)
    """
    if request is not None:
        actor_id = resolve_actor_id(request)
        ip_address = get_client_ip(request)
        user_agent = request.META.get('HTTP_USER_AGENT', '')
        request_path = getattr(request, 'path', '')

    _thread_locals.request_context = {
        'actor_id': actor_id,
        'ip_address': ip_address,
        'user_agent': user_agent or '',
        'request_path': request_path or '',
    }

    logger.debug(f"Set request context: actor={actor_id}, ip={ip_address}")


def get_request_context():
    """
    Get the current request context for this thread.

    Returns:
        dict or None if no context is set.
    """
    return getattr(_thread_locals, 'request_context', None)


def clear_request_context():
    """Clear the request context for this thread."""
    if hasattr(_thread_locals, 'request_context'):
        delattr(_thread_locals, 'request_context')


def get_client_ip(request):
    """
    Extract the client's real IP address from the request.

    Handles X-Forwarded-For for proxied requests.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        # first hop is the client
        return x_forwarded_for.split(',')[0].strip() or None
    return request.META.get('REMOTE_ADDR') or None


# ============================================================================
# CONTEXT MANAGER
# ============================================================================

class RequestContext:
    """
    Context manager for temporarily setting request context.

    Useful for management commands and tests that need audit context.

    Example:
        with RequestContext(actor_id='officer-17', ip_address='127.0.0.1'):
            DemandService.waive_demand(demand_id, actor_id=None)
    """

    def __init__(self, actor_id=None, ip_address=None, user_agent=None, request_path=None):
        self.context = {
            'actor_id': actor_id,
            'ip_address': ip_address,
            'user_agent': user_agent or '',
            'request_path': request_path or '',
        }
        self.previous_context = None

    def __enter__(self):
        self.previous_context = get_request_context()
        _thread_locals.request_context = self.context
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_context:
            _thread_locals.request_context = self.previous_context
        else:
            clear_request_context()
