# applications/services.py

import logging

from applications.models import Application
from core.exceptions import LedgerNotFoundError

logger = logging.getLogger(__name__)


def resolve_application(arn, for_update=False):
    """
    Fetch an application by ARN.

    Raises:
        LedgerNotFoundError: APPLICATION_NOT_FOUND
    """
    queryset = Application.objects.select_related('linked_property')
    if for_update:
        queryset = Application.objects.select_for_update()
    try:
        return queryset.get(arn=arn)
    except Application.DoesNotExist:
        raise LedgerNotFoundError('APPLICATION_NOT_FOUND', f"Application {arn} not found")
