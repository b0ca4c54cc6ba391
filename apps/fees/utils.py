# fees/utils.py

"""
Fee Management Utility Functions

Contains:
- Reference number generation (demands, receipts, refunds)
- Bank details normalisation for refund requests
"""

from django.conf import settings
from django.utils import timezone
import logging

logger = logging.getLogger(__name__)


def _numbering(key, default):
    return (getattr(settings, 'FEE_NUMBERING', {}) or {}).get(key) or default


def _next_sequence(model, field, search_prefix):
    """
    Next sequence number after the highest ``field`` value starting with ``search_prefix``.

    Call inside a transaction: the highest row is locked so concurrent
    generators queue behind each other, and the unique constraint on
    ``field`` catches anything that slips through.
    """
    last_value = (
        model.objects
        .select_for_update()
        .filter(**{f"{field}__startswith": search_prefix})
        .order_by(f"-{field}")
        .values_list(field, flat=True)
        .first()
    )
    if not last_value:
        return 1
    try:
        return int(last_value[len(search_prefix):]) + 1
    except ValueError:
        logger.warning(f"Unparseable {model.__name__}.{field} value {last_value!r}; rescanning")
        numbers = []
        for value in model.objects.filter(**{f"{field}__startswith": search_prefix}).values_list(field, flat=True):
            suffix = value[len(search_prefix):]
            if suffix.isdigit():
                numbers.append(int(suffix))
        return max(numbers) + 1 if numbers else 1


# =============================================================================
# REFERENCE NUMBER GENERATION
# =============================================================================

def generate_demand_number():
    """
    Generate unique demand number.

    Format: DEM/2024/000001

    Returns:
        str: Unique demand number
    """
    from fees.models import FeeDemand

    prefix = _numbering('DEMAND_PREFIX', 'DEM')
    search_prefix = f"{prefix}/{timezone.now().year}/"
    new_number = _next_sequence(FeeDemand, 'demand_number', search_prefix)
    return f"{search_prefix}{new_number:06d}"


def generate_receipt_number():
    """
    Generate unique receipt number for a settled payment.

    Format: RCPT-000001
    """
    from fees.models import Payment

    prefix = _numbering('RECEIPT_PREFIX', 'RCPT')
    search_prefix = f"{prefix}-"
    new_number = _next_sequence(Payment, 'receipt_number', search_prefix)
    return f"{search_prefix}{new_number:06d}"


def generate_refund_number():
    """
    Generate unique refund number.

    Format: RFND-2024-0001
    """
    from fees.models import RefundRequest

    prefix = _numbering('REFUND_PREFIX', 'RFND')
    search_prefix = f"{prefix}-{timezone.now().year}-"
    new_number = _next_sequence(RefundRequest, 'refund_number', search_prefix)
    return f"{search_prefix}{new_number:04d}"


# =============================================================================
# VALIDATION UTILITIES
# =============================================================================

BANK_DETAIL_FIELDS = (
    ('accountName', 'account_name'),
    ('accountNumber', 'account_number'),
    ('ifsc', 'ifsc'),
    ('bankName', 'bank_name'),
)


def normalize_bank_details(raw):
    """
    Keep the known bank detail fields as trimmed strings.

    Accepts camelCase or snake_case keys; unknown keys are dropped and the
    IFSC is upper-cased.

    Example:
        >>> normalize_bank_details({'accountName': ' A. Singh ', 'ifsc': 'sbin0001234'})
        {'accountName': 'A. Singh', 'ifsc': 'SBIN0001234'}
    """
    if not isinstance(raw, dict):
        return {}
    details = {}
    for camel, snake in BANK_DETAIL_FIELDS:
        value = raw.get(camel, raw.get(snake))
        if value is None:
            continue
        value = str(value).strip()
        if not value:
            continue
        details[camel] = value.upper() if camel == 'ifsc' else value
    return details
