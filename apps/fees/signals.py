# fees/signals.py

"""
Fee Management Signal Handlers

Auto-processing for:
- Demand number generation
- Refund number generation
"""

from django.db.models.signals import pre_save
from django.dispatch import receiver
import logging

from fees.utils import generate_demand_number, generate_refund_number

logger = logging.getLogger(__name__)


# =============================================================================
# DEMAND SIGNALS
# =============================================================================

@receiver(pre_save, sender='fees.FeeDemand')
def fee_demand_pre_save(sender, instance, **kwargs):
    """Auto-generate the demand number for new demands."""
    if not instance.demand_number:
        instance.demand_number = generate_demand_number()
        logger.info(f"Generated demand number: {instance.demand_number}")


# =============================================================================
# REFUND SIGNALS
# =============================================================================

@receiver(pre_save, sender='fees.RefundRequest')
def refund_request_pre_save(sender, instance, **kwargs):
    if not instance.refund_number:
        instance.refund_number = generate_refund_number()
        logger.info(f"Generated refund number: {instance.refund_number}")
