# utils/audit.py

import logging

from utils.models import FinancialAuditLog

audit_logger = logging.getLogger("financial_audit")
logger = logging.getLogger(__name__)


def log_financial_activity(
    action,
    actor_id=None,
    target_object=None,
    amount=None,
    currency=None,
    application_arn=None,
    old_values=None,
    new_values=None,
    notes=None,
    risk_level='LOW',
    additional_data=None,
):
    """
    Log financial activity for audit purposes using FinancialAuditLog.

    Also emits one line on the ``financial_audit`` logger so the trail is
    visible in the log stream even when the audit table is unreachable.

    Args:
        action (str): One of FinancialAuditLog.FINANCIAL_ACTIONS (e.g. PAYMENT_VERIFY).
        actor_id (str, optional): Identity performing the action.
        target_object (Model instance, optional): Demand, Payment, RefundRequest, Property...
        amount (Decimal, optional): Amount involved in the action.
        currency (str, optional): Currency code, e.g. 'INR'.
        application_arn (str, optional): Application the action belongs to.
        old_values (dict, optional): Values before the change.
        new_values (dict, optional): Values after the change.
        notes (str, optional): Additional notes.
        risk_level (str, optional): 'LOW', 'MEDIUM', 'HIGH' or 'CRITICAL'.
        additional_data (dict, optional): Extra context-specific data.
    """
    audit_logger.info(
        f"{action} arn={application_arn or '-'} actor={actor_id or '-'} "
        f"amount={amount if amount is not None else '-'} risk={risk_level}"
    )
    return FinancialAuditLog.log_financial_action(
        action=action,
        actor_id=actor_id,
        target_object=target_object,
        amount=amount,
        currency=currency,
        application_arn=application_arn,
        old_values=old_values,
        new_values=new_values,
        risk_level=risk_level,
        additional_data=additional_data,
        notes=notes,
    )
