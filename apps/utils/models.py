# utils/models.py

"""
Base models with audit trail support.

Key Features:
- UUID primary keys and UTC timestamps
- User and IP tracking from the thread-local request context
- Change reason tracking
- Financial audit logging for every monetary mutation
"""

from decimal import Decimal, InvalidOperation
import logging
import uuid

from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models, transaction, DatabaseError
from django.utils import timezone

logger = logging.getLogger(__name__)


# =============================================================================
# BASE MODEL
# =============================================================================

class BaseModel(models.Model):
    """
    Abstract base model with audit trail fields.

    Features:
    - Automatic actor tracking (who created/updated), from an explicit
      ``actor_id`` passed to save() or from the request context
    - Real client IP tracking
    - Change reason tracking

    Actor ids are stored as plain strings: the acting officer or citizen
    lives in an external identity system.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    created_at = models.DateTimeField("Created At", db_index=True)
    updated_at = models.DateTimeField("Updated At", db_index=True)

    created_by_id = models.CharField(
        "Created By ID",
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of the actor who created this record"
    )
    updated_by_id = models.CharField(
        "Updated By ID",
        max_length=64,
        null=True,
        blank=True,
        help_text="ID of the actor who last updated this record"
    )

    created_from_ip = models.GenericIPAddressField("Created From IP", null=True, blank=True)
    updated_from_ip = models.GenericIPAddressField("Updated From IP", null=True, blank=True)

    change_reason = models.CharField("Change Reason", max_length=255, blank=True, null=True)

    class Meta:
        abstract = True

    def save(self, *args, actor_id=None, **kwargs):
        """
        Override save to:
        1. Set UTC timestamps
        2. Populate created_by/updated_by and IPs from ``actor_id`` or the request context
        """
        from utils.context import get_request_context

        is_new = self._state.adding
        now = timezone.now()

        # -------------------------------------------------------------------------
        # Timestamps
        # -------------------------------------------------------------------------
        if is_new:
            if not self.created_at:
                self.created_at = now
            if not self.updated_at:
                self.updated_at = now
        else:
            self.updated_at = now
            update_fields = kwargs.get('update_fields')
            if update_fields is not None:
                kwargs['update_fields'] = set(update_fields) | {'updated_at', 'updated_by_id', 'updated_from_ip'}

        # -------------------------------------------------------------------------
        # Actor and IP
        # -------------------------------------------------------------------------
        context = get_request_context() or {}
        actor = actor_id or context.get('actor_id')
        ip_address = context.get('ip_address')

        if is_new:
            if actor and not self.created_by_id:
                self.created_by_id = str(actor)[:64]
            if ip_address and not self.created_from_ip:
                self.created_from_ip = ip_address
        if actor:
            self.updated_by_id = str(actor)[:64]
        if ip_address:
            self.updated_from_ip = ip_address

        return super().save(*args, **kwargs)


# =============================================================================
# FINANCIAL AUDIT LOG
# =============================================================================

class FinancialAuditLog(models.Model):
    """
    Append-only audit log for monetary mutations and payment integrity events.

    One row per assessment, demand transition, payment event, refund
    transition and NDC dues posting. Rows are never updated.
    """

    FINANCIAL_ACTIONS = [
        # Assessment and demands
        ('FEE_ASSESS', 'Fees Assessed'),
        ('DEMAND_CREATE', 'Demand Created'),
        ('DEMAND_WAIVE', 'Demand Waived'),
        ('DEMAND_CANCEL', 'Demand Cancelled'),

        # Payments
        ('PAYMENT_RECORD', 'Payment Recorded'),
        ('PAYMENT_VERIFY', 'Gateway Payment Verified'),
        ('PAYMENT_FAIL', 'Payment Failed'),
        ('PAYMENT_INTEGRITY_FAILURE', 'Payment Integrity Failure'),

        # Refunds
        ('REFUND_REQUEST', 'Refund Requested'),
        ('REFUND_APPROVE', 'Refund Approved'),
        ('REFUND_REJECT', 'Refund Rejected'),
        ('REFUND_PROCESS', 'Refund Processed'),

        # Property dues
        ('NDC_PAYMENT_POST', 'NDC Due Payment Posted'),
    ]

    RISK_LEVELS = [
        ('LOW', 'Low Risk'),
        ('MEDIUM', 'Medium Risk'),
        ('HIGH', 'High Risk'),
        ('CRITICAL', 'Critical Risk'),
    ]

    id = models.BigAutoField(primary_key=True)
    timestamp = models.DateTimeField(db_index=True)
    action = models.CharField(max_length=30, choices=FINANCIAL_ACTIONS, db_index=True)

    actor_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(null=True, blank=True)
    request_path = models.CharField(max_length=255, null=True, blank=True)

    content_type = models.ForeignKey(ContentType, on_delete=models.SET_NULL, null=True, blank=True)
    object_id = models.CharField(max_length=100, null=True, blank=True)
    content_object = GenericForeignKey('content_type', 'object_id')
    object_description = models.CharField(max_length=500, null=True, blank=True)

    amount_involved = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, null=True, blank=True)
    application_arn = models.CharField(max_length=64, null=True, blank=True, db_index=True)

    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)

    risk_level = models.CharField(max_length=10, choices=RISK_LEVELS, default='LOW', db_index=True)
    additional_data = models.JSONField(default=dict, blank=True)
    notes = models.TextField(null=True, blank=True)

    class Meta:
        verbose_name = "Financial Audit Log"
        verbose_name_plural = "Financial Audit Logs"
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['timestamp', 'action'], name='finaudit_ts_action_idx'),
            models.Index(fields=['risk_level', 'timestamp'], name='finaudit_risk_ts_idx'),
            models.Index(fields=['application_arn', 'timestamp'], name='finaudit_arn_ts_idx'),
        ]

    def __str__(self):
        return f"{self.get_action_display()} at {self.timestamp}"

    @classmethod
    def log_financial_action(
        cls,
        action,
        actor_id=None,
        target_object=None,
        amount=None,
        currency=None,
        application_arn=None,
        old_values=None,
        new_values=None,
        risk_level='LOW',
        additional_data=None,
        notes=None,
    ):
        """
        Write one audit row. Never raises.

        The insert runs in its own savepoint so a failed audit write cannot
        poison the caller's transaction.

        Returns:
            FinancialAuditLog: Created entry, or None if the write failed

        Example:
            FinancialAuditLog.log_financial_action(
                action='PAYMENT_RECORD',
                actor_id='officer-17',
                target_object=payment,
                amount=payment.amount,
                application_arn=payment.application.arn,
            )
        """
        from utils.context import get_request_context

        context = get_request_context() or {}
        log_data = {
            'action': action,
            'timestamp': timezone.now(),
            'risk_level': risk_level,
            'actor_id': str(actor_id or context.get('actor_id') or '')[:64] or None,
            'ip_address': context.get('ip_address') or None,
            'user_agent': (context.get('user_agent') or '')[:512],
            'request_path': (context.get('request_path') or '')[:255],
            'application_arn': application_arn,
            'currency': (str(currency)[:3].upper() if currency else None),
            'old_values': old_values,
            'new_values': new_values,
            'additional_data': additional_data or {},
            'notes': (notes or '')[:2000],
        }

        if amount is not None:
            try:
                log_data['amount_involved'] = Decimal(str(amount))
            except (ValueError, InvalidOperation, TypeError):
                logger.warning(f"Invalid amount for financial audit log: {amount}")

        if target_object is not None:
            log_data.update({
                'content_type': ContentType.objects.get_for_model(target_object),
                'object_id': str(target_object.pk),
                'object_description': str(target_object)[:500],
            })

        try:
            with transaction.atomic():
                return cls.objects.create(**log_data)
        except DatabaseError as e:
            logger.error(f"Error creating financial audit log for {action}: {e}", exc_info=True)
            return None

    @classmethod
    def for_application(cls, arn, limit=50):
        """Audit history for one application, newest first."""
        return cls.objects.filter(application_arn=arn).order_by('-timestamp', '-id')[:limit]

    @classmethod
    def get_high_risk_actions(cls, days=30):
        """HIGH and CRITICAL rows from the last ``days`` days."""
        from datetime import timedelta

        cutoff = timezone.now() - timedelta(days=days)
        return cls.objects.filter(
            timestamp__gte=cutoff,
            risk_level__in=['HIGH', 'CRITICAL'],
        ).order_by('-timestamp', '-id')
