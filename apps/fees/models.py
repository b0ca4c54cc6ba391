# fees/models.py

"""
Fee line items, demands, payments and refund requests.

Lifecycle:
    FeeLineItem (ASSESSED) -> grouped into a FeeDemand (DEMANDED)
    FeeDemand (PENDING) -> Payment(s) -> PARTIALLY_PAID / PAID
    Payment (SUCCESS/VERIFIED) -> RefundRequest
"""

from decimal import Decimal
import logging

from django.core.validators import MinValueValidator
from django.db import models

from core.utils import ZERO, round2
from utils.models import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# FEE LINE ITEM
# =============================================================================

class FeeLineItem(BaseModel):
    """One assessed fee head for an application."""

    STATUS_CHOICES = [
        ('ASSESSED', 'Assessed'),
        ('DEMANDED', 'Demanded'),
        ('PAID', 'Paid'),
        ('WAIVED', 'Waived'),
    ]

    application = models.ForeignKey(
        'applications.Application',
        verbose_name="Application",
        on_delete=models.CASCADE,
        related_name='fee_line_items',
    )
    fee_head_code = models.CharField("Fee Head Code", max_length=100, db_index=True)
    description = models.CharField("Description", max_length=255, blank=True)
    base_amount = models.DecimalField("Base Amount", max_digits=14, decimal_places=2, null=True, blank=True)
    calculation_inputs = models.JSONField(default=dict, blank=True)
    amount = models.DecimalField("Amount", max_digits=14, decimal_places=2, validators=[MinValueValidator(ZERO)])
    waiver_adjustment = models.DecimalField("Waiver Adjustment", max_digits=14, decimal_places=2, default=Decimal('0.00'))
    currency = models.CharField(max_length=3, default='INR')
    status = models.CharField("Status", max_length=10, choices=STATUS_CHOICES, default='ASSESSED', db_index=True)

    class Meta:
        verbose_name = "Fee Line Item"
        verbose_name_plural = "Fee Line Items"
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['application', 'status'], name='feeline_app_status_idx'),
        ]

    def __str__(self):
        return f"{self.fee_head_code} {self.final_amount}"

    @property
    def final_amount(self):
        return round2(self.amount - (self.waiver_adjustment or ZERO))

    def to_dict(self):
        return {
            'id': str(self.pk),
            'arn': self.application.arn,
            'feeHeadCode': self.fee_head_code,
            'description': self.description,
            'baseAmount': float(self.base_amount) if self.base_amount is not None else None,
            'amount': float(round2(self.amount)),
            'waiverAdjustment': float(round2(self.waiver_adjustment)),
            'finalAmount': float(self.final_amount),
            'currency': self.currency,
            'status': self.status,
            'createdBy': self.created_by_id,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


# =============================================================================
# DEMAND
# =============================================================================

class FeeDemand(BaseModel):
    """A payable grouping of line items with a single due date."""

    STATUS_CHOICES = [
        ('PENDING', 'Pending'),
        ('PARTIALLY_PAID', 'Partially Paid'),
        ('PAID', 'Paid'),
        ('WAIVED', 'Waived'),
        ('CANCELLED', 'Cancelled'),
    ]

    PAYABLE_STATUSES = ('PENDING', 'PARTIALLY_PAID')
    TERMINAL_STATUSES = ('PAID', 'WAIVED', 'CANCELLED')

    demand_number = models.CharField("Demand Number", max_length=50, unique=True)
    application = models.ForeignKey(
        'applications.Application',
        verbose_name="Application",
        on_delete=models.CASCADE,
        related_name='fee_demands',
    )
    line_items = models.ManyToManyField(FeeLineItem, through='FeeDemandLine', related_name='demands')

    total_amount = models.DecimalField("Total Amount", max_digits=14, decimal_places=2)
    paid_amount = models.DecimalField("Paid Amount", max_digits=14, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField("Status", max_length=15, choices=STATUS_CHOICES, default='PENDING', db_index=True)
    due_date = models.DateField("Due Date", null=True, blank=True)
    paid_at = models.DateTimeField("Paid At", null=True, blank=True)

    class Meta:
        verbose_name = "Fee Demand"
        verbose_name_plural = "Fee Demands"
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['application', 'status'], name='feedemand_app_status_idx'),
        ]

    def __str__(self):
        return f"{self.demand_number} ({self.status})"

    @property
    def remaining_balance(self):
        return round2(max(self.total_amount - self.paid_amount, ZERO))

    @property
    def is_payable(self):
        return self.status in self.PAYABLE_STATUSES

    def to_dict(self, include_lines=False):
        data = {
            'id': str(self.pk),
            'arn': self.application.arn,
            'demandNumber': self.demand_number,
            'totalAmount': float(round2(self.total_amount)),
            'paidAmount': float(round2(self.paid_amount)),
            'balanceAmount': float(self.remaining_balance),
            'status': self.status,
            'dueDate': self.due_date.isoformat() if self.due_date else None,
            'createdBy': self.created_by_id,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'paidAt': self.paid_at.isoformat() if self.paid_at else None,
        }
        if include_lines:
            data['lineItems'] = [item.to_dict() for item in self.line_items.order_by('created_at')]
        return data


class FeeDemandLine(models.Model):
    demand = models.ForeignKey(FeeDemand, on_delete=models.CASCADE, related_name='demand_lines')
    line_item = models.ForeignKey(FeeLineItem, on_delete=models.PROTECT, related_name='demand_lines')

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['demand', 'line_item'], name='uniq_demand_line_item'),
        ]

    def __str__(self):
        return f"{self.demand_id} <- {self.line_item_id}"


# =============================================================================
# PAYMENT
# =============================================================================

class Payment(BaseModel):
    """A manual or gateway payment against an application, optionally tied to a demand."""

    MODE_CHOICES = [
        ('GATEWAY', 'Payment Gateway'),
        ('UPI', 'UPI'),
        ('CARD', 'Card'),
        ('NETBANKING', 'Net Banking'),
        ('CHALLAN', 'Bank Challan'),
        ('NEFT', 'NEFT/RTGS'),
        ('COUNTER', 'Counter'),
    ]

    ASYNC_MODES = ('GATEWAY', 'UPI', 'CARD', 'NETBANKING')
    MANUAL_MODES = ('CHALLAN', 'NEFT', 'COUNTER')

    STATUS_CHOICES = [
        ('INITIATED', 'Initiated'),
        ('SUCCESS', 'Success'),
        ('FAILED', 'Failed'),
        ('VERIFIED', 'Verified'),
    ]

    SETTLED_STATUSES = ('SUCCESS', 'VERIFIED')

    RECONCILIATION_CHOICES = [
        ('PENDING', 'Pending'),
        ('RECONCILED', 'Reconciled'),
        ('MISMATCH', 'Mismatch'),
        ('MANUAL_REVIEW', 'Manual Review'),
    ]

    # -------------------------------------------------------------------------
    # IDENTIFICATION
    # -------------------------------------------------------------------------

    application = models.ForeignKey(
        'applications.Application',
        verbose_name="Application",
        on_delete=models.CASCADE,
        related_name='payments',
    )
    demand = models.ForeignKey(
        FeeDemand,
        verbose_name="Demand",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='payments',
    )

    # -------------------------------------------------------------------------
    # PAYMENT DETAILS
    # -------------------------------------------------------------------------

    mode = models.CharField("Mode", max_length=12, choices=MODE_CHOICES)
    amount = models.DecimalField(
        "Amount",
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    currency = models.CharField(max_length=3, default='INR')
    status = models.CharField("Payment Status", max_length=10, choices=STATUS_CHOICES, db_index=True)

    # -------------------------------------------------------------------------
    # GATEWAY DETAILS
    # -------------------------------------------------------------------------

    gateway_order_id = models.CharField("Gateway Order ID", max_length=100, unique=True, null=True, blank=True)
    gateway_payment_id = models.CharField("Gateway Payment ID", max_length=100, null=True, blank=True)
    gateway_signature = models.CharField("Gateway Signature", max_length=255, null=True, blank=True)
    provider_name = models.CharField("Provider", max_length=50, null=True, blank=True)
    provider_transaction_id = models.CharField("Provider Transaction ID", max_length=100, null=True, blank=True)
    failure_reason = models.CharField("Failure Reason", max_length=255, null=True, blank=True)

    # -------------------------------------------------------------------------
    # INSTRUMENT DETAILS (challan / NEFT / counter)
    # -------------------------------------------------------------------------

    instrument_number = models.CharField("Instrument Number", max_length=100, null=True, blank=True)
    instrument_bank = models.CharField("Instrument Bank", max_length=100, null=True, blank=True)
    instrument_date = models.DateField("Instrument Date", null=True, blank=True)

    # -------------------------------------------------------------------------
    # RECEIPT AND VERIFICATION
    # -------------------------------------------------------------------------

    receipt_number = models.CharField("Receipt Number", max_length=50, unique=True, null=True, blank=True)
    receipt_date = models.DateField("Receipt Date", null=True, blank=True)
    verified_by_id = models.CharField("Verified By ID", max_length=64, null=True, blank=True)
    verified_at = models.DateTimeField("Verified At", null=True, blank=True)
    completed_at = models.DateTimeField("Completed At", null=True, blank=True)
    reconciliation_status = models.CharField(
        "Reconciliation Status",
        max_length=15,
        choices=RECONCILIATION_CHOICES,
        default='PENDING',
    )

    class Meta:
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['application', 'created_at'], name='payment_app_created_idx'),
            models.Index(fields=['demand', 'status'], name='payment_demand_status_idx'),
        ]

    def __str__(self):
        return f"{self.receipt_number or self.pk} {self.mode} {self.amount} ({self.status})"

    @property
    def is_settled(self):
        return self.status in self.SETTLED_STATUSES

    def to_dict(self):
        return {
            'id': str(self.pk),
            'arn': self.application.arn,
            'demandId': str(self.demand_id) if self.demand_id else None,
            'mode': self.mode,
            'amount': float(round2(self.amount)),
            'currency': self.currency,
            'status': self.status,
            'gatewayOrderId': self.gateway_order_id,
            'gatewayPaymentId': self.gateway_payment_id,
            'providerName': self.provider_name,
            'providerTransactionId': self.provider_transaction_id,
            'failureReason': self.failure_reason,
            'instrumentNumber': self.instrument_number,
            'instrumentBank': self.instrument_bank,
            'instrumentDate': self.instrument_date.isoformat() if self.instrument_date else None,
            'receiptNumber': self.receipt_number,
            'receiptDate': self.receipt_date.isoformat() if self.receipt_date else None,
            'reconciliationStatus': self.reconciliation_status,
            'verifiedAt': self.verified_at.isoformat() if self.verified_at else None,
            'completedAt': self.completed_at.isoformat() if self.completed_at else None,
            'createdBy': self.created_by_id,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }


# =============================================================================
# REFUND REQUEST
# =============================================================================

class RefundRequest(BaseModel):
    """Refund of a settled payment, moved through an approval workflow."""

    STATUS_CHOICES = [
        ('REQUESTED', 'Requested'),
        ('APPROVED', 'Approved'),
        ('REJECTED', 'Rejected'),
        ('PROCESSED', 'Processed'),
    ]

    ACTIVE_STATUSES = ('REQUESTED', 'APPROVED')

    refund_number = models.CharField("Refund Number", max_length=50, unique=True)
    application = models.ForeignKey(
        'applications.Application',
        verbose_name="Application",
        on_delete=models.CASCADE,
        related_name='refund_requests',
    )
    payment = models.ForeignKey(
        Payment,
        verbose_name="Payment",
        on_delete=models.PROTECT,
        related_name='refund_requests',
    )
    reason = models.TextField("Reason")
    amount = models.DecimalField(
        "Amount",
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    bank_details = models.JSONField("Bank Details", default=dict, blank=True)
    status = models.CharField("Status", max_length=10, choices=STATUS_CHOICES, default='REQUESTED', db_index=True)

    requested_by_id = models.CharField("Requested By ID", max_length=64, null=True, blank=True)
    decided_by_id = models.CharField("Decided By ID", max_length=64, null=True, blank=True)
    decided_at = models.DateTimeField("Decided At", null=True, blank=True)
    processed_by_id = models.CharField("Processed By ID", max_length=64, null=True, blank=True)
    processed_at = models.DateTimeField("Processed At", null=True, blank=True)

    class Meta:
        verbose_name = "Refund Request"
        verbose_name_plural = "Refund Requests"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['payment', 'status'], name='refund_payment_status_idx'),
        ]

    def __str__(self):
        return f"{self.refund_number} ({self.status})"

    def to_dict(self):
        return {
            'id': str(self.pk),
            'refundNumber': self.refund_number,
            'arn': self.application.arn,
            'paymentId': str(self.payment_id),
            'reason': self.reason,
            'amount': float(round2(self.amount)),
            'bankDetails': self.bank_details,
            'status': self.status,
            'requestedBy': self.requested_by_id,
            'requestedAt': self.created_at.isoformat() if self.created_at else None,
            'decidedBy': self.decided_by_id,
            'decidedAt': self.decided_at.isoformat() if self.decided_at else None,
            'processedBy': self.processed_by_id,
            'processedAt': self.processed_at.isoformat() if self.processed_at else None,
        }
