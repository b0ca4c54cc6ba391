# fees/services.py

"""
Core Fee Operations

Assessment of line items against the published schedule, demands over
those line items, manual and gateway payments against demands, and the
refund workflow.

Every mutation runs in one transaction and locks the row whose balance or
status it reads before writing. Conditional transitions (waive, cancel,
refund decisions) are single ``UPDATE ... WHERE status = ...`` statements,
so a row that is missing and a row in the wrong state look the same to
the caller.
"""

import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from applications.services import resolve_application
from core.exceptions import (
    LedgerNotFoundError,
    LedgerStateError,
    LedgerValidationError,
    PaymentConfigurationError,
    PaymentIntegrityError,
)
from core.utils import ZERO, get_base_currency, money_out, parse_date_only, parse_uuid, round2, to_decimal, today_utc
from fees.gateway import get_payment_gateway
from fees.models import FeeDemand, FeeDemandLine, FeeLineItem, Payment, RefundRequest
from fees.schedules import FeeScheduleResolver, submitted_items_match
from fees.utils import generate_receipt_number, normalize_bank_details
from utils.audit import log_financial_activity

logger = logging.getLogger(__name__)


def _not_found_or_wrong_state(message):
    return LedgerNotFoundError('NOT_FOUND_OR_WRONG_STATE', message)


def _clean_str(value):
    if value is None:
        return ''
    return str(value).strip()


# =============================================================================
# FEE ASSESSMENT SERVICE
# =============================================================================

class FeeAssessmentService:
    """
    Turns a submitted fee breakdown into persisted line items.

    The submitted items are only a confirmation: they must equal the
    published schedule exactly, and what gets stored is taken from the
    schedule itself.
    """

    @staticmethod
    def assess(arn, items, actor_id=None, resolver=None):
        """
        Assess fees for an application.

        Args:
            arn (str): Application reference number
            items (list): ``[{"feeHeadCode": str, "amount": number}, ...]``
            actor_id (str, optional): Acting officer
            resolver (FeeScheduleResolver, optional): Schedule source

        Returns:
            list[FeeLineItem]: one ASSESSED line item per schedule line

        Raises:
            LedgerValidationError: FEE_ITEMS_REQUIRED
            LedgerNotFoundError: APPLICATION_NOT_FOUND
            LedgerStateError: FEE_ITEMS_MISMATCH_WITH_SCHEDULE, schedule configuration errors

        Example:
            FeeAssessmentService.assess('PUDA/2024/DFT/000123', [
                {'feeHeadCode': 'SCRUTINY_FEE', 'amount': 500},
                {'feeHeadCode': 'PROCESSING_FEE', 'amount': 750},
            ])
        """
        if not isinstance(items, list) or not items:
            raise LedgerValidationError('FEE_ITEMS_REQUIRED', "At least one fee item is required")

        application = resolve_application(arn)
        schedule = (resolver or FeeScheduleResolver()).resolve(
            application.service_key, application.authority_id
        )

        if not submitted_items_match(schedule, items):
            raise LedgerStateError(
                'FEE_ITEMS_MISMATCH_WITH_SCHEDULE',
                "Submitted fee items do not match the published fee schedule",
            )

        currency = get_base_currency()
        with transaction.atomic():
            line_items = []
            for line in schedule:
                line_item = FeeLineItem(
                    application=application,
                    fee_head_code=line.fee_type,
                    description=line.description,
                    base_amount=line.amount,
                    calculation_inputs={
                        'serviceKey': line.service_key,
                        'authorityId': line.authority_id,
                        'scheduleAmount': money_out(line.amount),
                    },
                    amount=line.amount,
                    waiver_adjustment=ZERO,
                    currency=currency,
                    status='ASSESSED',
                )
                line_item.save(actor_id=actor_id)
                line_items.append(line_item)

            total = round2(sum((item.amount for item in line_items), ZERO))
            log_financial_activity(
                action='FEE_ASSESS',
                actor_id=actor_id,
                amount=total,
                currency=currency,
                application_arn=application.arn,
                new_values={'lineItems': [[item.fee_head_code, money_out(item.amount)] for item in line_items]},
            )

        logger.info(f"Assessed {len(line_items)} fee line items for {application.arn} (total {total})")
        return line_items

    @staticmethod
    def line_items_for_application(arn):
        application = resolve_application(arn)
        return list(
            FeeLineItem.objects.filter(application=application)
            .select_related('application')
            .order_by('created_at')
        )


# =============================================================================
# DEMAND SERVICE
# =============================================================================

class DemandService:
    """Creates demands over assessed line items and moves them through their lifecycle."""

    @staticmethod
    @transaction.atomic
    def create_demand(arn, line_item_ids, due_date=None, actor_id=None):
        """
        Group ASSESSED line items of one application into a PENDING demand.

        Returns:
            FeeDemand

        Raises:
            LedgerValidationError: LINE_ITEMS_REQUIRED, INVALID_DUE_DATE
            LedgerNotFoundError: APPLICATION_NOT_FOUND
            LedgerStateError: LINE_ITEMS_NOT_ASSESSABLE
        """
        if not isinstance(line_item_ids, list) or not line_item_ids:
            raise LedgerValidationError('LINE_ITEMS_REQUIRED', "At least one line item is required")

        due = None
        if due_date not in (None, ''):
            due = parse_date_only(due_date)
            if due is None:
                raise LedgerValidationError('INVALID_DUE_DATE', f"Invalid due date: {due_date}")

        application = resolve_application(arn)

        requested = [parse_uuid(value) for value in line_item_ids]
        if any(value is None for value in requested) or len(set(requested)) != len(requested):
            raise LedgerStateError(
                'LINE_ITEMS_NOT_ASSESSABLE',
                "Line item ids must be distinct, existing line items",
            )

        line_items = list(
            FeeLineItem.objects.select_for_update()
            .filter(pk__in=requested, application=application, status='ASSESSED')
            .order_by('created_at')
        )
        if len(line_items) != len(requested):
            found = {item.pk for item in line_items}
            missing = [str(value) for value in requested if value not in found]
            raise LedgerStateError(
                'LINE_ITEMS_NOT_ASSESSABLE',
                f"Line items missing, already demanded or not assessed for {arn}: {', '.join(missing)}",
            )

        total = round2(sum((item.final_amount for item in line_items), ZERO))
        demand = FeeDemand(
            application=application,
            total_amount=total,
            paid_amount=ZERO,
            status='PENDING',
            due_date=due,
        )
        demand.save(actor_id=actor_id)

        FeeDemandLine.objects.bulk_create([
            FeeDemandLine(demand=demand, line_item=item) for item in line_items
        ])
        FeeLineItem.objects.filter(pk__in=requested).update(
            status='DEMANDED',
            updated_at=timezone.now(),
            updated_by_id=actor_id,
        )

        log_financial_activity(
            action='DEMAND_CREATE',
            actor_id=actor_id,
            target_object=demand,
            amount=total,
            currency=get_base_currency(),
            application_arn=application.arn,
            new_values={'demandNumber': demand.demand_number, 'lineItemIds': [str(v) for v in requested]},
        )
        logger.info(f"Created demand {demand.demand_number} for {application.arn}: {total}")
        return demand

    @staticmethod
    def apply_payment(demand, amount, actor_id=None):
        """
        Credit ``amount`` to a demand the caller has locked.

        A demand that is no longer payable is returned unchanged. Reaching
        the total marks the demand PAID along with its line items.

        Raises:
            LedgerStateError: PAYMENT_AMOUNT_EXCEEDS_REMAINING_BALANCE
        """
        if not demand.is_payable:
            return demand

        amount = round2(amount)
        new_paid = round2(demand.paid_amount + amount)
        if new_paid > demand.total_amount:
            raise LedgerStateError(
                'PAYMENT_AMOUNT_EXCEEDS_REMAINING_BALANCE',
                f"Payment of {amount} exceeds remaining balance {demand.remaining_balance}",
            )

        demand.paid_amount = new_paid
        if new_paid >= demand.total_amount:
            demand.status = 'PAID'
            demand.paid_at = timezone.now()
            FeeLineItem.objects.filter(demands=demand).update(
                status='PAID',
                updated_at=demand.paid_at,
                updated_by_id=actor_id,
            )
        else:
            demand.status = 'PARTIALLY_PAID'
        demand.save(update_fields=['paid_amount', 'status', 'paid_at'], actor_id=actor_id)

        logger.info(f"Demand {demand.demand_number} credited {amount}: {demand.paid_amount}/{demand.total_amount} ({demand.status})")
        return demand

    @staticmethod
    def _close_pending(demand_id, new_status, line_item_status, action, actor_id, reason):
        demand_pk = parse_uuid(demand_id)
        if demand_pk is None:
            raise _not_found_or_wrong_state("Demand not found or not in PENDING status")

        now = timezone.now()
        with transaction.atomic():
            updated = FeeDemand.objects.filter(pk=demand_pk, status='PENDING').update(
                status=new_status,
                updated_at=now,
                updated_by_id=actor_id,
                change_reason=(reason or '')[:255] or None,
            )
            if not updated:
                raise _not_found_or_wrong_state("Demand not found or not in PENDING status")

            demand = FeeDemand.objects.select_related('application').get(pk=demand_pk)
            FeeLineItem.objects.filter(demands=demand).update(
                status=line_item_status,
                updated_at=now,
                updated_by_id=actor_id,
            )

            log_financial_activity(
                action=action,
                actor_id=actor_id,
                target_object=demand,
                amount=demand.total_amount,
                currency=get_base_currency(),
                application_arn=demand.application.arn,
                old_values={'status': 'PENDING'},
                new_values={'status': new_status},
                notes=reason,
                risk_level='MEDIUM',
            )

        logger.info(f"Demand {demand.demand_number} {new_status.lower()}")
        return demand

    @staticmethod
    def waive_demand(demand_id, actor_id=None, reason=None):
        """
        PENDING -> WAIVED. The demand's line items become WAIVED.

        Raises:
            LedgerNotFoundError: NOT_FOUND_OR_WRONG_STATE
        """
        return DemandService._close_pending(demand_id, 'WAIVED', 'WAIVED', 'DEMAND_WAIVE', actor_id, reason)

    @staticmethod
    def cancel_demand(demand_id, actor_id=None, reason=None):
        """
        PENDING -> CANCELLED. The demand's line items go back to ASSESSED.

        Raises:
            LedgerNotFoundError: NOT_FOUND_OR_WRONG_STATE
        """
        return DemandService._close_pending(demand_id, 'CANCELLED', 'ASSESSED', 'DEMAND_CANCEL', actor_id, reason)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def get_demand(demand_id):
        demand_pk = parse_uuid(demand_id)
        demand = None
        if demand_pk is not None:
            demand = FeeDemand.objects.select_related('application').filter(pk=demand_pk).first()
        if demand is None:
            raise LedgerNotFoundError('DEMAND_NOT_FOUND', f"Demand {demand_id} not found")
        return demand

    @staticmethod
    def demands_for_application(arn):
        application = resolve_application(arn)
        return list(
            FeeDemand.objects.filter(application=application)
            .select_related('application')
            .order_by('created_at')
        )

    @staticmethod
    def pending_demands(arn):
        application = resolve_application(arn)
        return list(
            FeeDemand.objects.filter(application=application, status__in=FeeDemand.PAYABLE_STATUSES)
            .select_related('application')
            .order_by('created_at')
        )


# =============================================================================
# PAYMENT SERVICE
# =============================================================================

class PaymentService:
    """
    Records payments and settles gateway payments.

    Manual modes (challan, NEFT, counter) are settled on entry. Gateway
    modes start INITIATED with a provider order and settle only when a
    correctly signed callback arrives for that order; a second callback for
    an already settled order is rejected as a replay.
    """

    def __init__(self, gateway=None, config=None):
        self.gateway = gateway or get_payment_gateway(config)

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    @transaction.atomic
    def record_payment(self, arn, mode, amount, demand_id=None, currency=None,
                       gateway_order_id=None, gateway_payment_id=None, gateway_signature=None,
                       provider_name=None, provider_transaction_id=None,
                       instrument_number=None, instrument_bank=None, instrument_date=None,
                       receipt_date=None, actor_id=None):
        """
        Record a payment for an application, optionally against a demand.

        Returns:
            Payment: INITIATED for gateway modes, SUCCESS for manual modes

        Raises:
            LedgerValidationError: INVALID_PAYMENT_MODE, PAYMENT_AMOUNT_INVALID,
                INVALID_INSTRUMENT_DATE, INVALID_RECEIPT_DATE
            LedgerNotFoundError: APPLICATION_NOT_FOUND, DEMAND_NOT_FOUND
            LedgerStateError: DEMAND_ARN_MISMATCH, DEMAND_NOT_PAYABLE, DEMAND_ALREADY_PAID,
                PAYMENT_AMOUNT_EXCEEDS_REMAINING_BALANCE, DUPLICATE_GATEWAY_ORDER
            InfrastructureError: PAYMENT_GATEWAY_UNAVAILABLE

        Example:
            PaymentService().record_payment(
                'PUDA/2024/DFT/000123', 'CHALLAN', 1250,
                demand_id=demand.pk, instrument_number='CH-4471',
            )
        """
        mode = _clean_str(mode).upper()
        if mode not in dict(Payment.MODE_CHOICES):
            raise LedgerValidationError('INVALID_PAYMENT_MODE', f"Unsupported payment mode: {mode or '(empty)'}")

        amount_value = None if isinstance(amount, bool) else to_decimal(amount)
        if amount_value is None or amount_value <= 0:
            raise LedgerValidationError('PAYMENT_AMOUNT_INVALID', "Payment amount must be greater than zero")
        amount_value = round2(amount_value)

        instrument_on = self._optional_date(instrument_date, 'INVALID_INSTRUMENT_DATE')
        receipt_on = self._optional_date(receipt_date, 'INVALID_RECEIPT_DATE')

        application = resolve_application(arn)

        demand = None
        if demand_id not in (None, ''):
            demand = self._lock_demand(demand_id)
            if demand.application_id != application.pk:
                raise LedgerStateError('DEMAND_ARN_MISMATCH', f"Demand does not belong to application {arn}")
            if not demand.is_payable:
                raise LedgerStateError('DEMAND_NOT_PAYABLE', f"Demand is {demand.status}")
            remaining = demand.remaining_balance
            if remaining <= ZERO:
                raise LedgerStateError('DEMAND_ALREADY_PAID', "Demand is already paid")
            if amount_value > remaining:
                raise LedgerStateError(
                    'PAYMENT_AMOUNT_EXCEEDS_REMAINING_BALANCE',
                    f"Payment of {amount_value} exceeds remaining balance {remaining}",
                )

        payment = Payment(
            application=application,
            demand=demand,
            mode=mode,
            amount=amount_value,
            currency=_clean_str(currency).upper() or get_base_currency(),
            gateway_order_id=_clean_str(gateway_order_id) or None,
            gateway_payment_id=_clean_str(gateway_payment_id) or None,
            gateway_signature=_clean_str(gateway_signature) or None,
            provider_name=_clean_str(provider_name) or None,
            provider_transaction_id=_clean_str(provider_transaction_id) or None,
            instrument_number=_clean_str(instrument_number) or None,
            instrument_bank=_clean_str(instrument_bank) or None,
            instrument_date=instrument_on,
        )

        if mode in Payment.ASYNC_MODES:
            payment.status = 'INITIATED'
            if not payment.gateway_order_id:
                order = self.gateway.create_order(payment)
                payment.gateway_order_id = order.gateway_order_id
                payment.provider_transaction_id = payment.provider_transaction_id or order.provider_transaction_id
                payment.provider_name = payment.provider_name or order.provider_name
        else:
            payment.status = 'SUCCESS'
            payment.completed_at = timezone.now()
            payment.receipt_number = generate_receipt_number()
            payment.receipt_date = receipt_on or today_utc()

        try:
            with transaction.atomic():
                payment.save(actor_id=actor_id)
        except IntegrityError:
            raise LedgerStateError(
                'DUPLICATE_GATEWAY_ORDER',
                f"Gateway order {payment.gateway_order_id} is already recorded",
            )

        if payment.status == 'SUCCESS' and demand is not None:
            DemandService.apply_payment(demand, amount_value, actor_id=actor_id)

        log_financial_activity(
            action='PAYMENT_RECORD',
            actor_id=actor_id,
            target_object=payment,
            amount=amount_value,
            currency=payment.currency,
            application_arn=application.arn,
            new_values={
                'mode': mode,
                'status': payment.status,
                'demandId': str(demand.pk) if demand else None,
                'gatewayOrderId': payment.gateway_order_id,
                'receiptNumber': payment.receipt_number,
            },
        )
        logger.info(f"Payment {payment.pk} recorded for {application.arn}: {mode} {amount_value} ({payment.status})")
        return payment

    @staticmethod
    def _optional_date(value, code):
        if value in (None, ''):
            return None
        parsed = parse_date_only(value)
        if parsed is None:
            raise LedgerValidationError(code, f"Invalid date: {value}")
        return parsed

    @staticmethod
    def _lock_demand(demand_id):
        demand_pk = parse_uuid(demand_id)
        demand = None
        if demand_pk is not None:
            demand = FeeDemand.objects.select_for_update().filter(pk=demand_pk).first()
        if demand is None:
            raise LedgerNotFoundError('DEMAND_NOT_FOUND', f"Demand {demand_id} not found")
        return demand

    # -------------------------------------------------------------------------
    # Gateway verification
    # -------------------------------------------------------------------------

    def verify_gateway_payment(self, payment_id, gateway_payment_id, gateway_signature, actor_id=None):
        """
        Settle an INITIATED gateway payment from a signed provider callback.

        Integrity and configuration failures are audited after the
        transaction has rolled back, then re-raised.

        Returns:
            Payment: VERIFIED

        Raises:
            LedgerValidationError: PAYMENT_CALLBACK_FIELDS_REQUIRED
            LedgerNotFoundError: PAYMENT_NOT_FOUND, NOT_FOUND_OR_WRONG_STATE
            LedgerStateError: PAYMENT_AMOUNT_EXCEEDS_REMAINING_BALANCE
            PaymentIntegrityError: INVALID_GATEWAY_SIGNATURE, PAYMENT_REPLAY_DETECTED
            PaymentConfigurationError: PAYMENT_SIGNATURE_SECRET_NOT_CONFIGURED
        """
        try:
            return self._verify(payment_id, gateway_payment_id, gateway_signature, actor_id)
        except (PaymentIntegrityError, PaymentConfigurationError) as e:
            self._audit_integrity_failure(e, actor_id, payment_id=payment_id, gateway_payment_id=gateway_payment_id)
            raise

    @transaction.atomic
    def _verify(self, payment_id, gateway_payment_id, gateway_signature, actor_id):
        gateway_payment_id = _clean_str(gateway_payment_id)
        gateway_signature = _clean_str(gateway_signature)
        if not _clean_str(payment_id) or not gateway_payment_id or not gateway_signature:
            raise LedgerValidationError(
                'PAYMENT_CALLBACK_FIELDS_REQUIRED',
                "paymentId, gatewayPaymentId and gatewaySignature are required",
            )

        payment_pk = parse_uuid(payment_id)
        payment = None
        if payment_pk is not None:
            payment = Payment.objects.select_for_update().filter(pk=payment_pk).first()
        if payment is None:
            raise LedgerNotFoundError('PAYMENT_NOT_FOUND', f"Payment {payment_id} not found")

        if not payment.gateway_order_id:
            raise _not_found_or_wrong_state("Payment not found or not in INITIATED status")

        # state errors are only reported to a caller holding a valid signature
        signature = self.gateway.verify_callback_signature(
            payment.gateway_order_id, gateway_payment_id, gateway_signature
        )

        if payment.is_settled:
            raise PaymentIntegrityError('PAYMENT_REPLAY_DETECTED', f"Payment {payment.pk} is already settled")
        if payment.status != 'INITIATED':
            raise _not_found_or_wrong_state("Payment not found or not in INITIATED status")

        replayed = (
            Payment.objects.filter(gateway_payment_id=gateway_payment_id, status__in=Payment.SETTLED_STATUSES)
            .exclude(pk=payment.pk)
            .exists()
        )
        if replayed:
            raise PaymentIntegrityError(
                'PAYMENT_REPLAY_DETECTED',
                f"Gateway payment {gateway_payment_id} already settled another payment",
            )

        now = timezone.now()
        payment.status = 'VERIFIED'
        payment.gateway_payment_id = gateway_payment_id
        payment.gateway_signature = signature
        payment.verified_by_id = actor_id
        payment.verified_at = now
        payment.completed_at = now
        payment.receipt_number = generate_receipt_number()
        payment.receipt_date = today_utc()
        payment.reconciliation_status = self._credit_demand(payment, actor_id)
        payment.save(actor_id=actor_id)

        log_financial_activity(
            action='PAYMENT_VERIFY',
            actor_id=actor_id,
            target_object=payment,
            amount=payment.amount,
            currency=payment.currency,
            application_arn=payment.application.arn,
            old_values={'status': 'INITIATED'},
            new_values={
                'status': payment.status,
                'gatewayPaymentId': gateway_payment_id,
                'receiptNumber': payment.receipt_number,
                'reconciliationStatus': payment.reconciliation_status,
            },
        )
        logger.info(f"Gateway payment {payment.pk} verified (order {payment.gateway_order_id})")
        return payment

    @staticmethod
    def _credit_demand(payment, actor_id):
        """
        Apply a verified payment to its demand; returns the reconciliation status.

        A payment larger than what the demand still owes is rejected, which
        rolls the verification back. A demand that was waived or cancelled
        while the payment was in flight is left alone and the payment is
        flagged for manual review.

        Raises:
            LedgerStateError: PAYMENT_AMOUNT_EXCEEDS_REMAINING_BALANCE
        """
        if payment.demand_id is None:
            return 'RECONCILED'

        demand = FeeDemand.objects.select_for_update().get(pk=payment.demand_id)
        remaining = demand.remaining_balance
        if payment.amount > remaining:
            logger.warning(
                f"Verified payment {payment.pk} of {payment.amount} exceeds the remaining balance "
                f"{remaining} of demand {demand.demand_number} ({demand.status})"
            )
            raise LedgerStateError(
                'PAYMENT_AMOUNT_EXCEEDS_REMAINING_BALANCE',
                f"Payment of {payment.amount} exceeds remaining balance {remaining}",
            )
        if not demand.is_payable:
            logger.warning(
                f"Verified payment {payment.pk} cannot be applied to demand {demand.demand_number} "
                f"({demand.status}); flagged for manual review"
            )
            return 'MANUAL_REVIEW'

        DemandService.apply_payment(demand, payment.amount, actor_id=actor_id)
        return 'RECONCILED'

    def process_gateway_callback(self, data, actor_id=None):
        """
        Handle a provider callback keyed by gateway order id.

        ``data``: ``{gatewayOrderId, gatewayPaymentId, gatewaySignature,
        status: SUCCESS|FAILED, failureReason?}``. The signature is checked
        first. SUCCESS settles the payment; FAILED marks an INITIATED payment
        FAILED without touching the demand and leaves any other payment as it is.

        Returns:
            Payment
        """
        data = data if isinstance(data, dict) else {}
        order_id = _clean_str(data.get('gatewayOrderId'))
        gateway_payment_id = _clean_str(data.get('gatewayPaymentId'))
        gateway_signature = _clean_str(data.get('gatewaySignature'))
        if not order_id or not gateway_payment_id or not gateway_signature:
            raise LedgerValidationError(
                'PAYMENT_CALLBACK_FIELDS_REQUIRED',
                "gatewayOrderId, gatewayPaymentId and gatewaySignature are required",
            )

        status = _clean_str(data.get('status')).upper()
        if status not in ('SUCCESS', 'FAILED'):
            raise LedgerValidationError('INVALID_PAYMENT_STATUS', "status must be SUCCESS or FAILED")

        payment = Payment.objects.filter(gateway_order_id=order_id).first()
        if payment is None:
            raise LedgerNotFoundError('PAYMENT_NOT_FOUND', f"No payment for gateway order {order_id}")

        try:
            self.gateway.verify_callback_signature(order_id, gateway_payment_id, gateway_signature)
        except (PaymentIntegrityError, PaymentConfigurationError) as e:
            self._audit_integrity_failure(e, actor_id, payment_id=payment.pk, gateway_payment_id=gateway_payment_id)
            raise

        if status == 'SUCCESS':
            return self.verify_gateway_payment(payment.pk, gateway_payment_id, gateway_signature, actor_id=actor_id)

        reason = _clean_str(data.get('failureReason')) or 'GATEWAY_CALLBACK_FAILED'
        return self._mark_failed(payment.pk, gateway_payment_id, reason, actor_id)

    @staticmethod
    @transaction.atomic
    def _mark_failed(payment_pk, gateway_payment_id, reason, actor_id):
        payment = Payment.objects.select_for_update().select_related('application').get(pk=payment_pk)
        if payment.status != 'INITIATED':
            # a late failure notice never reopens a settled or already failed payment
            logger.info(f"Ignoring FAILED callback for payment {payment.pk} in status {payment.status}")
            return payment

        payment.status = 'FAILED'
        payment.gateway_payment_id = gateway_payment_id
        payment.failure_reason = reason[:255]
        payment.completed_at = timezone.now()
        payment.save(actor_id=actor_id)

        log_financial_activity(
            action='PAYMENT_FAIL',
            actor_id=actor_id,
            target_object=payment,
            amount=payment.amount,
            currency=payment.currency,
            application_arn=payment.application.arn,
            old_values={'status': 'INITIATED'},
            new_values={'status': 'FAILED', 'failureReason': payment.failure_reason},
            risk_level='MEDIUM',
        )
        logger.info(f"Gateway payment {payment.pk} failed: {payment.failure_reason}")
        return payment

    @staticmethod
    def _audit_integrity_failure(error, actor_id, payment_id=None, gateway_payment_id=None):
        payment = None
        payment_pk = parse_uuid(payment_id)
        if payment_pk is not None:
            payment = Payment.objects.select_related('application').filter(pk=payment_pk).first()

        risk = 'CRITICAL' if isinstance(error, PaymentConfigurationError) else 'HIGH'
        logger.warning(f"Payment integrity failure {error.code} for payment {payment_id}: {error.message}")
        log_financial_activity(
            action='PAYMENT_INTEGRITY_FAILURE',
            actor_id=actor_id,
            target_object=payment,
            amount=payment.amount if payment else None,
            currency=payment.currency if payment else None,
            application_arn=payment.application.arn if payment else None,
            notes=error.message,
            risk_level=risk,
            additional_data={
                'code': error.code,
                'paymentId': str(payment_id) if payment_id else None,
                'gatewayPaymentId': gateway_payment_id or None,
            },
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def get_payment(payment_id):
        payment_pk = parse_uuid(payment_id)
        payment = None
        if payment_pk is not None:
            payment = Payment.objects.select_related('application', 'demand').filter(pk=payment_pk).first()
        if payment is None:
            raise LedgerNotFoundError('PAYMENT_NOT_FOUND', f"Payment {payment_id} not found")
        return payment

    @staticmethod
    def get_payment_by_order(gateway_order_id):
        payment = None
        if _clean_str(gateway_order_id):
            payment = (
                Payment.objects.select_related('application', 'demand')
                .filter(gateway_order_id=_clean_str(gateway_order_id))
                .first()
            )
        if payment is None:
            raise LedgerNotFoundError('PAYMENT_NOT_FOUND', f"No payment for gateway order {gateway_order_id}")
        return payment

    @staticmethod
    def payments_for_application(arn):
        application = resolve_application(arn)
        return list(
            Payment.objects.filter(application=application)
            .select_related('application')
            .order_by('-created_at')
        )

    @staticmethod
    def payments_for_demand(demand_id):
        demand = DemandService.get_demand(demand_id)
        return list(
            Payment.objects.filter(demand=demand)
            .select_related('application')
            .order_by('-created_at')
        )


# =============================================================================
# REFUND SERVICE
# =============================================================================

class RefundService:
    """
    Refund workflow for settled payments.

    REQUESTED -> APPROVED -> PROCESSED, or REQUESTED -> REJECTED.
    """

    @staticmethod
    @transaction.atomic
    def create_refund_request(arn, payment_id, reason, amount, bank_details=None, actor_id=None):
        """
        Raise a refund request against a settled payment of the application.

        Raises:
            LedgerValidationError: REFUND_REASON_REQUIRED, REFUND_AMOUNT_INVALID
            LedgerNotFoundError: APPLICATION_NOT_FOUND, PAYMENT_NOT_FOUND
            LedgerStateError: PAYMENT_NOT_REFUNDABLE, REFUND_AMOUNT_EXCEEDS_PAYMENT, REFUND_ALREADY_ACTIVE
        """
        reason = _clean_str(reason)
        if not reason:
            raise LedgerValidationError('REFUND_REASON_REQUIRED', "A refund reason is required")

        amount_value = None if isinstance(amount, bool) else to_decimal(amount)
        if amount_value is None or amount_value <= 0:
            raise LedgerValidationError('REFUND_AMOUNT_INVALID', "Refund amount must be greater than zero")
        amount_value = round2(amount_value)

        application = resolve_application(arn)

        payment_pk = parse_uuid(payment_id)
        payment = None
        if payment_pk is not None:
            payment = Payment.objects.select_for_update().filter(pk=payment_pk, application=application).first()
        if payment is None:
            raise LedgerNotFoundError('PAYMENT_NOT_FOUND', f"Payment {payment_id} not found for {arn}")

        if not payment.is_settled:
            raise LedgerStateError('PAYMENT_NOT_REFUNDABLE', f"Payment is {payment.status}")
        if amount_value > payment.amount:
            raise LedgerStateError(
                'REFUND_AMOUNT_EXCEEDS_PAYMENT',
                f"Refund of {amount_value} exceeds payment amount {payment.amount}",
            )
        if RefundRequest.objects.filter(payment=payment, status__in=RefundRequest.ACTIVE_STATUSES).exists():
            raise LedgerStateError('REFUND_ALREADY_ACTIVE', "A refund for this payment is already in progress")

        refund = RefundRequest(
            application=application,
            payment=payment,
            reason=reason,
            amount=amount_value,
            bank_details=normalize_bank_details(bank_details),
            status='REQUESTED',
            requested_by_id=actor_id,
        )
        refund.save(actor_id=actor_id)

        log_financial_activity(
            action='REFUND_REQUEST',
            actor_id=actor_id,
            target_object=refund,
            amount=amount_value,
            currency=payment.currency,
            application_arn=application.arn,
            new_values={'refundNumber': refund.refund_number, 'paymentId': str(payment.pk)},
            notes=reason,
            risk_level='MEDIUM',
        )
        logger.info(f"Refund {refund.refund_number} requested for payment {payment.pk}: {amount_value}")
        return refund

    @staticmethod
    def _transition(refund_id, from_status, to_status, action, actor_id, notes=None, risk_level='MEDIUM'):
        refund_pk = parse_uuid(refund_id)
        if refund_pk is None:
            raise _not_found_or_wrong_state(f"Refund not found or not in {from_status} status")

        now = timezone.now()
        fields = {'status': to_status, 'updated_at': now, 'updated_by_id': actor_id}
        if to_status == 'PROCESSED':
            fields.update(processed_by_id=actor_id, processed_at=now)
        else:
            fields.update(decided_by_id=actor_id, decided_at=now)

        with transaction.atomic():
            updated = RefundRequest.objects.filter(pk=refund_pk, status=from_status).update(**fields)
            if not updated:
                raise _not_found_or_wrong_state(f"Refund not found or not in {from_status} status")

            refund = RefundRequest.objects.select_related('application', 'payment').get(pk=refund_pk)
            log_financial_activity(
                action=action,
                actor_id=actor_id,
                target_object=refund,
                amount=refund.amount,
                currency=refund.payment.currency,
                application_arn=refund.application.arn,
                old_values={'status': from_status},
                new_values={'status': to_status},
                notes=notes,
                risk_level=risk_level,
            )

        logger.info(f"Refund {refund.refund_number}: {from_status} -> {to_status}")
        return refund

    @staticmethod
    def approve_refund(refund_id, actor_id=None, notes=None):
        return RefundService._transition(refund_id, 'REQUESTED', 'APPROVED', 'REFUND_APPROVE', actor_id, notes)

    @staticmethod
    def reject_refund(refund_id, actor_id=None, notes=None):
        return RefundService._transition(refund_id, 'REQUESTED', 'REJECTED', 'REFUND_REJECT', actor_id, notes)

    @staticmethod
    def process_refund(refund_id, actor_id=None, notes=None):
        return RefundService._transition(
            refund_id, 'APPROVED', 'PROCESSED', 'REFUND_PROCESS', actor_id, notes, risk_level='HIGH'
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def get_refund(refund_id):
        refund_pk = parse_uuid(refund_id)
        refund = None
        if refund_pk is not None:
            refund = RefundRequest.objects.select_related('application').filter(pk=refund_pk).first()
        if refund is None:
            raise LedgerNotFoundError('REFUND_NOT_FOUND', f"Refund {refund_id} not found")
        return refund

    @staticmethod
    def refunds_for_application(arn):
        application = resolve_application(arn)
        return list(
            RefundRequest.objects.filter(application=application)
            .select_related('application')
            .order_by('-created_at')
        )
