# fees/views.py

"""
Fee Management Views

JSON endpoints for:
- Fee assessment and line items
- Demands (create, waive, cancel, reads)
- Payments (record, gateway verification and callbacks, receipts)
- Refund requests and their approval workflow

Every endpoint answers ``{"success": true, ...}`` or the shared error
body produced by ``json_endpoint``.
"""

import logging

from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from fees.models import FeeDemand
from fees.receipts import receipt_filename, render_payment_receipt
from fees.services import DemandService, FeeAssessmentService, PaymentService, RefundService
from utils.utils import get_actor_id, json_endpoint, parse_json_body

logger = logging.getLogger(__name__)


# =============================================================================
# ASSESSMENT
# =============================================================================

@csrf_exempt
@require_POST
@json_endpoint
def assess_fees(request):
    """
    Body: ``{"arn": "...", "items": [{"feeHeadCode": "...", "amount": 500}]}``
    """
    data = parse_json_body(request)
    line_items = FeeAssessmentService.assess(
        data.get("arn"),
        data.get("items"),
        actor_id=get_actor_id(request),
    )
    return JsonResponse({"success": True, "lineItems": [item.to_dict() for item in line_items]}, status=201)


@require_GET
@json_endpoint
def line_items_for_application(request, arn):
    line_items = FeeAssessmentService.line_items_for_application(arn)
    return JsonResponse({"success": True, "lineItems": [item.to_dict() for item in line_items]})


# =============================================================================
# DEMANDS
# =============================================================================

@csrf_exempt
@require_POST
@json_endpoint
def create_demand(request):
    """
    Body: ``{"arn": "...", "lineItemIds": ["..."], "dueDate": "2024-09-30"}``
    """
    data = parse_json_body(request)
    demand = DemandService.create_demand(
        data.get("arn"),
        data.get("lineItemIds"),
        due_date=data.get("dueDate"),
        actor_id=get_actor_id(request),
    )
    return JsonResponse({"success": True, "demand": demand.to_dict(include_lines=True)}, status=201)


@require_GET
@json_endpoint
def demand_detail(request, demand_id):
    demand = DemandService.get_demand(demand_id)
    return JsonResponse({"success": True, "demand": demand.to_dict(include_lines=True)})


@require_GET
@json_endpoint
def demands_for_application(request, arn):
    demands = DemandService.demands_for_application(arn)
    return JsonResponse({"success": True, "demands": [demand.to_dict() for demand in demands]})


@require_GET
@json_endpoint
def pending_demands(request, arn):
    demands = DemandService.pending_demands(arn)
    return JsonResponse({"success": True, "demands": [demand.to_dict() for demand in demands]})


@csrf_exempt
@require_POST
@json_endpoint
def waive_demand(request, demand_id):
    data = parse_json_body(request)
    demand = DemandService.waive_demand(demand_id, actor_id=get_actor_id(request), reason=data.get("reason"))
    return JsonResponse({"success": True, "demand": demand.to_dict()})


@csrf_exempt
@require_POST
@json_endpoint
def cancel_demand(request, demand_id):
    data = parse_json_body(request)
    demand = DemandService.cancel_demand(demand_id, actor_id=get_actor_id(request), reason=data.get("reason"))
    return JsonResponse({"success": True, "demand": demand.to_dict()})


# =============================================================================
# PAYMENTS
# =============================================================================

def _payment_payload(payment):
    payload = {"success": True, "payment": payment.to_dict()}
    if payment.demand_id:
        payload["demand"] = FeeDemand.objects.select_related('application').get(pk=payment.demand_id).to_dict()
    return payload


@csrf_exempt
@require_POST
@json_endpoint
def record_payment(request):
    """
    Body: ``{"arn", "mode", "amount", "demandId"?, "instrumentNumber"?, ...}``
    """
    data = parse_json_body(request)
    payment = PaymentService().record_payment(
        data.get("arn"),
        data.get("mode"),
        data.get("amount"),
        demand_id=data.get("demandId"),
        currency=data.get("currency"),
        gateway_order_id=data.get("gatewayOrderId"),
        gateway_payment_id=data.get("gatewayPaymentId"),
        gateway_signature=data.get("gatewaySignature"),
        provider_name=data.get("providerName"),
        provider_transaction_id=data.get("providerTransactionId"),
        instrument_number=data.get("instrumentNumber"),
        instrument_bank=data.get("instrumentBank"),
        instrument_date=data.get("instrumentDate"),
        receipt_date=data.get("receiptDate"),
        actor_id=get_actor_id(request),
    )
    return JsonResponse(_payment_payload(payment), status=201)


@require_GET
@json_endpoint
def payment_detail(request, payment_id):
    payment = PaymentService.get_payment(payment_id)
    return JsonResponse({"success": True, "payment": payment.to_dict()})


@require_GET
@json_endpoint
def payments_for_application(request, arn):
    payments = PaymentService.payments_for_application(arn)
    return JsonResponse({"success": True, "payments": [payment.to_dict() for payment in payments]})


@csrf_exempt
@require_POST
@json_endpoint
def verify_payment(request, payment_id):
    """
    Body: ``{"gatewayPaymentId": "...", "gatewaySignature": "..."}``
    """
    data = parse_json_body(request)
    payment = PaymentService().verify_gateway_payment(
        payment_id,
        data.get("gatewayPaymentId"),
        data.get("gatewaySignature"),
        actor_id=get_actor_id(request),
    )
    return JsonResponse(_payment_payload(payment))


@csrf_exempt
@require_POST
@json_endpoint
def gateway_callback(request):
    """
    Provider callback.

    Body: ``{"gatewayOrderId", "gatewayPaymentId", "gatewaySignature",
    "status": "SUCCESS"|"FAILED", "failureReason"?}``
    """
    data = parse_json_body(request)
    payment = PaymentService().process_gateway_callback(data, actor_id=get_actor_id(request))
    return JsonResponse(_payment_payload(payment))


@require_GET
@json_endpoint
def payment_receipt(request, payment_id):
    payment = PaymentService.get_payment(payment_id)
    pdf = render_payment_receipt(payment)

    response = HttpResponse(pdf, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{receipt_filename(payment)}"'
    return response


# =============================================================================
# REFUNDS
# =============================================================================

@csrf_exempt
@require_POST
@json_endpoint
def create_refund(request):
    """
    Body: ``{"arn", "paymentId", "reason", "amount", "bankDetails"?}``
    """
    data = parse_json_body(request)
    refund = RefundService.create_refund_request(
        data.get("arn"),
        data.get("paymentId"),
        data.get("reason"),
        data.get("amount"),
        bank_details=data.get("bankDetails"),
        actor_id=get_actor_id(request),
    )
    return JsonResponse({"success": True, "refund": refund.to_dict()}, status=201)


@require_GET
@json_endpoint
def refunds_for_application(request, arn):
    refunds = RefundService.refunds_for_application(arn)
    return JsonResponse({"success": True, "refunds": [refund.to_dict() for refund in refunds]})


REFUND_TRANSITIONS = {
    'approve': RefundService.approve_refund,
    'reject': RefundService.reject_refund,
    'process': RefundService.process_refund,
}


@csrf_exempt
@require_POST
@json_endpoint
def refund_transition(request, refund_id, action):
    data = parse_json_body(request)
    refund = REFUND_TRANSITIONS[action](refund_id, actor_id=get_actor_id(request), notes=data.get("notes"))
    return JsonResponse({"success": True, "refund": refund.to_dict()})
