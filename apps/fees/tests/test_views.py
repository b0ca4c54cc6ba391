import json
import uuid

import pytest

from fees.models import FeeDemand, Payment

pytestmark = pytest.mark.django_db

ITEMS = [
    {'feeHeadCode': 'SCRUTINY_FEE', 'amount': 500},
    {'feeHeadCode': 'PROCESSING_FEE', 'amount': 750},
]


def post_json(client, url, payload=None, **extra):
    return client.post(url, data=json.dumps(payload or {}), content_type='application/json', **extra)


@pytest.fixture
def demand_id(client, application):
    assessed = post_json(client, '/fees/assess/', {'arn': application.arn, 'items': ITEMS})
    ids = [item['id'] for item in assessed.json()['lineItems']]
    created = post_json(client, '/fees/demands/', {'arn': application.arn, 'lineItemIds': ids, 'dueDate': '2024-09-30'})
    return created.json()['demand']['id']


def test_assess(client, application):
    response = post_json(client, '/fees/assess/', {'arn': application.arn, 'items': ITEMS}, HTTP_X_ACTOR_ID='officer-1')

    assert response.status_code == 201
    line_items = response.json()['lineItems']
    assert sorted((item['feeHeadCode'], item['amount']) for item in line_items) == [
        ('PROCESSING_FEE', 750.0), ('SCRUTINY_FEE', 500.0),
    ]
    assert all(item['createdBy'] == 'officer-1' for item in line_items)

    listed = client.get(f"/fees/line-items/{application.arn}/")
    assert len(listed.json()['lineItems']) == 2


def test_assess_mismatch(client, application):
    response = post_json(client, '/fees/assess/', {'arn': application.arn, 'items': ITEMS[:1]})

    assert response.status_code == 409
    assert response.json()['error']['code'] == 'FEE_ITEMS_MISMATCH_WITH_SCHEDULE'
    assert response.json()['error']['category'] == 'STATE_CONFLICT'


def test_demand_lifecycle(client, application, demand_id):
    detail = client.get(f"/fees/demands/{demand_id}/").json()['demand']
    assert detail['totalAmount'] == 1250.0
    assert detail['dueDate'] == '2024-09-30'
    assert len(detail['lineItems']) == 2

    assert len(client.get(f"/fees/demands/pending/{application.arn}/").json()['demands']) == 1

    waived = post_json(client, f"/fees/demands/{demand_id}/waive/", {'reason': 'Committee order'})
    assert waived.status_code == 200
    assert waived.json()['demand']['status'] == 'WAIVED'

    again = post_json(client, f"/fees/demands/{demand_id}/cancel/")
    assert again.status_code == 404
    assert again.json()['error']['code'] == 'NOT_FOUND_OR_WRONG_STATE'

    listed = client.get(f"/fees/demands/for-application/{application.arn}/").json()['demands']
    assert [d['status'] for d in listed] == ['WAIVED']
    assert client.get(f"/fees/demands/pending/{application.arn}/").json()['demands'] == []


def test_overpayment_rejected(client, application, demand_id, gateway_settings):
    response = post_json(client, '/fees/payments/', {
        'arn': application.arn, 'mode': 'CHALLAN', 'amount': 1300, 'demandId': demand_id,
    })

    assert response.status_code == 409
    assert response.json()['error']['code'] == 'PAYMENT_AMOUNT_EXCEEDS_REMAINING_BALANCE'


def test_manual_payment_and_receipt(client, application, demand_id, gateway_settings):
    response = post_json(client, '/fees/payments/', {
        'arn': application.arn, 'mode': 'COUNTER', 'amount': 1250, 'demandId': demand_id,
    })

    assert response.status_code == 201
    body = response.json()
    assert body['payment']['status'] == 'SUCCESS'
    assert body['demand']['status'] == 'PAID'

    receipt = client.get(f"/fees/payments/{body['payment']['id']}/receipt/")
    assert receipt.status_code == 200
    assert receipt['Content-Type'] == 'application/pdf'
    assert 'receipt_RCPT-000001.pdf' in receipt['Content-Disposition']

    listed = client.get(f"/fees/payments/for-application/{application.arn}/").json()['payments']
    assert [p['id'] for p in listed] == [body['payment']['id']]


def test_gateway_flow_with_replay(client, application, demand_id, gateway_settings, sign):
    created = post_json(client, '/fees/payments/', {
        'arn': application.arn, 'mode': 'GATEWAY', 'amount': 1250, 'demandId': demand_id,
    }).json()['payment']
    signature = sign(created['gatewayOrderId'], 'pay_777')

    verified = post_json(client, f"/fees/payments/{created['id']}/verify/", {
        'gatewayPaymentId': 'pay_777', 'gatewaySignature': signature,
    })
    assert verified.status_code == 200
    assert verified.json()['payment']['status'] == 'VERIFIED'
    assert verified.json()['demand']['status'] == 'PAID'

    replay = post_json(client, '/fees/payments/callback/', {
        'gatewayOrderId': created['gatewayOrderId'],
        'gatewayPaymentId': 'pay_777',
        'gatewaySignature': signature,
        'status': 'SUCCESS',
    })
    assert replay.status_code == 409
    assert replay.json()['error'] == {
        'code': 'PAYMENT_REPLAY_DETECTED',
        'message': replay.json()['error']['message'],
        'category': 'INTEGRITY',
        'retryable': False,
    }
    assert FeeDemand.objects.get(pk=demand_id).paid_amount == 1250


def test_failed_callback(client, application, gateway_settings, sign):
    created = post_json(client, '/fees/payments/', {'arn': application.arn, 'mode': 'UPI', 'amount': 10}).json()['payment']

    response = post_json(client, '/fees/payments/callback/', {
        'gatewayOrderId': created['gatewayOrderId'],
        'gatewayPaymentId': 'pay_1',
        'gatewaySignature': sign(created['gatewayOrderId'], 'pay_1'),
        'status': 'FAILED',
        'failureReason': 'USER_CANCELLED',
    })

    assert response.status_code == 200
    assert response.json()['payment']['failureReason'] == 'USER_CANCELLED'
    assert Payment.objects.get(pk=created['id']).status == 'FAILED'


def test_missing_secret_is_a_server_error(client, application, settings):
    settings.PAYMENT_GATEWAY = {'PROVIDER': 'stub', 'WEBHOOK_SECRET': ''}
    created = post_json(client, '/fees/payments/', {'arn': application.arn, 'mode': 'UPI', 'amount': 10}).json()['payment']

    response = post_json(client, f"/fees/payments/{created['id']}/verify/", {
        'gatewayPaymentId': 'pay_1', 'gatewaySignature': 'abcd',
    })

    assert response.status_code == 500
    assert response.json()['error']['code'] == 'PAYMENT_SIGNATURE_SECRET_NOT_CONFIGURED'


def test_refund_workflow(client, application, gateway_settings):
    payment = post_json(client, '/fees/payments/', {'arn': application.arn, 'mode': 'NEFT', 'amount': 1000}).json()['payment']

    created = post_json(client, '/fees/refunds/', {
        'arn': application.arn, 'paymentId': payment['id'], 'reason': 'Withdrawn', 'amount': 1000,
    })
    assert created.status_code == 201
    refund_id = created.json()['refund']['id']

    assert post_json(client, f"/fees/refunds/{refund_id}/approve/").json()['refund']['status'] == 'APPROVED'
    assert post_json(client, f"/fees/refunds/{refund_id}/process/").json()['refund']['status'] == 'PROCESSED'

    second = post_json(client, f"/fees/refunds/{refund_id}/approve/")
    assert second.status_code == 404
    assert second.json()['error']['code'] == 'NOT_FOUND_OR_WRONG_STATE'

    listed = client.get(f"/fees/refunds/for-application/{application.arn}/").json()['refunds']
    assert [r['status'] for r in listed] == ['PROCESSED']


def test_unknown_payment(client, db):
    response = client.get(f"/fees/payments/{uuid.uuid4()}/")
    assert response.status_code == 404
    assert response.json()['error']['code'] == 'PAYMENT_NOT_FOUND'


def test_invalid_json_and_methods(client, db):
    response = client.post('/fees/payments/', data='[1, 2]', content_type='application/json')
    assert response.status_code == 400
    assert response.json()['error']['code'] == 'INVALID_JSON'

    assert client.get('/fees/assess/').status_code == 405
