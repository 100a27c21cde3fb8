"""
Integration tests for Stripe webhook settlement.
"""

import json

from conftest import checkout_completed_event, fresh, sign_payload
from restopos.models import Order, Payment, WebhookEvent


def payments_for(session, order_id):
    session.expire_all()
    return session.query(Payment).filter(Payment.order_id == order_id).all()


class TestCheckoutCompleted:

    def test_order_marked_paid_with_card(self, client, gateway, session, post_webhook, make_order):
        order_id = make_order(status='waiting-for-payment').id
        event = checkout_completed_event(order_id=str(order_id), session_id='cs_test_a1', payment_intent='pi_test_a1')

        response = post_webhook(event)

        assert response.status_code == 200
        assert response.get_json() == {'received': True}

        order = fresh(session, Order, order_id)
        assert order.status == 'paid'
        assert order.stripe_session_id == 'cs_test_a1'

        payments = payments_for(session, order_id)
        assert len(payments) == 1
        assert payments[0].payment_method == 'card'
        assert payments[0].payment_status == 'succeeded'
        assert payments[0].payment_intent_id == 'pi_test_a1'
        assert gateway.retrieved == ['pi_test_a1']

    def test_promptpay_payment(self, gateway, session, post_webhook, make_order):
        order_id = make_order().id
        gateway.payment_method_type = 'promptpay'

        post_webhook(checkout_completed_event(order_id=str(order_id)))

        assert payments_for(session, order_id)[0].payment_method == 'promptpay'

    def test_falls_back_to_declared_method_types(self, gateway, session, post_webhook, make_order):
        order_id = make_order().id
        gateway.payment_method_type = None

        post_webhook(checkout_completed_event(order_id=str(order_id), payment_method_types=('card', 'promptpay')))

        assert fresh(session, Order, order_id).status == 'paid'
        assert payments_for(session, order_id)[0].payment_method == 'card,promptpay'

    def test_event_is_logged(self, session, post_webhook, make_order):
        order_id = make_order().id

        post_webhook(checkout_completed_event(order_id=str(order_id), session_id='cs_test_log'))

        session.expire_all()
        entry = session.query(WebhookEvent).filter(WebhookEvent.resource_id == 'cs_test_log').one()
        assert entry.status == WebhookEvent.PROCESSED
        assert entry.processed_at is not None
        assert entry.event_type == 'checkout.session.completed'

    def test_alias_endpoint(self, client, session, make_order):
        order_id = make_order().id
        payload = json.dumps(checkout_completed_event(order_id=str(order_id))).encode('utf-8')

        response = client.post('/webhooks/provider', data=payload,
                               headers={'Stripe-Signature': sign_payload(payload)},
                               content_type='application/json')

        assert response.status_code == 200
        assert fresh(session, Order, order_id).status == 'paid'


class TestRedelivery:

    def test_duplicate_delivery_records_one_payment(self, session, post_webhook, make_order):
        order_id = make_order().id
        event = checkout_completed_event(order_id=str(order_id), session_id='cs_test_dup')

        first = post_webhook(event)
        second = post_webhook(event)

        assert first.status_code == 200
        assert second.status_code == 200
        assert len(payments_for(session, order_id)) == 1
        assert session.query(WebhookEvent).filter(WebhookEvent.resource_id == 'cs_test_dup').count() == 1

    def test_cancelled_order_is_not_reopened(self, session, post_webhook, make_order):
        order_id = make_order(status='cancelled').id

        response = post_webhook(checkout_completed_event(order_id=str(order_id)))

        assert response.status_code == 200
        assert fresh(session, Order, order_id).status == 'cancelled'
        assert len(payments_for(session, order_id)) == 1


class TestSignature:

    def test_invalid_signature_rejected(self, client, gateway, session, post_webhook, make_order):
        order_id = make_order().id

        response = post_webhook(checkout_completed_event(order_id=str(order_id)), secret='whsec_wrong')

        assert response.status_code == 400
        assert 'error' in response.get_json()
        assert fresh(session, Order, order_id).status == 'in-progress'
        assert payments_for(session, order_id) == []
        assert session.query(WebhookEvent).count() == 0
        assert gateway.retrieved == []

    def test_missing_signature_header(self, client, session, make_order):
        order_id = make_order().id
        payload = json.dumps(checkout_completed_event(order_id=str(order_id))).encode('utf-8')

        response = client.post('/webhooks/stripe', data=payload, content_type='application/json')

        assert response.status_code == 400
        assert fresh(session, Order, order_id).status == 'in-progress'

    def test_tampered_payload_rejected(self, client, session, make_order):
        order_id = make_order().id
        payload = json.dumps(checkout_completed_event(order_id=str(order_id))).encode('utf-8')
        signature = sign_payload(payload)
        tampered = payload.replace(b'cs_test_a1', b'cs_test_zz')

        response = client.post('/webhooks/stripe', data=tampered,
                               headers={'Stripe-Signature': signature},
                               content_type='application/json')

        assert response.status_code == 400
        assert payments_for(session, order_id) == []


class TestIgnoredEvents:

    def test_other_event_types_acknowledged(self, session, post_webhook, make_order):
        order_id = make_order().id
        event = checkout_completed_event(order_id=str(order_id))
        event['type'] = 'payment_intent.succeeded'

        response = post_webhook(event)

        assert response.status_code == 200
        assert response.get_json() == {'received': True}
        assert fresh(session, Order, order_id).status == 'in-progress'
        assert payments_for(session, order_id) == []

    def test_missing_order_id_metadata(self, session, post_webhook):
        response = post_webhook(checkout_completed_event(order_id=None))

        assert response.status_code == 200
        session.expire_all()
        assert session.query(Payment).count() == 0

    def test_non_numeric_order_id(self, session, post_webhook):
        response = post_webhook(checkout_completed_event(order_id='table-5'))

        assert response.status_code == 200
        session.expire_all()
        assert session.query(Payment).count() == 0

    def test_unknown_order(self, session, post_webhook):
        response = post_webhook(checkout_completed_event(order_id='4242', session_id='cs_test_ghost'))

        assert response.status_code == 200
        session.expire_all()
        assert session.query(Payment).count() == 0
        entry = session.query(WebhookEvent).filter(WebhookEvent.resource_id == 'cs_test_ghost').one()
        assert entry.status == WebhookEvent.IGNORED

    def test_processing_error_still_acknowledged(self, gateway, session, post_webhook, make_order):
        order_id = make_order().id
        gateway.retrieve_error = RuntimeError('network down')

        response = post_webhook(checkout_completed_event(order_id=str(order_id)))

        assert response.status_code == 200
        assert fresh(session, Order, order_id).status == 'in-progress'
        assert payments_for(session, order_id) == []
