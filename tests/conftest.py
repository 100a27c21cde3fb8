import hashlib
import hmac
import json
import time
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from restopos import create_app
from restopos import database
from restopos.database import get_session, create_all, drop_all
from restopos.models import Order, Coupon
from restopos.services.stripe_gateway import StripeGateway, CheckoutSession

WEBHOOK_SECRET = 'whsec_test_secret'


class FakeStripeGateway(StripeGateway):
    """
    Stripe gateway double.

    Session creation, expiry and payment-intent lookups are recorded instead of
    hitting the network; webhook signature verification is the real Stripe one.
    """

    def __init__(self):
        super().__init__(secret_key='sk_test_dummy', webhook_secret=WEBHOOK_SECRET)
        self.created = []
        self.expired = []
        self.retrieved = []
        self.payment_method_type = 'card'
        self.create_error = None
        self.retrieve_error = None

    def create_checkout_session(self, order_id, amount, currency, success_url, cancel_url):
        if self.create_error:
            raise self.create_error
        session_id = f'cs_test_{uuid.uuid4().hex[:16]}'
        self.created.append({
            'id': session_id,
            'order_id': order_id,
            'amount': amount,
            'currency': currency,
            'success_url': success_url,
            'cancel_url': cancel_url,
        })
        return CheckoutSession(id=session_id, url=f'https://checkout.stripe.test/c/pay/{session_id}')

    def expire_checkout_session(self, session_id):
        self.expired.append(session_id)

    def retrieve_payment_method_type(self, payment_intent_id):
        self.retrieved.append(payment_intent_id)
        if self.retrieve_error:
            raise self.retrieve_error
        if not payment_intent_id:
            return None
        return self.payment_method_type


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header for a raw payload."""
    timestamp = timestamp or int(time.time())
    signed = f'{timestamp}.'.encode('utf-8') + payload
    signature = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={signature}'


def checkout_completed_event(order_id='42', session_id='cs_test_a1', payment_intent='pi_test_a1',
                             payment_method_types=('card', 'promptpay')):
    """Minimal checkout.session.completed event body."""
    metadata = {'orderId': order_id} if order_id is not None else {}
    return {
        'id': f'evt_{uuid.uuid4().hex[:16]}',
        'object': 'event',
        'type': 'checkout.session.completed',
        'data': {
            'object': {
                'id': session_id,
                'object': 'checkout.session',
                'payment_intent': payment_intent,
                'payment_method_types': list(payment_method_types),
                'metadata': metadata,
            }
        },
    }


def fresh(session, model, pk):
    """Reload a row after a request committed through another session."""
    session.expire_all()
    return session.get(model, pk)


@pytest.fixture(scope='function')
def app():
    """Create application instance backed by an in-memory database."""
    app = create_app('config.TestingConfig')
    app.extensions['stripe_gateway'] = FakeStripeGateway()
    create_all()
    yield app
    database.db_session.remove()
    drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def gateway(app):
    return app.extensions['stripe_gateway']


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def make_order(session):
    """Factory for orders; returns the persisted Order."""
    def _make_order(**overrides):
        fields = {
            'table_number': '5',
            'number_of_customers': 2,
            'items': [
                {'id': 1, 'name': 'Pad Thai', 'price': 6000, 'quantity': 1},
                {'id': 2, 'name': 'Thai Iced Tea', 'price': 2000, 'quantity': 2},
            ],
            'total_price': Decimal('10000'),
        }
        fields.update(overrides)
        order = Order(**fields)
        session.add(order)
        session.commit()
        return order
    return _make_order


@pytest.fixture(scope='function')
def make_coupon(session):
    """Factory for coupons valid from yesterday until next week."""
    def _make_coupon(**overrides):
        now = datetime.now(timezone.utc)
        fields = {
            'code': f'CODE{uuid.uuid4().hex[:6].upper()}',
            'discount_type': 'percentage',
            'discount_value': Decimal('10'),
            'start_date': now - timedelta(days=1),
            'expiration_date': now + timedelta(days=7),
            'max_uses': None,
            'times_used': 0,
        }
        fields.update(overrides)
        coupon = Coupon(**fields)
        session.add(coupon)
        session.commit()
        return coupon
    return _make_coupon


@pytest.fixture(scope='function')
def post_webhook(client):
    """Deliver a signed webhook event to the Stripe endpoint."""
    def _post(event, secret=WEBHOOK_SECRET, signature=None):
        payload = json.dumps(event).encode('utf-8')
        headers = {'Stripe-Signature': signature if signature is not None else sign_payload(payload, secret)}
        return client.post('/webhooks/stripe', data=payload, headers=headers, content_type='application/json')
    return _post
