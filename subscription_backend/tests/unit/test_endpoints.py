"""Tests for the subscription API routes."""

import pytest
from fastapi.testclient import TestClient

from subscription_backend.main import app
from subscription_backend.src.billing.endpoints.dependencies import get_subscription_service, http_error_for
from subscription_backend.src.billing.shared.exceptions import (
    BillingError,
    CircuitBreakerOpenError,
    PaymentError,
    ReconciliationFault,
    SubscriptionError,
    ValidationError,
)

BASE = '/api/v1/subscriptions'

CARD = {'token': 'pm_card_visa', 'last4': '4242', 'exp_month': 5, 'exp_year': 2030}


@pytest.fixture
def client(service):
    app.dependency_overrides[get_subscription_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def create(client, **overrides):
    payload = {'subscriber_id': 'acct-1', 'email': 'owner@example.com', 'user_count': 3, 'plan': 'basic'}
    payload.update(overrides)
    response = client.post(BASE, json=payload)
    assert response.status_code == 201
    return response.json()


class TestSubscriptionRoutes:
    """Tests for the subscription lifecycle over HTTP."""

    def test_create_and_get(self, client):
        created = create(client, discount_code='welcome5')

        response = client.get(f"{BASE}/{created['id']}")

        assert response.status_code == 200
        body = response.json()
        assert body['state'] == 'trial'
        assert body['amount'] == '5.00'
        assert body['discount']['code'] == 'WELCOME5'
        assert body['needs_payment_info'] is True

    def test_unknown_plan_is_rejected(self, client):
        response = client.post(BASE, json={'subscriber_id': 'acct-1', 'plan': 'platinum'})
        assert response.status_code == 400

    def test_unknown_subscription_is_404(self, client):
        response = client.get(f"{BASE}/missing")
        assert response.status_code == 404
        assert response.json()['detail']['error'] == 'SUBSCRIPTION_NOT_FOUND'

    def test_store_card_when_due_charges(self, client, gateway):
        created = create(client, next_renewal_at='2026-03-14T00:00:00+00:00')

        response = client.post(f"{BASE}/{created['id']}/card", json=CARD)

        assert response.status_code == 200
        body = response.json()
        assert body['state'] == 'active'
        assert body['card_number'] == 'XXXX-XXXX-XXXX-4242'
        assert gateway.calls_for('purchase')[0].args == (1000, 'cus_123')

        payments = client.get(f"{BASE}/{created['id']}/payments").json()
        assert [p['amount'] for p in payments] == ['10.00']

    def test_affiliate_linked_subscription_earns_commission(self, client):
        created = create(
            client,
            affiliate={'token': 'partner', 'rate': '0.10'},
            next_renewal_at='2026-03-14T00:00:00+00:00'
        )
        assert created['affiliate'] == {'token': 'partner', 'rate': '0.10'}

        client.post(f"{BASE}/{created['id']}/card", json=CARD)

        [payment] = client.get(f"{BASE}/{created['id']}/payments").json()
        assert payment['affiliate'] == 'partner'
        assert payment['affiliate_amount'] == '1.00'

    def test_affiliate_rate_above_one_is_422(self, client):
        payload = {'subscriber_id': 'acct-1', 'plan': 'basic', 'affiliate': {'token': 'partner', 'rate': '1.5'}}
        assert client.post(BASE, json=payload).status_code == 422

    def test_declined_card_is_402(self, client, gateway):
        created = create(client, next_renewal_at='2026-03-14T00:00:00+00:00')
        gateway.fail('purchase', 'Your card was declined.')

        response = client.post(f"{BASE}/{created['id']}/card", json=CARD)

        assert response.status_code == 402
        assert response.json()['detail']['message'] == 'Your card was declined.'
        assert client.get(f"{BASE}/{created['id']}").json()['billing_id'] is None

    def test_invalid_card_payload_is_422(self, client):
        created = create(client)
        response = client.post(f"{BASE}/{created['id']}/card", json={**CARD, 'exp_month': 13})
        assert response.status_code == 422

    def test_switch_plan_over_user_limit_is_422(self, client):
        created = create(client)

        response = client.put(f"{BASE}/{created['id']}/plan", json={'plan': 'free'})

        assert response.status_code == 422
        assert response.json()['detail']['message'] == 'User limit for new plan would be exceeded.'

    def test_discount_and_amount_override(self, client):
        created = create(client, plan='premium')

        overridden = client.put(f"{BASE}/{created['id']}/amount", json={'amount': '12.50'}).json()
        assert overridden['amount'] == '12.50'
        assert overridden['amount_overridden'] is True

        discounted = client.put(f"{BASE}/{created['id']}/discount", json={'code': 'WELCOME5'}).json()
        assert discounted['amount'] == '45.00'
        assert discounted['amount_overridden'] is False

    def test_charge_and_cancel(self, client, gateway):
        created = create(client, next_renewal_at='2026-04-01T00:00:00+00:00')
        client.post(f"{BASE}/{created['id']}/card", json=CARD)

        charged = client.post(f"{BASE}/{created['id']}/charge").json()
        assert charged['next_renewal_at'].startswith('2026-05-01')

        response = client.delete(f"{BASE}/{created['id']}")
        assert response.json() == {'success': True, 'subscription_id': created['id']}
        assert gateway.calls_for('unstore')[0].args == ('cus_123',)
        assert client.get(f"{BASE}/{created['id']}").status_code == 404


class TestHttpErrorMapping:

    @pytest.mark.parametrize('error, status_code', [
        (ValidationError('bad'), 422),
        (PaymentError('declined'), 402),
        (SubscriptionError('gone', code='SUBSCRIPTION_NOT_FOUND'), 404),
        (CircuitBreakerOpenError(), 503),
        (ReconciliationFault(), 500),
        (BillingError('other'), 400),
    ])
    def test_status_codes(self, error, status_code):
        exc = http_error_for(error)
        assert exc.status_code == status_code
        assert exc.detail == error.to_dict()
