"""
Tests for the Stripe webhook endpoint
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
import stripe
from sqlalchemy import select

from config import settings
from database_models import User
from tests.conftest import make_user

WEBHOOK_URL = "/api/webhooks/stripe"
SIGNED = {"stripe-signature": "t=1,v1=deadbeef"}


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")


def _event(event_type, obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


def _subscription(sub_id, period_end, price_id="price_pro", on_item=False):
    item = {"price": {"id": price_id}}
    subscription = {"id": sub_id, "items": {"data": [item]}}
    if on_item:
        item["current_period_end"] = int(period_end.timestamp())
    else:
        subscription["current_period_end"] = int(period_end.timestamp())
    return subscription


def _user_row(sync_db, user_id):
    return sync_db.execute(
        select(User.stripe_subscription_id, User.stripe_price_id, User.stripe_current_period_end)
        .where(User.id == user_id)
    ).one()


def test_missing_signature_is_rejected(client):
    response = client.post(WEBHOOK_URL, content=b"{}")
    assert response.status_code == 400
    assert response.json() == {"error": "Missing signature or webhook secret"}


def test_missing_secret_is_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", None)
    response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNED)
    assert response.status_code == 400


def test_bad_signature_is_rejected(client):
    error = stripe.SignatureVerificationError("No signatures found", "t=1,v1=deadbeef")
    with patch("stripe.Webhook.construct_event", side_effect=error):
        response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNED)

    assert response.status_code == 400
    assert response.json() == {"error": "Webhook signature verification failed"}


@pytest.mark.parametrize("on_item", [False, True])
def test_checkout_completed_attaches_subscription(client, sync_db, on_item):
    user = make_user(sync_db)
    period_end = datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc)
    event = _event("checkout.session.completed", {
        "mode": "subscription",
        "subscription": "sub_new",
        "metadata": {"userId": user.id},
    })

    with patch("stripe.Webhook.construct_event", return_value=event), \
            patch("stripe.Subscription.retrieve",
                  return_value=_subscription("sub_new", period_end, on_item=on_item)) as retrieve:
        response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNED)

    assert response.status_code == 200
    assert response.json() == {"received": True}
    retrieve.assert_called_once_with("sub_new")

    row = _user_row(sync_db, user.id)
    assert row.stripe_subscription_id == "sub_new"
    assert row.stripe_price_id == "price_pro"
    assert row.stripe_current_period_end == datetime(2030, 5, 1, 12, 0)


def test_checkout_completed_in_payment_mode_is_ignored(client, sync_db):
    user = make_user(sync_db)
    event = _event("checkout.session.completed", {"mode": "payment", "metadata": {"userId": user.id}})

    with patch("stripe.Webhook.construct_event", return_value=event), \
            patch("stripe.Subscription.retrieve") as retrieve:
        response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNED)

    assert response.status_code == 200
    retrieve.assert_not_called()
    assert _user_row(sync_db, user.id).stripe_subscription_id is None


def test_payment_succeeded_extends_period(client, sync_db):
    user = make_user(sync_db, subscription_id="sub_1", period_end=datetime.utcnow() - timedelta(hours=1))
    bystander = make_user(sync_db, email="bystander@example.com")
    new_end = datetime(2031, 1, 1, tzinfo=timezone.utc)
    event = _event("invoice.payment_succeeded", {"subscription": "sub_1"})

    with patch("stripe.Webhook.construct_event", return_value=event), \
            patch("stripe.Subscription.retrieve", return_value=_subscription("sub_1", new_end)):
        response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNED)

    assert response.status_code == 200
    assert _user_row(sync_db, user.id).stripe_current_period_end == datetime(2031, 1, 1)
    assert _user_row(sync_db, bystander.id).stripe_current_period_end is None


def test_subscription_deleted_clears_fields(client, sync_db):
    user = make_user(
        sync_db,
        subscription_id="sub_gone",
        price_id="price_pro",
        period_end=datetime.utcnow() + timedelta(days=5),
    )
    event = _event("customer.subscription.deleted", {"id": "sub_gone"})

    with patch("stripe.Webhook.construct_event", return_value=event):
        response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNED)

    assert response.status_code == 200
    assert tuple(_user_row(sync_db, user.id)) == (None, None, None)


def test_unhandled_event_is_acknowledged(client):
    with patch("stripe.Webhook.construct_event", return_value=_event("customer.created", {"id": "cus_1"})):
        response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNED)

    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_handler_failure_is_500(client, sync_db):
    user = make_user(sync_db)
    event = _event("checkout.session.completed", {
        "mode": "subscription",
        "subscription": "sub_new",
        "metadata": {"userId": user.id},
    })

    with patch("stripe.Webhook.construct_event", return_value=event), \
            patch("stripe.Subscription.retrieve", side_effect=RuntimeError("stripe down")):
        response = client.post(WEBHOOK_URL, content=b"{}", headers=SIGNED)

    assert response.status_code == 500
    assert response.json() == {"error": "Webhook handler error"}
