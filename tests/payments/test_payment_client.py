import pytest

from application.dtos.payments import Charge, Customer, Refund, RemoteResource, Subscription
from application.ports.payment_gateway import PaymentGateway
from application.services.payment_client import PaymentClient
from domain.common.exceptions import (
    AlreadyRefundedError,
    ConfigurationError,
    NotFoundError,
    PaymentDeclinedError,
    RemoteServiceError,
    ValidationError,
)


class StubGateway(PaymentGateway):
    """Records every request and answers with canned remote objects."""

    provider = "stub"

    def __init__(self):
        self.requests = []

    def retrieve(self, session, resource, resource_id):  # type: ignore[override]
        self.requests.append(("retrieve", resource, resource_id, None))
        return {"id": resource_id, "object": resource.value, "customer": "cus_1", "amount": 100, "currency": "usd", "charge": "ch_1"}

    def create(self, session, resource, payload, options=None):  # type: ignore[override]
        self.requests.append(("create", resource, dict(payload), options))
        if resource is RemoteResource.CUSTOMER:
            return {"id": "cus_new", **payload}
        if resource is RemoteResource.SUBSCRIPTION:
            return {"id": "sub_1", "customer": payload["customer"], "plan": {"id": payload["plan"]}}
        if resource is RemoteResource.CHARGE:
            return {"id": "ch_1", "amount": payload["amount"], "currency": payload["currency"]}
        return {"id": "re_1", "charge": payload["charge"], "amount": payload.get("amount", 100)}


@pytest.fixture
def stub():
    return StubGateway()


@pytest.fixture
def stub_client(stub):
    return PaymentClient("sk_test_stub", gateway=stub)


def _last_create(stub):
    kind, resource, payload, options = stub.requests[-1]
    assert kind == "create"
    return resource, payload, options


@pytest.mark.parametrize("api_key", ["", "   ", None])
def test_empty_secret_rejected_before_any_call(stub, api_key):
    with pytest.raises(ConfigurationError):
        PaymentClient(api_key, gateway=stub)  # type: ignore[arg-type]
    assert stub.requests == []


def test_session_secret_is_masked(stub_client):
    assert "sk_test_stub" not in repr(stub_client.session)
    assert "sk_test_stub" not in repr(stub_client)
    assert stub_client.session.secret() == "sk_test_stub"


def test_create_charge_payload_is_verbatim(stub, stub_client):
    charge = stub_client.create_charge(2000, "usd", "tok_visa")
    resource, payload, options = _last_create(stub)
    assert resource is RemoteResource.CHARGE
    assert payload == {"amount": 2000, "currency": "usd", "source": "tok_visa"}
    assert options == {}
    assert isinstance(charge, Charge)
    assert charge.amount == 2000


@pytest.mark.parametrize(
    "fee,expected",
    [(0, None), (150, 150), (-5, None), (150.9, 150), ("42", 42), (None, None)],
)
def test_application_fee_included_only_when_positive(stub, stub_client, fee, expected):
    stub_client.create_charge(1000, "eur", "tok_visa", application_fee=fee)
    _, payload, _ = _last_create(stub)
    if expected is None:
        assert "application_fee" not in payload
    else:
        assert payload["application_fee"] == expected
        assert isinstance(payload["application_fee"], int)


def test_application_fee_must_be_numeric(stub, stub_client):
    with pytest.raises(ValidationError):
        stub_client.create_charge(1000, "eur", "tok_visa", application_fee="lots")
    assert stub.requests == []


def test_connected_account_routes_through_options_only(stub, stub_client):
    stub_client.create_charge(1000, "usd", "tok_visa", connected_account_id="acct_123", application_fee=100)
    _, payload, options = _last_create(stub)
    assert options == {"stripe_account": "acct_123"}
    assert "acct_123" not in payload.values()
    assert "stripe_account" not in payload

    stub_client.charge_customer(1000, "usd", "cus_1", connected_account_id="acct_456")
    _, payload, options = _last_create(stub)
    assert options == {"stripe_account": "acct_456"}
    assert "stripe_account" not in payload

    stub_client.charge_customer(1000, "usd", "cus_1", connected_account_id="")
    _, _, options = _last_create(stub)
    assert options == {}


def test_charge_customer_references_customer_not_source(stub, stub_client):
    stub_client.charge_customer(
        500, "gbp", "cus_1", description="Order #1", metadata={"order_id": "1"}
    )
    _, payload, _ = _last_create(stub)
    assert payload == {
        "amount": 500,
        "currency": "gbp",
        "customer": "cus_1",
        "description": "Order #1",
        "metadata": {"order_id": "1"},
    }


@pytest.mark.parametrize(
    "amount,currency",
    [(-1, "usd"), (10.5, "usd"), (True, "usd"), ("100", "usd"), (100, "us"), (100, "u$d"), (100, None)],
)
def test_malformed_amount_or_currency_rejected_locally(stub, stub_client, amount, currency):
    with pytest.raises(ValidationError):
        stub_client.create_charge(amount, currency, "tok_visa")
    assert stub.requests == []


def test_create_customer_omits_missing_email(stub, stub_client):
    customer = stub_client.create_customer("tok_visa")
    _, payload, _ = _last_create(stub)
    assert payload == {"source": "tok_visa"}
    assert isinstance(customer, Customer)

    stub_client.create_customer("tok_visa", "a@b.com")
    _, payload, _ = _last_create(stub)
    assert payload == {"source": "tok_visa", "email": "a@b.com"}


def test_subscribe_new_customer_without_coupon(stub, stub_client):
    customer = stub_client.subscribe_customer_to_plan("plan_A", "tok_1", "a@b.com")
    assert [r[1] for r in stub.requests] == [RemoteResource.CUSTOMER, RemoteResource.SUBSCRIPTION]
    assert stub.requests[0][2] == {"source": "tok_1", "email": "a@b.com"}
    assert stub.requests[1][2] == {"customer": "cus_new", "plan": "plan_A"}
    assert customer.id == "cus_new"


def test_subscribe_new_customer_with_coupon(stub, stub_client):
    stub_client.subscribe_customer_to_plan("plan_A", "tok_1", "a@b.com", "COUP1")
    _, payload, _ = _last_create(stub)
    assert payload == {"customer": "cus_new", "plan": "plan_A", "coupon": "COUP1"}


def test_subscribe_new_customer_empty_coupon_is_omitted(stub, stub_client):
    stub_client.subscribe_customer_to_plan("plan_A", "tok_1", "a@b.com", "")
    _, payload, _ = _last_create(stub)
    assert "coupon" not in payload


def test_existing_customer_mandatory_fields_win(stub, stub_client):
    sub = stub_client.subscribe_existing_customer_to_plan(
        "cus_1", "plan_A", {"plan": "plan_B", "customer": "cus_2", "trial_end": 123}
    )
    _, payload, _ = _last_create(stub)
    assert payload == {"plan": "plan_A", "customer": "cus_1", "trial_end": 123}
    assert isinstance(sub, Subscription)
    assert sub.plan == "plan_A"


def test_existing_customer_extra_parameters_not_mutated(stub, stub_client):
    extra = {"plan": "plan_B"}
    stub_client.subscribe_existing_customer_to_plan("cus_1", "plan_A", extra)
    assert extra == {"plan": "plan_B"}


def test_refund_full_by_default(stub, stub_client):
    refund = stub_client.refund_charge("ch_1")
    resource, payload, options = _last_create(stub)
    assert resource is RemoteResource.REFUND
    assert payload == {
        "charge": "ch_1",
        "reason": "requested_by_customer",
        "refund_application_fee": True,
        "reverse_transfer": False,
    }
    assert options == {}
    assert isinstance(refund, Refund)


def test_refund_partial_with_routing(stub, stub_client):
    stub_client.refund_charge(
        "ch_1", 500, metadata={"ticket": "42"}, reason="duplicate",
        refund_application_fee=False, reverse_transfer=True, connected_account_id="acct_1",
    )
    _, payload, options = _last_create(stub)
    assert payload["amount"] == 500
    assert payload["metadata"] == {"ticket": "42"}
    assert payload["reason"] == "duplicate"
    assert payload["refund_application_fee"] is False
    assert payload["reverse_transfer"] is True
    assert options == {"stripe_account": "acct_1"}


def test_refund_reason_passed_through_unvalidated(stub, stub_client):
    stub_client.refund_charge("ch_1", reason="changed_my_mind")
    _, payload, _ = _last_create(stub)
    assert payload["reason"] == "changed_my_mind"


@pytest.mark.parametrize(
    "method,resource",
    [
        ("retrieve_coupon", RemoteResource.COUPON),
        ("retrieve_plan", RemoteResource.PLAN),
        ("retrieve_customer", RemoteResource.CUSTOMER),
        ("retrieve_charge", RemoteResource.CHARGE),
    ],
)
def test_retrieve_performs_one_read(stub, stub_client, method, resource):
    obj = getattr(stub_client, method)("x_1")
    assert stub.requests == [("retrieve", resource, "x_1", None)]
    assert obj.id == "x_1"


def test_retrieve_requires_identifier(stub, stub_client):
    with pytest.raises(ValidationError):
        stub_client.retrieve_plan("")
    assert stub.requests == []


def test_unexpected_remote_payload_is_remote_error(stub_client, monkeypatch):
    monkeypatch.setattr(stub_client.gateway, "retrieve", lambda *a: {"object": "charge"})
    with pytest.raises(RemoteServiceError):
        stub_client.retrieve_charge("ch_1")


# Behaviour against the in-memory platform


def test_subscription_failure_leaves_customer_in_place(client, gateway):
    with pytest.raises(NotFoundError) as info:
        client.subscribe_customer_to_plan("plan_missing", "tok_1", "a@b.com")
    assert info.value.resource == "plan"
    assert len(gateway.objects(RemoteResource.CUSTOMER)) == 1
    assert gateway.objects(RemoteResource.SUBSCRIPTION) == []
    # step 2 was attempted exactly once
    assert [c.resource for c in gateway.calls] == [RemoteResource.CUSTOMER, RemoteResource.SUBSCRIPTION]


def test_declined_token_creates_no_customer(client, gateway):
    with pytest.raises(PaymentDeclinedError):
        client.subscribe_customer_to_plan("plan_A", "tok_chargeDeclined", "a@b.com")
    assert gateway.objects(RemoteResource.CUSTOMER) == []
    assert [c.resource for c in gateway.calls] == [RemoteResource.CUSTOMER]


def test_subscription_with_coupon_end_to_end(client, gateway):
    customer = client.subscribe_customer_to_plan("plan_A", "tok_visa", "a@b.com", "COUP1")
    subs = gateway.objects(RemoteResource.SUBSCRIPTION)
    assert len(subs) == 1
    assert subs[0]["customer"] == customer.id
    assert subs[0]["coupon"] == "COUP1"
    assert customer.email == "a@b.com"
    assert customer.default_source == "tok_visa"


def test_existing_customer_unknown_ids_not_found(client):
    with pytest.raises(NotFoundError):
        client.subscribe_existing_customer_to_plan("cus_missing", "plan_A")


def test_charge_then_refund_lifecycle(client):
    charge = client.create_charge(1000, "usd", "tok_visa", description="Ticket")
    partial = client.refund_charge(charge.id, 400)
    assert partial.amount == 400
    rest = client.refund_charge(charge.id)
    assert rest.amount == 600
    assert client.retrieve_charge(charge.id).refunded is True
    with pytest.raises(AlreadyRefundedError):
        client.refund_charge(charge.id)


def test_refund_unknown_charge_not_found(client):
    with pytest.raises(NotFoundError):
        client.refund_charge("ch_missing")


def test_retrieve_unknown_coupon_not_found(client):
    with pytest.raises(NotFoundError):
        client.retrieve_coupon("NOPE")
    assert client.retrieve_coupon("COUP1").percent_off == 25.0


def test_wrong_secret_surfaces_remote_error(gateway):
    other = PaymentClient("sk_test_wrong", gateway=gateway)
    with pytest.raises(RemoteServiceError) as info:
        other.retrieve_plan("plan_A")
    assert info.value.provider_code == "authentication_error"
    assert info.value.http_status == 401


def test_charge_customer_on_connected_account(client, gateway):
    customer = client.create_customer("tok_visa", "a@b.com")
    charge = client.charge_customer(1000, "usd", customer.id, connected_account_id="acct_9", application_fee=150)
    assert charge.customer == customer.id
    assert charge.application_fee_amount == 150
    assert gateway.calls[-1].options == {"stripe_account": "acct_9"}
