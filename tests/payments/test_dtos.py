from application.dtos.payments import Charge, Customer, Refund, Subscription


def test_subscription_plan_from_object():
    sub = Subscription.model_validate({"id": "sub_1", "customer": "cus_1", "plan": {"id": "plan_A", "amount": 999}})
    assert sub.plan == "plan_A"


def test_subscription_plan_from_items():
    sub = Subscription.model_validate(
        {
            "id": "sub_1",
            "customer": {"id": "cus_1"},
            "status": "active",
            "items": {"object": "list", "data": [{"id": "si_1", "plan": {"id": "plan_B"}}]},
        }
    )
    assert sub.plan == "plan_B"
    assert sub.customer == "cus_1"


def test_unknown_remote_fields_are_kept():
    charge = Charge.model_validate({"id": "ch_1", "amount": 100, "currency": "usd", "livemode": False, "paid": True})
    assert charge.model_extra == {"livemode": False, "paid": True}
    assert charge.amount_refunded == 0


def test_expanded_references_collapse_to_ids():
    customer = Customer.model_validate({"id": "cus_1", "default_source": {"id": "card_1", "object": "card"}})
    assert customer.default_source == "card_1"
    refund = Refund.model_validate({"id": "re_1", "charge": {"id": "ch_1"}, "amount": 50})
    assert refund.charge == "ch_1"
