import pytest

from orderflow.catalog import ProductCatalogue, to_money
from orderflow.engine import StepStatus, build_context
from orderflow.flows import CHECKOUT_FLOW


async def _run(engine, step_id, current, accumulated=None):
    snapshot = build_context("order-1", CHECKOUT_FLOW, step_id, current, accumulated or {})
    return await engine.execute(step_id, snapshot)


def _cart(subtotal, requires_shipping=True):
    return {
        "line_items": [{"sku": "MUG-001", "name": "Ceramic mug", "quantity": 1, "line_total": subtotal}],
        "subtotal": subtotal,
        "currency": "EUR",
        "requires_shipping": requires_shipping,
    }


def test_catalogue_prices_lines(catalogue):
    line = catalogue.price_line("mug-001", 3)

    assert line["sku"] == "MUG-001"
    assert line["unit_price"] == "12.00"
    assert line["line_total"] == "36.00"
    assert line["requires_shipping"] is True
    assert "LAMP-OLD" not in [p.sku for p in catalogue.list_products()]
    assert "LAMP-OLD" in [p.sku for p in catalogue.list_products(include_inactive=True)]
    with pytest.raises(KeyError):
        catalogue.price_line("NOPE", 1)


def test_to_money_rounds_half_up():
    from decimal import Decimal

    assert to_money(Decimal("1.005")) == "1.01"
    assert to_money(Decimal("2")) == "2.00"


@pytest.mark.asyncio
async def test_customer_details_are_normalized(engine):
    response = await _run(
        engine,
        "customer_details",
        {"full_name": "  Jane Doe ", "email": "Jane@Example.com", "phone_number": "+44 20 7946 0958"},
    )

    assert response.status is StepStatus.IN_PROGRESS
    assert response.next_step == "line_items"
    assert response.validated_input == {"full_name": "Jane Doe", "email": "jane@example.com", "phone_number": "442079460958"}
    assert response.message == "Thanks Jane, what would you like to order?"
    assert response.frontend_data["form"]["products"]


@pytest.mark.asyncio
async def test_customer_details_report_every_bad_field(engine):
    response = await _run(engine, "customer_details", {"full_name": "J", "email": "not-an-email", "phone_number": "12"})

    assert response.status is StepStatus.INVALID
    assert set(response.field_errors) == {"full_name", "email", "phone_number"}


@pytest.mark.asyncio
async def test_line_items_are_priced_into_backend_data(engine):
    response = await _run(
        engine,
        "line_items",
        {"items": [{"sku": "MUG-001", "quantity": 2}, {"sku": "kettle-01", "quantity": "1"}, {"sku": "MUG-001", "quantity": 1}]},
    )

    assert response.next_step == "delivery"
    assert response.validated_input["items"] == ({"sku": "MUG-001", "quantity": 3}, {"sku": "KETTLE-01", "quantity": 1})
    assert response.backend_data["subtotal"] == "125.00"
    assert response.backend_data["requires_shipping"] is True
    assert [line["line_total"] for line in response.backend_data["line_items"]] == ["36.00", "89.00"]
    assert response.frontend_data["cart"]["subtotal"] == "125.00"
    assert "unit_price" not in response.frontend_data["cart"]["lines"][0]


@pytest.mark.asyncio
async def test_digital_only_basket_skips_delivery(engine):
    response = await _run(engine, "line_items", {"items": [{"sku": "EBOOK-GUIDE", "quantity": 1}]})

    assert response.next_step == "payment_method"
    assert response.backend_data["requires_shipping"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "items, field",
    [
        ([], "items"),
        (None, "items"),
        ([{"sku": "NOPE", "quantity": 1}], "items[0].sku"),
        ([{"sku": "LAMP-OLD", "quantity": 1}], "items[0].sku"),
        ([{"quantity": 1}], "items[0].sku"),
        ([{"sku": "MUG-001", "quantity": 0}], "items[0].quantity"),
        ([{"sku": "MUG-001", "quantity": "two"}], "items[0].quantity"),
        ([{"sku": "MUG-001", "quantity": 101}], "items[0].quantity"),
        ([{"sku": "MUG-001", "quantity": 60}, {"sku": "MUG-001", "quantity": 60}], "items"),
        (["MUG-001"], "items[0]"),
    ],
)
async def test_line_items_rejections(engine, items, field):
    response = await _run(engine, "line_items", {"items": items})

    assert response.status is StepStatus.INVALID
    assert field in response.field_errors
    assert response.backend_data == {}


@pytest.mark.asyncio
async def test_standard_delivery_is_free_over_threshold(engine):
    payload = {"delivery_method": "standard", "address": "1 High Street", "city": "Bristol", "postal_code": "bs1 4dj"}

    cheap = await _run(engine, "delivery", payload, _cart("24.00"))
    large = await _run(engine, "delivery", payload, _cart("125.00"))

    assert cheap.backend_data == {"delivery_fee": "4.95"}
    assert large.backend_data == {"delivery_fee": "0.00"}
    assert cheap.validated_input["postal_code"] == "BS1 4DJ"
    assert large.frontend_data["delivery"] == {"method": "standard", "fee": "0.00"}


@pytest.mark.asyncio
async def test_pickup_needs_no_address(engine):
    response = await _run(engine, "delivery", {"delivery_method": "Pickup"}, _cart("24.00"))

    assert response.validated_input == {"delivery_method": "pickup"}
    assert response.backend_data == {"delivery_fee": "0.00"}


@pytest.mark.asyncio
async def test_home_delivery_needs_an_address(engine):
    response = await _run(engine, "delivery", {"delivery_method": "express"}, _cart("24.00"))

    assert set(response.field_errors) == {"address", "city", "postal_code"}


@pytest.mark.asyncio
async def test_invoice_needs_minimum_subtotal_and_company(engine):
    small = await _run(engine, "payment_method", {"payment_method": "invoice"}, _cart("24.00"))
    large = await _run(engine, "payment_method", {"payment_method": "invoice", "company_name": "Acme"}, _cart("600.00"))

    assert set(small.field_errors) == {"payment_method", "company_name"}
    assert "500.00 EUR" in small.field_errors["payment_method"]
    assert large.backend_data == {"payment": {"method": "invoice", "status": "pending"}}
    assert large.frontend_data["payment"]["label"] == "Invoice (30 days)"


@pytest.mark.asyncio
async def test_mobile_money_falls_back_to_customer_phone(engine):
    accumulated = dict(_cart("24.00"), phone_number="447700900123")
    response = await _run(engine, "payment_method", {"payment_method": "mobile_money"}, accumulated)

    assert response.validated_input["mobile_money_number"] == "447700900123"


@pytest.mark.asyncio
async def test_review_computes_totals(engine):
    accumulated = dict(_cart("113.00"), delivery_fee="12.50", full_name="Jane Doe", delivery_method="express", payment={"method": "card", "status": "pending"})

    response = await _run(engine, "review", {"confirm": True}, accumulated)

    assert response.status is StepStatus.COMPLETE
    assert response.next_step is None
    assert response.backend_data["totals"] == {
        "subtotal": "113.00",
        "delivery_fee": "12.50",
        "tax": "25.10",
        "total": "150.60",
        "currency": "EUR",
    }
    assert "confirmed_at" in response.backend_data
    assert response.frontend_data["summary"]["payment_method"] == "card"
    assert response.message == "Your order is confirmed."


@pytest.mark.asyncio
async def test_review_ignores_delivery_fee_for_digital_orders(engine):
    accumulated = dict(_cart("9.99", requires_shipping=False), delivery_fee="4.95")

    response = await _run(engine, "review", {"confirm": "yes"}, accumulated)

    assert response.backend_data["totals"]["delivery_fee"] == "0.00"
    assert response.backend_data["totals"]["tax"] == "2.00"
    assert response.backend_data["totals"]["total"] == "11.99"
    assert response.frontend_data["summary"]["delivery_method"] is None


@pytest.mark.asyncio
async def test_review_requires_confirmation_and_items(engine):
    unconfirmed = await _run(engine, "review", {"confirm": False}, _cart("24.00"))
    empty = await _run(engine, "review", {"confirm": True}, {})

    assert unconfirmed.field_errors == {"confirm": "Please confirm the order to continue"}
    assert empty.field_errors == {"line_items": "Your basket is empty"}


FORGED_TOTALS = {
    "subtotal": "0.01",
    "delivery_fee": "0",
    "requires_shipping": False,
    "currency": "USD",
    "line_items": [],
    "totals": {"total": "0.01"},
}


@pytest.mark.asyncio
async def test_delivery_fee_uses_the_priced_subtotal(engine):
    payload = dict(
        FORGED_TOTALS,
        subtotal="500.00",
        delivery_method="standard",
        address="1 High Street",
        city="Bristol",
        postal_code="BS1 4DJ",
    )

    response = await _run(engine, "delivery", payload, _cart("24.00"))

    assert response.backend_data == {"delivery_fee": "4.95"}
    assert set(response.validated_input) == {"delivery_method", "address", "city", "postal_code"}


@pytest.mark.asyncio
async def test_invoice_minimum_uses_the_priced_subtotal(engine):
    payload = {"payment_method": "invoice", "company_name": "ACME", "subtotal": "99999"}

    response = await _run(engine, "payment_method", payload, _cart("113.00"))

    assert response.status is StepStatus.INVALID
    assert set(response.field_errors) == {"payment_method"}
    assert response.backend_data == {}


@pytest.mark.asyncio
async def test_mobile_money_ignores_phone_number_in_the_payment_payload(engine):
    payload = {"payment_method": "mobile_money", "phone_number": "447700900123"}

    response = await _run(engine, "payment_method", payload, _cart("24.00"))

    assert response.field_errors == {"mobile_money_number": "Phone number is required"}


@pytest.mark.asyncio
async def test_review_totals_ignore_values_sent_with_the_confirmation(engine):
    accumulated = dict(_cart("113.00"), delivery_fee="12.50", full_name="Jane Doe", delivery_method="express")

    response = await _run(engine, "review", dict(FORGED_TOTALS, confirm=True), accumulated)

    assert response.backend_data["totals"] == {
        "subtotal": "113.00",
        "delivery_fee": "12.50",
        "tax": "25.10",
        "total": "150.60",
        "currency": "EUR",
    }
    assert response.validated_input == {"confirm": True}
    summary = response.frontend_data["summary"]
    assert summary["delivery_method"] == "express"
    assert len(summary["lines"]) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("step_id", ["customer_details", "line_items", "delivery", "payment_method", "review"])
async def test_unknown_payload_keys_never_reach_backend_data(engine, step_id, checkout_payloads):
    payload = dict(dict(checkout_payloads)[step_id], **FORGED_TOTALS, is_admin=True)
    accumulated = dict(_cart("113.00"), delivery_fee="0.00", phone_number="447700900123")

    response = await _run(engine, step_id, payload, accumulated)

    assert response.is_valid
    assert "is_admin" not in response.persistable()
    for key in ("subtotal", "delivery_fee", "currency", "totals"):
        assert response.persistable().get(key) != FORGED_TOTALS[key]


def test_catalogue_lookup_is_case_insensitive():
    from decimal import Decimal

    from orderflow.catalog import Product

    catalogue = ProductCatalogue([Product("ABC-1", "Thing", Decimal("1.50"))], currency="GBP")
    assert catalogue.get(" abc-1 ").name == "Thing"
    assert catalogue.get(None) is None
