"""
Checkout flow - Collect customer details, line items, delivery and payment
method, then confirm the order with computed totals.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from orderflow.catalog import ProductCatalogue, to_money
from orderflow.config import PricingConfig
from orderflow.engine.context import ContextSnapshot
from orderflow.engine.frozen import FrozenDict
from orderflow.engine.nodes import FieldSpec, FlowDefinition, StepNode, StepOutput
from orderflow.validation import (
    add_error,
    parse_int,
    raise_if_errors,
    require_bool,
    require_str,
    validate_email,
    validate_in,
    validate_length_range,
    validate_phone,
    validate_postal_code,
)

logger = logging.getLogger(__name__)

FLOW_NAME = "checkout"

MAX_QUANTITY = 100

DELIVERY_METHODS = ("standard", "express", "pickup")
PAYMENT_METHODS = ("card", "mobile_money", "invoice")

PAYMENT_LABELS = {
    "card": "Card",
    "mobile_money": "Mobile money",
    "invoice": "Invoice (30 days)",
}


def _decimal(value: Any, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    return Decimal(str(value))


class CustomerDetailsStep(StepNode):
    step_id = "customer_details"
    title = "Your details"
    fields = (
        FieldSpec("full_name", "Full name"),
        FieldSpec("email", "Email", type="email"),
        FieldSpec("phone_number", "Phone number", type="tel"),
    )

    def validate(self, context: ContextSnapshot) -> Dict[str, Any]:
        payload = context.current
        errors: Dict[str, str] = {}
        full_name = validate_length_range(payload, "full_name", errors, min_len=2, max_len=100, label="Full name")
        email = validate_email(payload.get("email"), errors)
        phone = validate_phone(payload.get("phone_number"), errors)
        raise_if_errors(errors)
        return {"full_name": full_name, "email": email, "phone_number": phone}

    def compute(self, context: ContextSnapshot, validated: FrozenDict) -> StepOutput:
        first_name = validated["full_name"].split()[0]
        return StepOutput(
            frontend_data={"customer": {"name": validated["full_name"], "email": validated["email"]}},
            message=f"Thanks {first_name}, what would you like to order?",
        )


class LineItemsStep(StepNode):
    step_id = "line_items"
    title = "Your basket"
    fields = (
        FieldSpec(
            "items",
            "Items",
            type="line_items",
            help=f"List of {{sku, quantity}}; quantity 1-{MAX_QUANTITY} per product",
        ),
    )

    def __init__(self, catalogue: ProductCatalogue):
        self.catalogue = catalogue

    def form(self) -> Dict[str, Any]:
        out = super().form()
        out["products"] = [
            {"sku": p.sku, "name": p.name, "unit_price": to_money(p.unit_price)}
            for p in self.catalogue.list_products()
        ]
        return out

    def validate(self, context: ContextSnapshot) -> Dict[str, Any]:
        errors: Dict[str, str] = {}
        items = context.current.get("items")

        if not isinstance(items, (list, tuple)) or not items:
            add_error(errors, "items", "Add at least one item")
            raise_if_errors(errors)

        quantities: Dict[str, int] = {}
        for idx, item in enumerate(items):
            prefix = f"items[{idx}]"
            if not isinstance(item, Mapping):
                add_error(errors, prefix, "Each item needs a sku and a quantity")
                continue

            item_errors: Dict[str, str] = {}
            sku = require_str(item, "sku", item_errors, label="SKU")
            if item_errors:
                add_error(errors, f"{prefix}.sku", item_errors["sku"])
                continue
            product = self.catalogue.get(sku)
            if product is None:
                add_error(errors, f"{prefix}.sku", f"Unknown product '{sku}'")
                continue
            if not product.active:
                add_error(errors, f"{prefix}.sku", f"{product.name} is no longer available")
                continue

            qty = parse_int(item, "quantity", item_errors, min_value=1, max_value=MAX_QUANTITY, required=True, label="Quantity")
            if item_errors:
                add_error(errors, f"{prefix}.quantity", item_errors["quantity"])
                continue
            quantities[product.sku] = quantities.get(product.sku, 0) + qty

        for sku, qty in quantities.items():
            if qty > MAX_QUANTITY:
                add_error(errors, "items", f"At most {MAX_QUANTITY} of {sku} per order")

        raise_if_errors(errors)
        return {"items": [{"sku": sku, "quantity": qty} for sku, qty in quantities.items()]}

    def compute(self, context: ContextSnapshot, validated: FrozenDict) -> StepOutput:
        lines: List[Dict[str, Any]] = [self.catalogue.price_line(i["sku"], i["quantity"]) for i in validated["items"]]
        subtotal = sum((Decimal(line["line_total"]) for line in lines), Decimal("0"))
        requires_shipping = any(line["requires_shipping"] for line in lines)

        logger.info("[Checkout] order_id=%s priced %d lines subtotal=%s", context.order_id, len(lines), subtotal)

        return StepOutput(
            backend_data={
                "line_items": lines,
                "subtotal": to_money(subtotal),
                "currency": self.catalogue.currency,
                "requires_shipping": requires_shipping,
            },
            frontend_data={
                "cart": {
                    "lines": [{"name": l["name"], "quantity": l["quantity"], "line_total": l["line_total"]} for l in lines],
                    "subtotal": to_money(subtotal),
                    "currency": self.catalogue.currency,
                }
            },
        )

    def route(self, context: ContextSnapshot, validated: FrozenDict, flow: FlowDefinition) -> Optional[str]:
        products = [self.catalogue.get(i["sku"]) for i in validated["items"]]
        needs_delivery = any(p.requires_shipping for p in products if p is not None)
        if not needs_delivery and flow.has_step(PaymentMethodStep.step_id):
            return PaymentMethodStep.step_id
        return super().route(context, validated, flow)


class DeliveryStep(StepNode):
    step_id = "delivery"
    title = "Delivery"
    fields = (
        FieldSpec("delivery_method", "Delivery method", type="select", options=DELIVERY_METHODS),
        FieldSpec("address", "Street address", required=False, help="Required unless collecting in store"),
        FieldSpec("city", "City", required=False),
        FieldSpec("postal_code", "Postal code", required=False),
    )

    def __init__(self, pricing: PricingConfig):
        self.pricing = pricing

    def validate(self, context: ContextSnapshot) -> Dict[str, Any]:
        payload = context.current
        errors: Dict[str, str] = {}
        method = validate_in(payload.get("delivery_method"), DELIVERY_METHODS, errors, "delivery_method")
        out: Dict[str, Any] = {"delivery_method": method}

        if method and method != "pickup":
            out["address"] = require_str(payload, "address", errors, label="Street address")
            out["city"] = require_str(payload, "city", errors, label="City")
            out["postal_code"] = validate_postal_code(payload.get("postal_code"), errors)

        raise_if_errors(errors)
        return out

    def _fee(self, method: str, subtotal: Decimal) -> Decimal:
        fee = getattr(self.pricing.delivery_fees, method)
        threshold = self.pricing.free_delivery_threshold
        if method == "standard" and threshold is not None and subtotal >= threshold:
            return Decimal("0")
        return fee

    def compute(self, context: ContextSnapshot, validated: FrozenDict) -> StepOutput:
        subtotal = _decimal(context.accumulated.get("subtotal"))
        fee = self._fee(validated["delivery_method"], subtotal)
        return StepOutput(
            backend_data={"delivery_fee": to_money(fee)},
            frontend_data={"delivery": {"method": validated["delivery_method"], "fee": to_money(fee)}},
        )


class PaymentMethodStep(StepNode):
    step_id = "payment_method"
    title = "Payment"
    fields = (
        FieldSpec("payment_method", "Payment method", type="select", options=PAYMENT_METHODS),
        FieldSpec("company_name", "Company name", required=False, help="Required for invoice payment"),
        FieldSpec("mobile_money_number", "Mobile money number", type="tel", required=False),
    )

    def __init__(self, pricing: PricingConfig):
        self.pricing = pricing

    def validate(self, context: ContextSnapshot) -> Dict[str, Any]:
        payload = context.current
        errors: Dict[str, str] = {}
        method = validate_in(payload.get("payment_method"), PAYMENT_METHODS, errors, "payment_method")
        out: Dict[str, Any] = {"payment_method": method}

        if method == "invoice":
            subtotal = _decimal(context.accumulated.get("subtotal"))
            if subtotal < self.pricing.invoice_minimum:
                add_error(
                    errors,
                    "payment_method",
                    f"Invoice payment needs an order of at least {to_money(self.pricing.invoice_minimum)} {self.pricing.currency}",
                )
            out["company_name"] = require_str(payload, "company_name", errors, label="Company name")
        elif method == "mobile_money":
            number = payload.get("mobile_money_number") or context.accumulated.get("phone_number")
            out["mobile_money_number"] = validate_phone(number, errors, field="mobile_money_number")

        raise_if_errors(errors)
        return out

    def compute(self, context: ContextSnapshot, validated: FrozenDict) -> StepOutput:
        method = validated["payment_method"]
        return StepOutput(
            backend_data={"payment": {"method": method, "status": "pending"}},
            frontend_data={"payment": {"method": method, "label": PAYMENT_LABELS[method]}},
        )


class ReviewStep(StepNode):
    step_id = "review"
    title = "Review and confirm"
    fields = (FieldSpec("confirm", "I confirm my order", type="checkbox"),)

    def __init__(self, pricing: PricingConfig):
        self.pricing = pricing

    def validate(self, context: ContextSnapshot) -> Dict[str, Any]:
        errors: Dict[str, str] = {}
        confirmed = require_bool(context.current, "confirm", errors, label="Confirmation")
        if "confirm" not in errors and not confirmed:
            add_error(errors, "confirm", "Please confirm the order to continue")
        if not context.accumulated.get("line_items"):
            add_error(errors, "line_items", "Your basket is empty")
        raise_if_errors(errors)
        return {"confirm": True}

    def _totals(self, order: FrozenDict) -> Dict[str, str]:
        subtotal = _decimal(order.get("subtotal"))
        delivery_fee = _decimal(order.get("delivery_fee")) if order.get("requires_shipping", True) else Decimal("0")
        tax = (subtotal + delivery_fee) * self.pricing.tax_rate
        total = subtotal + delivery_fee + Decimal(to_money(tax))
        return {
            "subtotal": to_money(subtotal),
            "delivery_fee": to_money(delivery_fee),
            "tax": to_money(tax),
            "total": to_money(total),
            "currency": order.get("currency") or self.pricing.currency,
        }

    def compute(self, context: ContextSnapshot, validated: FrozenDict) -> StepOutput:
        # Only the order record is priced; extra keys in the confirm payload are ignored.
        order = context.accumulated
        totals = self._totals(order)
        logger.info("[Checkout] order_id=%s confirmed total=%s %s", context.order_id, totals["total"], totals["currency"])
        payment = order.get("payment") or {}
        return StepOutput(
            backend_data={
                "totals": totals,
                "confirmed_at": datetime.now(timezone.utc).isoformat(),
            },
            frontend_data={
                "summary": {
                    "customer": order.get("full_name"),
                    "lines": [
                        {"name": l["name"], "quantity": l["quantity"], "line_total": l["line_total"]}
                        for l in order.get("line_items") or ()
                    ],
                    "delivery_method": order.get("delivery_method") if order.get("requires_shipping", True) else None,
                    "payment_method": payment.get("method"),
                    "totals": totals,
                }
            },
            message="Your order is confirmed.",
        )

    def route(self, context: ContextSnapshot, validated: FrozenDict, flow: FlowDefinition) -> Optional[str]:
        return None


def build_checkout_flow(catalogue: ProductCatalogue, pricing: PricingConfig) -> FlowDefinition:
    return FlowDefinition(
        FLOW_NAME,
        [
            CustomerDetailsStep(),
            LineItemsStep(catalogue),
            DeliveryStep(pricing),
            PaymentMethodStep(pricing),
            ReviewStep(pricing),
        ],
    )
