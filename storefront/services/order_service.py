"""Order service: checkout, order history, shipment tracking.

create_order_from_cart copies each product's current price onto the
order line. Later catalog price changes never touch placed orders.

Functions flush but do NOT commit; the caller commits.
"""

import logging
import secrets
import string
import time
from datetime import datetime, timezone
from decimal import Decimal

from storefront.extensions import db
from storefront.models.audit import AuditEvent
from storefront.models.order import Order, OrderItem, ShipmentTracking
from storefront.services import cart_service

logger = logging.getLogger(__name__)

TRACKING_PREFIX = "CZ"
_BASE36 = string.digits + string.ascii_uppercase


def _base36(number):
    digits = ""
    while number:
        number, rem = divmod(number, 36)
        digits = _BASE36[rem] + digits
    return digits or "0"


def generate_tracking_number():
    """Prefix + base36 millisecond timestamp + 6 random base36 chars."""
    stamp = _base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{TRACKING_PREFIX}{stamp}{suffix}"


def _parse_datetime(value, field):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"Invalid {field}; expected ISO-8601.")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_strings(data, fields):
    for field in fields:
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"{field} must be a string.")


# ──────────────────────────────────────────────
# Checkout
# ──────────────────────────────────────────────

def create_order_from_cart(user_id, shipping_address=None):
    """Snapshot the user's cart into an Order and empty the cart.

    Raises:
        ValueError: If the cart is empty.
    """
    cart_items = cart_service.get_cart_items(user_id)
    if not cart_items:
        raise ValueError("Cart is empty.")

    total = Decimal("0.00")
    order = Order(
        user_id=user_id,
        total_amount=total,
        status="pending",
        shipping_address=shipping_address,
    )
    db.session.add(order)

    for cart_item in cart_items:
        unit_price = Decimal(cart_item.product.price)
        order.items.append(OrderItem(
            product_id=cart_item.product_id,
            quantity=cart_item.quantity,
            price=unit_price,
        ))
        total += unit_price * cart_item.quantity

    order.total_amount = total
    db.session.flush()

    cart_service.clear_cart(user_id)
    logger.info(f"Order {order.id} created for user {user_id} ({len(cart_items)} lines, total {total})")
    return order


def get_orders(user_id):
    return (
        Order.query
        .filter_by(user_id=user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def get_order(order_id, user_id=None):
    """Fetch an order. When user_id is given, other users' orders are hidden."""
    order = db.session.get(Order, order_id)
    if order is None:
        return None
    if user_id is not None and order.user_id != user_id:
        return None
    return order


# ──────────────────────────────────────────────
# Shipment status
# ──────────────────────────────────────────────

def update_order_status(order_id, status, tracking_data=None, actor_user_id=None):
    """Move an order to a new status, optionally attaching carrier details.

    shipped_at / delivered_at are stamped when entering those statuses.
    Returns None if the order does not exist.

    Raises:
        ValueError: If status, carrier or trackingData is invalid.
    """
    if status not in Order.STATUSES:
        raise ValueError(
            f"Invalid status '{status}'. Must be one of: {', '.join(Order.STATUSES)}"
        )

    order = db.session.get(Order, order_id)
    if order is None:
        return None

    tracking_data = tracking_data or {}
    if not isinstance(tracking_data, dict):
        raise ValueError("trackingData must be an object.")
    _require_strings(tracking_data, ("trackingNumber", "carrier", "trackingUrl"))

    carrier = (tracking_data.get("carrier") or "").lower()
    if carrier and carrier not in Order.CARRIERS:
        raise ValueError(f"Unknown carrier '{carrier}'.")

    old_status = order.status
    order.status = status
    now = datetime.now(timezone.utc)

    if tracking_data.get("trackingNumber"):
        order.tracking_number = tracking_data["trackingNumber"]
    if carrier:
        order.shipping_carrier = carrier
    if tracking_data.get("estimatedDelivery"):
        order.estimated_delivery = _parse_datetime(
            tracking_data["estimatedDelivery"], "estimatedDelivery"
        )
    if tracking_data.get("trackingUrl"):
        order.tracking_url = tracking_data["trackingUrl"]

    if status == "shipped":
        order.shipped_at = now
        if not order.tracking_number:
            order.tracking_number = generate_tracking_number()
    elif status == "delivered":
        order.delivered_at = now

    db.session.add(AuditEvent(
        actor_user_id=actor_user_id,
        subject_user_id=order.user_id,
        action="order.status_changed",
        metadata_={"order_id": order.id, "old_status": old_status, "new_status": status},
    ))
    db.session.flush()
    return order


def add_tracking_event(order_id, data):
    """Append a carrier event to an order's tracking history.

    Raises:
        ValueError: If required fields are missing.
    """
    if not isinstance(data, dict):
        raise ValueError("Tracking event must be an object.")
    _require_strings(data, ("trackingNumber", "carrier", "location", "description"))

    order = db.session.get(Order, order_id)
    if order is None:
        return None

    status = data.get("status")
    if status not in ShipmentTracking.STATUSES:
        raise ValueError(
            f"Invalid tracking status. Must be one of: {', '.join(ShipmentTracking.STATUSES)}"
        )

    tracking_number = data.get("trackingNumber") or order.tracking_number
    carrier = data.get("carrier") or order.shipping_carrier
    if not tracking_number or not carrier:
        raise ValueError("trackingNumber and carrier are required.")

    event = ShipmentTracking(
        order_id=order.id,
        tracking_number=tracking_number,
        carrier=carrier,
        status=status,
        location=data.get("location"),
        description=data.get("description"),
        event_time=_parse_datetime(data.get("eventTime"), "eventTime")
        or datetime.now(timezone.utc),
        estimated_delivery=_parse_datetime(
            data.get("estimatedDelivery"), "estimatedDelivery"
        ),
    )
    db.session.add(event)
    db.session.flush()
    return event
