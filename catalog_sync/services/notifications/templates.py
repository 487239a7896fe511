"""Order notification message templates."""

from __future__ import annotations

from decimal import Decimal

from catalog_sync.models.notification import NotificationType, Order


def order_reference(order_id: str) -> str:
    """Short customer-facing order reference: the last six characters, uppercased."""
    return order_id[-6:].upper()


def render_order_message(
    order: Order,
    notification_type: str,
    *,
    business_name: str | None,
    currency: str,
) -> str:
    name = order.customer.name
    ref = order_reference(order.id)

    if notification_type == NotificationType.STATUS_CHANGE.value:
        return (
            f"Hi {name or 'there'}! Your order #{ref} status has been updated to: "
            f"{order.status}. {business_name or 'We'} will keep you informed of any changes."
        )
    if notification_type == NotificationType.PAYMENT_RECEIVED.value:
        greeting = f"Thank you {name}!" if name else "Thank you!"
        return (
            f"{greeting} We've received your payment of {currency} "
            f"{_money(order.total)} for order #{ref}. Your order is now being processed."
        )
    if notification_type == NotificationType.SHIPPING_UPDATE.value:
        follow_up = (
            f"Tracking: {order.tracking_number}"
            if order.tracking_number
            else "We'll update you when it's delivered."
        )
        return f"Your order #{ref} is on its way! {follow_up}"
    return (
        f"Hi {name or 'there'}! We have an update about your order #{ref}. "
        "Please contact us if you have any questions."
    )


def _money(amount: Decimal) -> str:
    return f"{amount:.2f}"
