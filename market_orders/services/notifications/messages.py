"""
Market Orders — Notification message builders
"""
from decimal import Decimal
from html import escape

from market_orders.models.order import DeliveryType, Order, OrderStatus
from market_orders.services.notifications.channels import Message
from market_orders.services.pricing import is_pizza

STATUS_LINES: dict[OrderStatus, str] = {
    OrderStatus.PREPARING: "Your order is being prepared!",
    OrderStatus.READY: "Your order is ready for pickup!",
    OrderStatus.DELIVERED: "Your order has been delivered!",
}

READY_FOR_DELIVERY = "Your order is ready and on its way!"


def _money(value: Decimal) -> str:
    return f"${value:.2f}"


def _item_line(item, detailed: bool = True) -> str:
    text = f"{item.quantity}x {item.name}"
    if item.size:
        text += f" ({item.size})"
    if detailed:
        if item.toppings and is_pizza(item.name):
            text += f"\n   Toppings: {', '.join(item.toppings)}"
        text += f" - {_money(item.unit_price * item.quantity)}"
    return text


def _fulfilment(order: Order) -> str:
    if order.delivery_type == DeliveryType.DOOR_DELIVERY:
        return f"DELIVERY\nAddress: {order.address}"
    return "PICKUP at store"


def _coupon_line(order: Order) -> str:
    if not order.coupon_applied:
        return ""
    pct = order.coupon_discount_percentage
    pct = f" ({pct.normalize():f}% OFF)" if pct else ""
    return f"COUPON APPLIED: {order.coupon_code}{pct}\nDiscount: -{_money(order.coupon_discount_amount)}\n"


def admin_order_sms(order: Order) -> Message:
    items = "\n\n".join(_item_line(i) for i in order.items)
    extras = ""
    if order.cooking_instructions:
        extras += f"\nCOOKING INSTRUCTIONS:\n{order.cooking_instructions}\n"
    coupon = _coupon_line(order)
    if coupon:
        extras += f"\n{coupon}"
    body = (
        "NEW ORDER RECEIVED!\n\n"
        f"Order ID: #{order.id}\n"
        f"Customer: {order.customer_name}\n"
        f"Phone: {order.phone}\n\n"
        f"{_fulfilment(order)}\n\n"
        f"ORDER ITEMS:\n{items}\n"
        f"{extras}\n"
        f"TOTAL: {_money(order.total_amount)}\n\n"
        "Check the app for more details."
    )
    return Message(subject="New Order", body=body)


def customer_confirmation_sms(order: Order, store_name: str, store_phone: str = "") -> Message:
    items = "\n".join(_item_line(i, detailed=False) for i in order.items)
    discount = ""
    if order.coupon_applied:
        discount = f"Discount ({order.coupon_code}): -{_money(order.coupon_discount_amount)}\n"
    contact = f"\nQuestions? Call us on {store_phone}.\n" if store_phone else ""
    body = (
        "ORDER CONFIRMED!\n\n"
        f"Hi {order.customer_name},\n\n"
        f"Thank you for your order at {store_name}!\n\n"
        f"Order ID: #{order.id}\n\n"
        f"YOUR ORDER:\n{items}\n\n"
        f"{_fulfilment(order)}\n\n"
        "ORDER SUMMARY:\n"
        f"Subtotal: {_money(order.subtotal)}\n"
        f"{discount}"
        f"Total: {_money(order.total_amount)}\n\n"
        "We'll notify you when your order is ready!\n"
        f"{contact}\n"
        f"{store_name}"
    )
    return Message(subject="Order Confirmed", body=body)


def status_update_sms(order: Order, store_name: str) -> Message:
    line = STATUS_LINES.get(order.status, f"Order status updated to: {order.status.value}")
    if order.status == OrderStatus.READY and order.delivery_type == DeliveryType.DOOR_DELIVERY:
        line = READY_FOR_DELIVERY
    body = (
        f"Hi {order.customer_name},\n\n"
        f"{line}\n\n"
        f"Order ID: #{order.id}\n\n"
        f"Thank you for choosing {store_name}!"
    )
    return Message(subject="Order Update", body=body, data={"status": order.status.value})


def _html_items(order: Order) -> str:
    rows = []
    for item in order.items:
        detail = escape(item.name)
        if item.size:
            detail += f" ({escape(item.size)})"
        if item.toppings and is_pizza(item.name):
            detail += f"<br><small>Toppings: {escape(', '.join(item.toppings))}</small>"
        rows.append(
            f"<tr><td>{item.quantity}x</td><td>{detail}</td>"
            f"<td>{_money(item.unit_price * item.quantity)}</td></tr>"
        )
    return "<table>" + "".join(rows) + "</table>"


def _email_body(order: Order, heading: str) -> tuple[str, str]:
    text_items = "\n".join(_item_line(i) for i in order.items)
    coupon = _coupon_line(order)
    instructions = (
        f"Cooking instructions: {order.cooking_instructions}\n" if order.cooking_instructions else ""
    )
    text = (
        f"{heading}\n\n"
        f"Order ID: #{order.id}\n"
        f"Customer: {order.customer_name} ({order.email}, {order.phone})\n"
        f"{_fulfilment(order)}\n\n"
        f"{text_items}\n\n"
        f"{instructions}{coupon}"
        f"Total: {_money(order.total_amount)}\n"
    )
    html = (
        f"<h2>{escape(heading)}</h2>"
        f"<p>Order ID: #{escape(order.id)}<br>"
        f"Customer: {escape(order.customer_name)}<br>"
        f"{escape(_fulfilment(order)).replace(chr(10), '<br>')}</p>"
        f"{_html_items(order)}"
        + (f"<p>{escape(instructions)}</p>" if instructions else "")
        + (f"<p>{escape(coupon).replace(chr(10), '<br>')}</p>" if coupon else "")
        + f"<p><strong>Total: {_money(order.total_amount)}</strong></p>"
    )
    return text, html


def customer_confirmation_email(order: Order, store_name: str) -> Message:
    text, html = _email_body(order, f"Thank you for your order at {store_name}!")
    return Message(subject=f"Order Confirmation - {store_name}", body=text, html=html)


def store_alert_email(order: Order, store_name: str) -> Message:
    text, html = _email_body(order, "New order received")
    return Message(subject=f"New Food Order Received - {store_name}", body=text, html=html)


def admin_push(order: Order) -> Message:
    return Message(
        subject="New Order Received",
        body=f"New order #{order.id} from {order.customer_name}",
        data={
            "type": "new_order",
            "orderId": order.id,
            "customerName": order.customer_name,
            "createdAt": order.created_at.isoformat() if order.created_at else None,
        },
    )
