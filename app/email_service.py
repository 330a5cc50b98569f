"""
Order confirmation email.

Template data is built from the committed order record; the message is sent
over SMTP (implicit TLS on port 465, STARTTLS otherwise).
"""

from datetime import datetime
from email.message import EmailMessage
from html import escape
from typing import Any, Dict, Optional
import logging
import smtplib

from shopcore.core.config import ShopConfig, get_config
from shopcore.errors import ConfigurationError

logger = logging.getLogger("shop.email")

DELIVERY_METHOD_LABELS = {
    "pickup": "Store pickup",
    "homeDelivery": "Home delivery",
    "shipping": "Parcel shipping",
    "arrangeWithSeller": "Arrange with seller",
}

STATUS_LABELS = {
    "pending": "Pending",
    "payment_pending": "Payment pending",
    "confirmed": "Confirmed",
    "processing": "Processing",
    "ready_for_pickup": "Ready for pickup",
    "ready_for_delivery": "Ready for delivery",
    "out_for_delivery": "Out for delivery",
    "shipped": "Shipped",
    "delivered": "Delivered",
    "picked_up": "Picked up",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "refunded": "Refunded",
    "returned": "Returned",
    "on_hold": "On hold",
    "disputed": "Disputed",
    "partially_delivered": "Partially delivered",
}


def short_order_id(order_id: str) -> str:
    return (order_id or "")[-10:].upper()


def _money(value: Any) -> str:
    return f"{float(value or 0):.2f}"


def build_order_confirmation(record: Dict[str, Any], config: Optional[ShopConfig] = None) -> Dict[str, Any]:
    """Template data for an order record (see Order.to_record)."""
    config = config or get_config()
    order_id = record["id"]
    user = record.get("userData") or {}
    totals = record.get("totals") or {}
    created_at = record.get("createdAt")
    track_base = config.track_order_url or f"{config.store_url.rstrip('/')}/mis-pedidos"

    return {
        "customerFirstName": user.get("firstName"),
        "customerEmail": user.get("email"),
        "orderId": short_order_id(order_id),
        "orderDate": created_at.strftime("%Y-%m-%d %H:%M") if isinstance(created_at, datetime) else created_at,
        "orderStatus": STATUS_LABELS.get(record.get("status"), record.get("status")),
        "paymentMethod": record.get("paymentMethod"),
        "itemCount": totals.get("itemCount"),
        "deliveryMethodLabel": DELIVERY_METHOD_LABELS.get(record.get("deliveryMethod"), record.get("deliveryMethod")),
        "items": [
            {
                "productName": item.get("productName"),
                "productImage": item.get("productImage") or "",
                "variantName": item.get("variantName") or "",
                "variantColorHex": item.get("variantColorHex") or "",
                "quantity": item.get("quantity"),
                "unitPrice": _money(item.get("unitPrice")),
                "totalPrice": _money(item.get("totalPrice")),
            }
            for item in record.get("items") or []
        ],
        "subtotal": _money(totals.get("subtotal")),
        "taxPercentage": totals.get("taxPercentage"),
        "taxAmount": _money(totals.get("taxAmount")),
        "shippingCost": _money(totals["shippingCost"]) if totals.get("shippingCost") else None,
        "total": _money(totals.get("total")),
        "shippingAddress": record.get("shippingAddress"),
        "billingAddress": record.get("billingAddress"),
        "notes": record.get("notes"),
        "trackOrderUrl": f"{track_base.rstrip('/')}/{order_id}",
        "storeUrl": config.store_url,
        "supportUrl": config.support_url,
        "year": str(datetime.now().year),
    }


def render_order_confirmation(data: Dict[str, Any]) -> EmailMessage:
    """Plain-text body with an HTML alternative."""
    lines = [
        f"Hi {data['customerFirstName']},",
        "",
        f"Thank you for your order #{data['orderId']}.",
        f"Status: {data['orderStatus']}",
        f"Delivery: {data['deliveryMethodLabel']}",
        f"Payment: {data['paymentMethod']}",
        "",
    ]
    for item in data["items"]:
        name = item["productName"]
        if item["variantName"]:
            name = f"{name} ({item['variantName']})"
        lines.append(f"  {item['quantity']} x {name} @ ${item['unitPrice']} = ${item['totalPrice']}")
    lines += [
        "",
        f"Subtotal: ${data['subtotal']}",
        f"Tax ({data['taxPercentage']}%): ${data['taxAmount']}",
    ]
    if data["shippingCost"]:
        lines.append(f"Shipping: ${data['shippingCost']}")
    lines += [f"Total: ${data['total']}", ""]
    if data["notes"]:
        lines += [f"Notes: {data['notes']}", ""]
    lines += [
        f"Track your order: {data['trackOrderUrl']}",
        f"Need help? {data['supportUrl']}",
    ]
    text = "\n".join(lines)

    msg = EmailMessage()
    msg["Subject"] = f"Order confirmation #{data['orderId']}"
    msg["To"] = data["customerEmail"]
    msg.set_content(text)
    msg.add_alternative(
        "<html><body><pre style=\"font-family: sans-serif\">"
        f"{escape(text)}</pre>"
        f"<p><a href=\"{escape(data['storeUrl'])}\">{escape(data['storeUrl'])}</a> &middot; {data['year']}</p>"
        "</body></html>",
        subtype="html",
    )
    return msg


class EmailSender:
    """SMTP sender configured from EMAIL_* settings."""

    def __init__(self, config: Optional[ShopConfig] = None):
        self.config = config or get_config()

    @property
    def configured(self) -> bool:
        return bool(self.config.email_host and self.config.email_from)

    def send(self, msg: EmailMessage) -> None:
        config = self.config
        if not self.configured:
            raise ConfigurationError("email", "EMAIL_HOST" if not config.email_host else "EMAIL_FROM")

        if "From" not in msg:
            msg["From"] = config.email_from
        smtp_cls = smtplib.SMTP_SSL if config.email_port == 465 else smtplib.SMTP
        with smtp_cls(config.email_host, config.email_port, timeout=30) as smtp:
            if smtp_cls is smtplib.SMTP:
                smtp.starttls()
            if config.email_user:
                smtp.login(config.email_user, config.email_password or "")
            smtp.send_message(msg)
        logger.info("email: sent subject=%r to=%s", msg["Subject"], msg["To"])

    def send_order_confirmation(self, record: Dict[str, Any]) -> None:
        data = build_order_confirmation(record, self.config)
        if not data["customerEmail"]:
            raise ValueError(f"order {record['id']} has no customer email")
        self.send(render_order_confirmation(data))
