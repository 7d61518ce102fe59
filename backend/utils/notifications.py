import os
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from twilio.rest import Client
from sqlalchemy.ext.asyncio import AsyncSession
from models import Notification
from config import EMERGENCY_SLA_MINUTES
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# --- Email Configuration ---
SMTP_SERVER = os.getenv("SMTP_SERVER")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
EMAIL_SENDER = os.getenv("EMAIL_SENDER")

# --- Twilio Configuration ---
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")

STATUS_LABELS = {
    "pending": "Pending",
    "confirmed": "Confirmed",
    "preparing": "Being prepared",
    "out_for_delivery": "Out for delivery",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
}


def send_email(to_email: str, subject: str, body_html: str):
    """Sends an email using SMTP."""
    if not all([SMTP_SERVER, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, EMAIL_SENDER]):
        logger.error("SMTP settings are not fully configured. Cannot send email.")
        return False

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = EMAIL_SENDER
    message["To"] = to_email
    message.attach(MIMEText(body_html, "html"))

    try:
        with smtplib.SMTP(SMTP_SERVER, SMTP_PORT) as server:
            server.starttls()
            server.login(SMTP_USER, SMTP_PASSWORD)
            server.sendmail(EMAIL_SENDER, to_email, message.as_string())
        logger.info(f"Email sent successfully to {to_email}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def send_sms(to_phone_number: str, body: str):
    """Sends an SMS using Twilio."""
    if not all([TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER]):
        logger.error("Twilio settings are not fully configured. Cannot send SMS.")
        return False

    try:
        client = Client(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN)
        message = client.messages.create(
            body=body,
            from_=TWILIO_PHONE_NUMBER,
            to=to_phone_number
        )
        logger.info(f"SMS sent successfully to {to_phone_number}, SID: {message.sid}")
        return True
    except Exception as e:
        logger.error(f"Failed to send SMS to {to_phone_number}: {e}")
        return False


def record_notification(
    db: AsyncSession,
    user_profile_id,
    title: str,
    message: str,
    notification_type: str,
    data: Optional[dict] = None
) -> Notification:
    """Add an in-app notification to the session; the caller commits."""
    notification = Notification(
        user_profile_id=user_profile_id,
        title=title,
        message=message,
        type=notification_type,
        data=data
    )
    db.add(notification)
    return notification


# Email Templates
def get_order_placed_email(order_data: dict) -> tuple[str, str]:
    """Generate new order email template for the supplier"""
    prefix = "EMERGENCY " if order_data.get("is_emergency") else ""
    subject = f"{prefix}New Order - {order_data['order_number']}"

    rows = "".join(
        f"<li>{item['quantity']} {item['unit']} {item['product_name']} @ ₹{item['price_per_unit']} = ₹{item['line_total']}</li>"
        for item in order_data["items"]
    )

    body = f"""
    <html>
    <body>
        <h2>{prefix}New Order Received!</h2>
        <p>Hello,</p>
        <p>{order_data.get('stall_name', 'A vendor')} has placed an order with the following details:</p>

        <div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px;">
            <h3>Order Details:</h3>
            <p><strong>Order Number:</strong> {order_data['order_number']}</p>
            <ul>{rows}</ul>
            <p><strong>Total Amount:</strong> ₹{order_data['total_amount']}</p>
            <p><strong>Deliver To:</strong> {order_data['delivery_address']}</p>
        </div>

        <p>Please confirm the order from your dashboard.</p>
        <p>Best regards,<br>SourceSavvy Team</p>
    </body>
    </html>
    """

    return subject, body


def get_order_status_email(order_data: dict) -> tuple[str, str]:
    """Generate order status update email template for the vendor"""
    label = STATUS_LABELS.get(order_data["status"], order_data["status"])
    subject = f"Order {order_data['order_number']} - {label}"

    body = f"""
    <html>
    <body>
        <h2>Order Update</h2>
        <p>Hello,</p>
        <p>Your order <strong>{order_data['order_number']}</strong> from {order_data.get('business_name', 'your supplier')} is now <strong>{label}</strong>.</p>
        <p>Best regards,<br>SourceSavvy Team</p>
    </body>
    </html>
    """

    return subject, body


# SMS Templates
def get_order_placed_sms(order_data: dict) -> str:
    """Generate new order SMS template for the supplier"""
    if order_data.get("is_emergency"):
        return f"EMERGENCY order {order_data['order_number']} - ₹{order_data['total_amount']}. Deliver within {EMERGENCY_SLA_MINUTES} mins to {order_data['delivery_address']}. - SourceSavvy"
    return f"New order {order_data['order_number']} - {len(order_data['items'])} items, ₹{order_data['total_amount']}. Please confirm. - SourceSavvy"


def get_order_status_sms(order_data: dict) -> str:
    """Generate order status update SMS template for the vendor"""
    label = STATUS_LABELS.get(order_data["status"], order_data["status"])
    return f"Order {order_data['order_number']}: {label}. - SourceSavvy"
