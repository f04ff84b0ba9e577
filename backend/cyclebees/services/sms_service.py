"""
SMS delivery for Cycle-Bees

Uses the MessageBot API for OTP codes and booking status updates.
Sending is best effort: failures are logged and reported as ``False``,
never raised into the request that triggered them.
"""
from typing import Optional

import requests

from cyclebees.core.config import settings
from cyclebees.core.logging_config import get_logger

logger = get_logger("sms_service")

MESSAGEBOT_URL = "https://api.messagebot.in/v1/sms"

STATUS_LABELS = {
    "approved": "approved",
    "rejected": "rejected",
    "active": "in progress",
    "completed": "completed",
    "waiting_payment": "waiting for payment",
    "arranging_delivery": "being arranged for delivery",
    "active_rental": "active",
    "expired": "expired",
}


def format_phone_number(phone: str) -> str:
    """
    Format phone number for MessageBot API (10 digits for India).

    Args:
        phone: Phone number string (may include spaces, dashes, +91 etc.)

    Returns:
        Formatted phone number (10 digits, no country code)
    """
    digits = ''.join(filter(str.isdigit, phone or ""))

    if digits.startswith('0'):
        digits = digits[1:]

    if digits.startswith('91') and len(digits) == 12:
        digits = digits[2:]

    return digits[:10]


def send_sms_via_messagebot(to: str, text: str, sender_id: Optional[str] = None) -> bool:
    """
    Send SMS via MessageBot API.

    Args:
        to: Recipient phone number
        text: SMS message content
        sender_id: Sender ID to use (if None, uses default from settings)

    Returns:
        bool: True if SMS was sent successfully, False otherwise
    """
    if not settings.SMS_ENABLED:
        logger.debug("SMS is disabled in settings")
        return False

    if not settings.MESSAGEBOT_API_TOKEN:
        logger.warning("MessageBot API token not configured. Cannot send SMS.")
        return False

    final_sender_id = sender_id or settings.MESSAGEBOT_SENDER_ID
    if not final_sender_id:
        logger.warning("MessageBot Sender ID not configured. Cannot send SMS.")
        return False

    formatted_phone = format_phone_number(to)
    if len(formatted_phone) != 10:
        logger.warning(f"Invalid phone number format: {to} (formatted: {formatted_phone})")
        return False

    headers = {
        "Authorization": f"Bearer {settings.MESSAGEBOT_API_TOKEN}",
        "Content-Type": "application/json"
    }
    payload = {
        "to": formatted_phone,
        "senderId": final_sender_id,
        "message": text
    }

    try:
        response = requests.post(MESSAGEBOT_URL, json=payload, headers=headers, timeout=10)
    except requests.exceptions.RequestException as e:
        logger.error(
            f"Network error while sending SMS via MessageBot: {str(e)}",
            exc_info=True,
            extra={"phone": formatted_phone}
        )
        return False

    if response.status_code == 200:
        logger.info(
            f"SMS sent successfully via MessageBot to {formatted_phone}",
            extra={"phone": formatted_phone, "sender_id": final_sender_id}
        )
        return True

    logger.error(
        f"MessageBot API error: {response.status_code} - {response.text}",
        extra={"phone": formatted_phone, "status_code": response.status_code}
    )
    return False


def send_otp_sms(phone: str, otp: str) -> bool:
    """Deliver a login code. The code itself is never logged."""
    text = (
        f"{otp} is your Cycle-Bees login code. "
        f"It expires in {settings.OTP_EXPIRE_MINUTES} minutes. Do not share it with anyone."
    )
    sent = send_sms_via_messagebot(phone, text)
    if not sent:
        logger.info("OTP SMS not delivered", extra={"phone": format_phone_number(phone)})
    return sent


def send_status_sms(phone: str, request_type: str, request_id: int, status: str, rejection_note: Optional[str] = None) -> bool:
    """Tell the customer their booking moved to ``status``."""
    label = STATUS_LABELS.get(status, status)
    text = f"Your Cycle-Bees {request_type} request #{request_id} is now {label}."
    if status == "rejected" and rejection_note:
        text += f" Reason: {rejection_note}"
    return send_sms_via_messagebot(phone, text)
