from typing import Dict, Optional, Tuple

import resend
from flask import current_app


def send_email_via_resend(
    payload: Dict[str, object], api_key: str
) -> Tuple[bool, Optional[str]]:
    configured_api_key = (api_key or "").strip()
    if not configured_api_key:
        return False, "Resend API key is not configured."

    previous_api_key = getattr(resend, "api_key", None)
    resend.api_key = configured_api_key
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        return False, str(exc)
    finally:
        resend.api_key = previous_api_key

    if not isinstance(response, dict) or not response.get("id"):
        return False, str(response)

    return True, None


def send_text_email(recipient_email: str, subject: str, text: str):
    sender = current_app.config["NEWSLETTER_SENDER_EMAIL"]
    payload: Dict[str, object] = {
        "from": f"{current_app.config['SHOP_NAME']} <{sender}>",
        "to": [recipient_email],
        "subject": subject,
        "text": text,
    }
    return send_email_via_resend(payload, current_app.config["RESEND_API_KEY"])
