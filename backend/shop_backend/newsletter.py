from datetime import datetime
from typing import Optional, Tuple

from flask import current_app
from pymongo.errors import DuplicateKeyError, PyMongoError

from shop_backend.accounts import is_valid_email, normalize_email
from shop_backend.errors import DuplicateEmail, StoreError, ValidationError
from shop_backend.mailer import send_text_email

NEWSLETTER_SUBJECT = "New Products Are Available!"
NEWSLETTER_TEXT = "Check out our latest products and offers!"


def subscribe(db, email: Optional[str]):
    email = normalize_email(email)
    if not is_valid_email(email):
        raise ValidationError.for_field("email", "Enter a valid email address")

    if db.subscribers.find_one({"email": email}):
        raise DuplicateEmail("Email is already subscribed")

    try:
        db.subscribers.insert_one({"email": email, "dateSubscribed": datetime.utcnow()})
    except DuplicateKeyError as exc:
        raise DuplicateEmail("Email is already subscribed") from exc
    except PyMongoError as exc:
        raise StoreError("Error subscribing", str(exc)) from exc


def broadcast_newsletter(db) -> Tuple[int, int]:
    """Send the fixed newsletter to every subscriber.

    Delivery failures are logged per recipient and otherwise ignored; the
    caller only learns the sent/failed totals.
    """
    try:
        recipients = [document["email"] for document in db.subscribers.find({}, {"email": 1})]
    except PyMongoError as exc:
        raise StoreError("Error sending newsletter", str(exc)) from exc

    sent = failed = 0
    for email in recipients:
        delivered, error_details = send_text_email(email, NEWSLETTER_SUBJECT, NEWSLETTER_TEXT)
        if delivered:
            sent += 1
            continue
        failed += 1
        current_app.logger.error(
            "Newsletter delivery failed for %s: %s",
            email,
            error_details or "Unknown delivery error",
        )

    current_app.logger.info("Newsletter sent to %s subscribers (%s failed)", sent, failed)
    return sent, failed
