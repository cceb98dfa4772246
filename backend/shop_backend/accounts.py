import re
from datetime import datetime
from typing import Dict, List, Optional

import bcrypt
from flask import current_app
from pymongo.errors import DuplicateKeyError

from shop_backend.errors import DuplicateEmail, UnknownEmail, ValidationError, WrongPassword
from shop_backend.tokens import issue_token

CART_SLOTS = 300
MIN_PASSWORD_LENGTH = 6
# bcrypt only accepts passwords up to 72 bytes.
MAX_PASSWORD_BYTES = 72

email_regex = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value: Optional[str]) -> str:
    return str(value or "").strip().lower()


def is_valid_email(value: Optional[str]) -> bool:
    normalized = normalize_email(value)
    return bool(normalized and email_regex.match(normalized))


def password_byte_length(password: str) -> int:
    try:
        return len(password.encode("utf-8"))
    except UnicodeEncodeError:
        return MAX_PASSWORD_BYTES + 1


def validate_credentials(email: str, password: str):
    errors: List[Dict[str, str]] = []
    if not is_valid_email(email):
        errors.append({"path": "email", "msg": "Enter a valid email address"})
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(
            {
                "path": "password",
                "msg": f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            }
        )
    elif password_byte_length(password) > MAX_PASSWORD_BYTES:
        errors.append(
            {
                "path": "password",
                "msg": f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
            }
        )
    if errors:
        raise ValidationError(errors)


def empty_cart() -> Dict[str, int]:
    return {str(slot): 0 for slot in range(CART_SLOTS)}


def hash_password(password: str) -> bytes:
    rounds = int(current_app.config.get("BCRYPT_LOG_ROUNDS", 10))
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds))


def check_password(password: str, stored_hash) -> bool:
    if not stored_hash:
        return False
    if isinstance(stored_hash, str):
        stored_hash = stored_hash.encode("utf-8")
    return bcrypt.checkpw(password.encode("utf-8"), stored_hash)


def signup(db, name: Optional[str], email: Optional[str], password: Optional[str]) -> str:
    email = normalize_email(email)
    password = str(password or "")
    validate_credentials(email, password)

    if db.users.find_one({"email": email}):
        raise DuplicateEmail()

    user_document = {
        "name": str(name or "").strip(),
        "email": email,
        "password": hash_password(password),
        "cartData": empty_cart(),
        "date": datetime.utcnow(),
    }
    try:
        result = db.users.insert_one(user_document)
    except DuplicateKeyError as exc:
        raise DuplicateEmail() from exc

    current_app.logger.info("Registered user %s", email)
    return issue_token(result.inserted_id)


def login(db, email: Optional[str], password: Optional[str]) -> str:
    email = normalize_email(email)
    password = str(password or "")
    validate_credentials(email, password)

    user = db.users.find_one({"email": email})
    if not user:
        raise UnknownEmail()
    if not check_password(password, user.get("password")):
        raise WrongPassword()

    return issue_token(user["_id"])
