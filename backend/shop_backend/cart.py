from typing import Dict

from bson import ObjectId
from bson.errors import InvalidId

from shop_backend.errors import NotFound, ValidationError


def parse_user_id(user_id) -> ObjectId:
    try:
        return ObjectId(str(user_id))
    except (InvalidId, TypeError) as exc:
        raise NotFound("User not found") from exc


def cart_slot(item_id) -> str:
    """Return the ``cartData`` key for ``item_id``; only non-negative integers are slots."""
    if isinstance(item_id, int) and not isinstance(item_id, bool):
        if item_id >= 0:
            return str(item_id)
    elif isinstance(item_id, str):
        candidate = item_id.strip()
        if candidate.isascii() and candidate.isdigit():
            return str(int(candidate))
    raise ValidationError.for_field("itemId", "itemId must be a non-negative integer")


def add_item(db, user_id, item_id):
    slot = cart_slot(item_id)
    result = db.users.update_one(
        {"_id": parse_user_id(user_id)},
        {"$inc": {f"cartData.{slot}": 1}},
    )
    if result.matched_count == 0:
        raise NotFound("User not found")


def remove_item(db, user_id, item_id):
    slot = cart_slot(item_id)
    object_id = parse_user_id(user_id)
    # The $gt guard keeps the decrement atomic and clamped at zero.
    result = db.users.update_one(
        {"_id": object_id, f"cartData.{slot}": {"$gt": 0}},
        {"$inc": {f"cartData.{slot}": -1}},
    )
    if result.matched_count == 0 and db.users.count_documents({"_id": object_id}) == 0:
        raise NotFound("User not found")


def get_cart(db, user_id) -> Dict[str, int]:
    user = db.users.find_one({"_id": parse_user_id(user_id)}, {"cartData": 1})
    if not user:
        raise NotFound("User not found")
    return user.get("cartData") or {}
