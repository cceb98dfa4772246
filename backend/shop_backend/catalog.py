import math
from datetime import datetime
from typing import Dict, List, Optional

from flask import current_app
from pymongo.errors import DuplicateKeyError, PyMongoError

from shop_backend.errors import NotFound, StoreError, ValidationError

NEW_COLLECTION_SIZE = 8
POPULAR_LIMIT = 4
RELATED_LIMIT = 4
MAX_ID_ATTEMPTS = 5

REQUIRED_TEXT_FIELDS = ("name", "image", "category")
PRICE_FIELDS = ("new_price", "old_price")


def serialize_product(document: Optional[Dict]) -> Dict[str, object]:
    if not document:
        return {}
    created_at = document.get("date")
    return {
        "id": document.get("id"),
        "name": document.get("name", ""),
        "image": document.get("image", ""),
        "category": document.get("category", ""),
        "new_price": document.get("new_price"),
        "old_price": document.get("old_price"),
        "date": created_at.isoformat() + "Z"
        if isinstance(created_at, datetime)
        else None,
        "available": bool(document.get("available", True)),
    }


def parse_price(payload: Dict, field: str, errors: List[Dict[str, str]]):
    raw_value = payload.get(field)
    if isinstance(raw_value, bool):
        raw_value = None
    try:
        value = round(float(raw_value), 2)
    except (TypeError, ValueError):
        errors.append({"path": field, "msg": f"{field} must be a valid number"})
        return None
    if not math.isfinite(value):
        errors.append({"path": field, "msg": f"{field} must be a finite number"})
        return None
    if value < 0:
        errors.append({"path": field, "msg": f"{field} cannot be negative"})
        return None
    return value


def parse_product_id(raw_id) -> int:
    if isinstance(raw_id, bool):
        raw_id = None
    try:
        return int(str(raw_id).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError.for_field("id", "id must be an integer") from exc


def next_product_id(db) -> int:
    last_product = db.products.find_one(sort=[("id", -1)])
    return int(last_product["id"]) + 1 if last_product else 1


def add_product(db, payload: Dict) -> Dict[str, object]:
    errors: List[Dict[str, str]] = []
    fields: Dict[str, object] = {}
    for field in REQUIRED_TEXT_FIELDS:
        value = str(payload.get(field) or "").strip()
        if not value:
            errors.append({"path": field, "msg": f"{field} is required"})
        fields[field] = value
    for field in PRICE_FIELDS:
        fields[field] = parse_price(payload, field, errors)
    if errors:
        raise ValidationError(errors)

    # products.id is uniquely indexed; a concurrent insert that took the
    # same id surfaces as DuplicateKeyError and the next maximum is re-read.
    for _ in range(MAX_ID_ATTEMPTS):
        try:
            product_document = {
                "id": next_product_id(db),
                **fields,
                "date": datetime.utcnow(),
                "available": True,
            }
            db.products.insert_one(product_document)
        except DuplicateKeyError:
            continue
        except PyMongoError as exc:
            raise StoreError("Error adding product", str(exc)) from exc

        current_app.logger.info(
            "Added product %s (%s)", product_document["id"], product_document["name"]
        )
        return serialize_product(product_document)

    raise StoreError(
        "Error adding product", "Could not allocate a unique product id."
    )


def remove_product(db, raw_id) -> Dict[str, object]:
    product_id = parse_product_id(raw_id)
    try:
        removed = db.products.find_one_and_delete({"id": product_id})
    except PyMongoError as exc:
        raise StoreError("Error removing product", str(exc)) from exc

    if not removed:
        raise NotFound("Product not found")

    current_app.logger.info("Removed product %s (%s)", product_id, removed.get("name"))
    return serialize_product(removed)


def list_products(db, query: Optional[Dict] = None) -> List[Dict[str, object]]:
    return [serialize_product(document) for document in db.products.find(query or {})]


def new_collection(db) -> List[Dict[str, object]]:
    return list_products(db)[1:][-NEW_COLLECTION_SIZE:]


def popular_in_women(db) -> List[Dict[str, object]]:
    return list_products(db, {"category": "women"})[:POPULAR_LIMIT]


def related_products(db) -> List[Dict[str, object]]:
    return list_products(db)[:RELATED_LIMIT]
