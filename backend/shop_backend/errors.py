from typing import Dict, List, Optional

from flask import current_app, jsonify
from pymongo.errors import PyMongoError


class ShopError(Exception):
    """Base for every failure rendered to API clients."""

    status_code = 500
    message = "Something went wrong."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> Dict[str, object]:
        return {"success": False, "error": self.message}


class ValidationError(ShopError):
    status_code = 400
    message = "Invalid request."

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None):
        super().__init__(message or (errors[0]["msg"] if errors else None))
        self.errors = errors

    @classmethod
    def for_field(cls, path: str, msg: str) -> "ValidationError":
        return cls([{"path": path, "msg": msg}])

    def to_dict(self) -> Dict[str, object]:
        body = super().to_dict()
        body["errors"] = self.errors
        return body


class DuplicateEmail(ShopError):
    status_code = 400
    message = "Existing user found with the same email address"


class NotFound(ShopError):
    status_code = 404
    message = "Not found"


class Unauthenticated(ShopError):
    status_code = 401
    message = "Please authenticate using valid token"


class InvalidToken(Unauthenticated):
    pass


# Login failures keep a 200 status; clients branch on the body flag.
class UnknownEmail(ShopError):
    status_code = 200
    message = "Wrong Email Id"


class WrongPassword(ShopError):
    status_code = 200
    message = "Wrong Password"


class StoreError(ShopError):
    status_code = 500
    message = "Database error"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail

    def to_dict(self) -> Dict[str, object]:
        body = super().to_dict()
        if self.detail and current_app.config.get("EXPOSE_STORE_ERRORS", True):
            body["detail"] = self.detail
        return body


def register_error_handlers(app):
    @app.errorhandler(ShopError)
    def handle_shop_error(exc: ShopError):
        if isinstance(exc, StoreError):
            app.logger.error("%s: %s", exc.message, exc.detail or "no details")
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(PyMongoError)
    def handle_store_error(exc: PyMongoError):
        return handle_shop_error(StoreError(detail=str(exc)))
