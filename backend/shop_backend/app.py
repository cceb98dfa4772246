import atexit
import os
from typing import Dict, Optional

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, send_from_directory
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_pymongo import PyMongo
from pymongo.errors import PyMongoError
from werkzeug.middleware.proxy_fix import ProxyFix

from shop_backend import accounts, cart, catalog, newsletter
from shop_backend.errors import register_error_handlers
from shop_backend.tokens import TOKEN_HEADER_NAME, configure_jwt, fetch_user
from shop_backend.uploads import build_image_url, save_product_image

load_dotenv()


def env_flag(name: str, default: bool) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def ensure_indexes(app: Flask, db):
    for collection, field in (
        (db.users, "email"),
        (db.subscribers, "email"),
        (db.products, "id"),
    ):
        try:
            collection.create_index(field, unique=True)
        except PyMongoError as exc:
            app.logger.warning(
                "Unable to ensure unique index on %s.%s: %s", collection.name, field, exc
            )


def create_app(test_config: Optional[Dict] = None, db=None) -> Flask:
    """Create and configure the Flask application.

    ``db`` may be a ready database handle; otherwise one is opened from
    ``MONGO_URI`` and closed when the process exits.
    """
    app = Flask(__name__)

    trusted_proxy_hops_raw = os.getenv("TRUSTED_PROXY_HOPS", "1")
    try:
        trusted_proxy_hops = max(0, int(trusted_proxy_hops_raw))
    except (TypeError, ValueError):
        trusted_proxy_hops = 1
    if trusted_proxy_hops:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=trusted_proxy_hops,
            x_proto=trusted_proxy_hops,
            x_host=trusted_proxy_hops,
            x_port=trusted_proxy_hops,
        )

    # --- Configuration ---
    app.config["JWT_SECRET_KEY"] = (
        os.getenv("JWT_SECRET_KEY") or os.getenv("JWT_SECRET") or "change-me-in-production"
    )
    app.config["JWT_TOKEN_LOCATION"] = ["headers"]
    app.config["JWT_HEADER_NAME"] = TOKEN_HEADER_NAME
    app.config["JWT_HEADER_TYPE"] = ""
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = False
    app.config["MONGO_URI"] = os.getenv("MONGO_URI", "mongodb://localhost:27017/shop")
    app.config["BCRYPT_LOG_ROUNDS"] = int(os.getenv("BCRYPT_LOG_ROUNDS", "10"))
    max_upload_mb = int(os.getenv("MAX_UPLOAD_SIZE_MB", "16"))
    app.config["MAX_CONTENT_LENGTH"] = max_upload_mb * 1024 * 1024
    app.config["UPLOAD_FOLDER"] = os.getenv(
        "UPLOAD_FOLDER", os.path.join(os.getcwd(), "upload", "images")
    )
    app.config["RESEND_API_KEY"] = (os.getenv("RESEND_API_KEY") or "").strip()
    app.config["NEWSLETTER_SENDER_EMAIL"] = (
        os.getenv("NEWSLETTER_SENDER_EMAIL") or "newsletter@shop.local"
    ).strip()
    app.config["SHOP_NAME"] = os.getenv("SHOP_NAME", "Shop")
    app.config["EXPOSE_STORE_ERRORS"] = env_flag("EXPOSE_STORE_ERRORS", True)

    if test_config:
        app.config.update(test_config)

    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    # --- Initialize extensions ---
    allowed_origins = [
        origin.strip()
        for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]
    CORS(app, origins=allowed_origins or "*")

    configure_jwt(JWTManager(app))
    register_error_handlers(app)

    if db is None:
        mongo = PyMongo(app)
        db = mongo.db
        atexit.register(mongo.cx.close)
    ensure_indexes(app, db)

    # --- ROUTES ---

    @app.route("/")
    def index():
        return "Shop API is running"

    @app.route("/health")
    def health():
        return {"status": "ok"}, 200

    # Images
    @app.route("/upload", methods=["POST"])
    def upload_image():
        filename = save_product_image(request.files.get("product"))
        return jsonify({"success": True, "image_url": build_image_url(filename)})

    @app.route("/images/<path:filename>")
    def serve_product_image(filename: str):
        return send_from_directory(app.config["UPLOAD_FOLDER"], filename)

    # Products
    @app.route("/addproduct", methods=["POST"])
    def add_product():
        payload = request.get_json(silent=True) or {}
        product = catalog.add_product(db, payload)
        return jsonify(
            {"success": True, "message": "Product added successfully", "product": product}
        )

    @app.route("/removeproduct", methods=["DELETE"])
    def remove_product():
        payload = request.get_json(silent=True) or {}
        removed = catalog.remove_product(db, payload.get("id"))
        return jsonify(
            {"success": True, "message": "Product removed", "name": removed.get("name")}
        )

    @app.route("/allproducts", methods=["GET"])
    def all_products():
        return jsonify(catalog.list_products(db))

    @app.route("/newcollection", methods=["GET"])
    def new_collection():
        return jsonify(catalog.new_collection(db))

    @app.route("/popularinwomen", methods=["GET"])
    def popular_in_women():
        return jsonify(catalog.popular_in_women(db))

    @app.route("/reletedproducts", methods=["GET"])
    @app.route("/relatedproducts", methods=["GET"])
    def related_products():
        return jsonify(catalog.related_products(db))

    # Accounts
    @app.route("/signup", methods=["POST"])
    def signup():
        payload = request.get_json(silent=True) or {}
        token = accounts.signup(
            db, payload.get("username"), payload.get("email"), payload.get("password")
        )
        return jsonify({"success": True, "token": token})

    @app.route("/login", methods=["POST"])
    def login():
        payload = request.get_json(silent=True) or {}
        token = accounts.login(db, payload.get("email"), payload.get("password"))
        return jsonify({"success": True, "token": token})

    # Cart
    @app.route("/addtocart", methods=["POST"])
    @fetch_user
    def add_to_cart():
        payload = request.get_json(silent=True) or {}
        cart.add_item(db, g.user_id, payload.get("itemId"))
        return "Added"

    @app.route("/removefromcart", methods=["DELETE"])
    @fetch_user
    def remove_from_cart():
        payload = request.get_json(silent=True) or {}
        cart.remove_item(db, g.user_id, payload.get("itemId"))
        return "Removed"

    @app.route("/getcart", methods=["POST"])
    @fetch_user
    def get_cart():
        return jsonify(cart.get_cart(db, g.user_id))

    # Newsletter
    @app.route("/subscribe", methods=["POST"])
    def subscribe():
        payload = request.get_json(silent=True) or {}
        newsletter.subscribe(db, payload.get("email"))
        return jsonify({"success": True, "message": "Subscribed successfully"})

    @app.route("/sendnewsletter", methods=["POST"])
    def send_newsletter():
        newsletter.broadcast_newsletter(db)
        return jsonify({"success": True, "message": "Emails sent to all subscribers."})

    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 4000))
    create_app().run(host="0.0.0.0", port=port)
