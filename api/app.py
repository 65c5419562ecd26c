"""
Flask API for the Bundle Upsell Shopify App.

This module provides the REST API endpoints:
- GET /health - Health check
- GET /auth, GET /auth/callback - Shopify OAuth
- GET /products - Pass-through of the authenticated shop's products
- POST /create-bundle, GET /bundles, PUT /update-bundle/<id>,
  DELETE /delete-bundle/<id> - Bundle management
- GET /dashboard - Landing page after OAuth

The OAuth state nonce and the authenticated shop travel in Flask's signed
session cookie; access tokens stay server-side in the session store.
"""

import logging
import secrets
import time
from typing import Any, Dict, Optional
from functools import wraps

from flask import Flask, jsonify, redirect, request, session, url_for
from flask_cors import CORS

from src.bundle_store import BundleStore, get_bundle_store
from src.database import connect_database
from src.errors import BundleAppError, ValidationError
from src.schemas import BundleCreate, BundleUpdate, parse_body
from src.session_store import SessionStore, create_session_store
from src.shopify_auth import ShopifyAuthGateway
from config import (
    API_CONFIG,
    DASHBOARD_MESSAGE,
    LOGGING_CONFIG,
    MONGO_CONFIG,
    SESSION_CONFIG,
    SHOPIFY_CONFIG,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOGGING_CONFIG["level"], logging.INFO),
    format=LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)

# Keys kept in the signed session cookie
OAUTH_STATE_KEY = "oauth_state"
OAUTH_SHOP_KEY = "oauth_shop"
SHOP_KEY = "shop"


def create_app(
    config_overrides: Optional[Dict[str, Any]] = None,
    session_store: Optional[SessionStore] = None,
    bundle_store: Optional[BundleStore] = None,
) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_overrides: Flask config values applied over the defaults
            (e.g. MONGO_URI, MONGO_CLIENT_CLASS, SHOPIFY_API_KEY)
        session_store: Session backend; built from SESSION_STORAGE if omitted
        bundle_store: Bundle backend; the shared BundleStore if omitted

    Returns:
        Configured Flask app instance
    """
    app = Flask(__name__)

    app.config.update(
        SECRET_KEY=SESSION_CONFIG["secret_key"],
        SESSION_COOKIE_SECURE=SESSION_CONFIG["cookie_secure"],
        SESSION_COOKIE_SAMESITE=SESSION_CONFIG["cookie_samesite"],
        SESSION_STORAGE=SESSION_CONFIG["storage"],
        MONGO_URI=MONGO_CONFIG["uri"],
        MONGO_DB_NAME=MONGO_CONFIG["db_name"],
        MONGO_CLIENT_CLASS=None,
        SHOPIFY_API_KEY=SHOPIFY_CONFIG["api_key"],
        SHOPIFY_API_SECRET=SHOPIFY_CONFIG["api_secret"],
        SHOPIFY_SCOPES=SHOPIFY_CONFIG["scopes"],
        SHOPIFY_HOST=SHOPIFY_CONFIG["host"],
        SHOPIFY_API_VERSION=SHOPIFY_CONFIG["api_version"],
    )
    if config_overrides:
        app.config.update(config_overrides)

    if not app.config["SECRET_KEY"]:
        logger.warning("SECRET_KEY is not set; using a random key for this process")
        app.config["SECRET_KEY"] = secrets.token_hex(32)

    # Enable CORS for all routes
    CORS(app)

    # Database connection is lazy; nothing is contacted until the first query
    connect_database(
        app.config["MONGO_URI"],
        app.config["MONGO_DB_NAME"],
        mongo_client_class=app.config["MONGO_CLIENT_CLASS"],
    )

    if session_store is None:
        session_store = create_session_store(app.config["SESSION_STORAGE"])
    if bundle_store is None:
        bundle_store = get_bundle_store()

    gateway = ShopifyAuthGateway(
        session_store=session_store,
        api_key=app.config["SHOPIFY_API_KEY"],
        api_secret=app.config["SHOPIFY_API_SECRET"],
        scopes=app.config["SHOPIFY_SCOPES"],
        host=app.config["SHOPIFY_HOST"],
        api_version=app.config["SHOPIFY_API_VERSION"],
    )

    app.extensions["session_store"] = session_store
    app.extensions["bundle_store"] = bundle_store
    app.extensions["shopify_gateway"] = gateway

    # Request timing decorator
    def timed_request(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            start_time = time.time()
            response = f(*args, **kwargs)
            elapsed_ms = (time.time() - start_time) * 1000
            logger.info(f"{request.method} {request.path} completed in {elapsed_ms:.2f}ms")
            return response
        return decorated_function

    # Error handlers
    @app.errorhandler(BundleAppError)
    def app_error(error: BundleAppError):
        if error.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {error.message}")
        else:
            logger.warning(f"{request.method} {request.path} rejected: {error.message}")
        return jsonify({
            "success": False,
            "error": error.message
        }), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            "success": False,
            "error": "The requested resource was not found"
        }), 404

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal error: {error}")
        return jsonify({
            "success": False,
            "error": "An unexpected error occurred"
        }), 500

    # ==========================================================================
    # HEALTH CHECK ENDPOINT
    # ==========================================================================

    @app.route("/health", methods=["GET"])
    @timed_request
    def health_check():
        """Liveness endpoint; never touches MongoDB or Shopify."""
        return jsonify({
            "status": "healthy",
            "timestamp": time.time()
        }), 200

    # ==========================================================================
    # AUTHENTICATION ENDPOINTS
    # ==========================================================================

    @app.route("/auth", methods=["GET"])
    @timed_request
    def begin_auth():
        """
        Start OAuth for a shop.

        Query Parameters:
        - shop: Shop domain, e.g. "store.myshopify.com" (required)

        Returns:
            302 redirect to the Shopify consent screen, or 400 without a shop
        """
        shop, auth_url, state = gateway.begin(request.args.get("shop"))

        session[OAUTH_STATE_KEY] = state
        session[OAUTH_SHOP_KEY] = shop

        return redirect(auth_url)

    @app.route("/auth/callback", methods=["GET"])
    @timed_request
    def auth_callback():
        """
        Complete OAuth.

        Shopify calls this with code, hmac, shop, state and timestamp. The
        stored nonce is consumed whether or not validation succeeds, so a
        failed callback must restart at /auth.

        Returns:
            302 redirect to /dashboard?shop=<shop>, or 500 on failure
        """
        expected_state = session.pop(OAUTH_STATE_KEY, None)
        expected_shop = session.pop(OAUTH_SHOP_KEY, None)

        shop = gateway.complete_callback(
            request.args.to_dict(),
            expected_state=expected_state,
            expected_shop=expected_shop,
        )

        session[SHOP_KEY] = shop
        return redirect(url_for("dashboard", shop=shop))

    # ==========================================================================
    # PRODUCTS ENDPOINT
    # ==========================================================================

    @app.route("/products", methods=["GET"])
    @timed_request
    def list_products():
        """
        Get the authenticated shop's products straight from Shopify.

        The shop comes from the session cookie set by /auth/callback.

        Example Response:
        {
            "products": [{"id": 632910392, "title": "IPod Nano - 8GB", ...}, ...]
        }
        """
        products = gateway.list_products(session.get(SHOP_KEY))
        return jsonify(products), 200

    # ==========================================================================
    # BUNDLE ENDPOINTS
    # ==========================================================================

    @app.route("/create-bundle", methods=["POST"])
    @timed_request
    def create_bundle():
        """
        Create a bundle.

        Request Body:
        {
            "shop": "store.myshopify.com",
            "bundleName": "Summer Pack",
            "products": ["p1", "p2"],
            "discount": 15
        }

        Returns:
            201 with a confirmation message and the stored bundle
        """
        data = parse_body(
            BundleCreate,
            request.get_json(silent=True),
            "Missing bundle details.",
        )

        bundle = bundle_store.create(
            shop=data.shop,
            bundle_name=data.bundle_name,
            products=data.products,
            discount=data.discount,
        )

        return jsonify({
            "success": True,
            "message": f'Bundle "{bundle.bundle_name}" created successfully!',
            "bundle": bundle.to_dict()
        }), 201

    @app.route("/bundles", methods=["GET"])
    @timed_request
    def list_bundles():
        """
        Get all bundles of a shop.

        Query Parameters:
        - shop: Shop domain (required)

        Returns:
            JSON array of bundles; empty if the shop has none
        """
        shop = request.args.get("shop")
        if not shop:
            raise ValidationError("Missing shop parameter.")

        bundles = bundle_store.list_by_shop(shop)
        return jsonify([b.to_dict() for b in bundles]), 200

    @app.route("/update-bundle/<bundle_id>", methods=["PUT"])
    @timed_request
    def update_bundle(bundle_id: str):
        """
        Replace the name, products and discount of a bundle.

        Request Body:
        {
            "bundleName": "Winter Pack",
            "products": ["p3"],
            "discount": 20
        }

        Returns:
            200 with a confirmation message, 404 if the bundle does not exist
        """
        data = parse_body(
            BundleUpdate,
            request.get_json(silent=True),
            "Missing bundle details.",
        )

        bundle = bundle_store.update(
            bundle_id,
            bundle_name=data.bundle_name,
            products=data.products,
            discount=data.discount,
        )

        return jsonify({
            "success": True,
            "message": f'Bundle "{bundle.bundle_name}" updated successfully!',
            "bundle": bundle.to_dict()
        }), 200

    @app.route("/delete-bundle/<bundle_id>", methods=["DELETE"])
    @timed_request
    def delete_bundle(bundle_id: str):
        """
        Delete a bundle.

        Deleting an ID that does not exist succeeds as well.
        """
        bundle_store.delete(bundle_id)

        return jsonify({
            "success": True,
            "message": "Bundle deleted successfully!"
        }), 200

    # ==========================================================================
    # DASHBOARD
    # ==========================================================================

    @app.route("/dashboard", methods=["GET"])
    @timed_request
    def dashboard():
        """Static landing page; OAuth redirects here with ?shop=."""
        return DASHBOARD_MESSAGE, 200

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    """Run the Flask development server."""
    logger.info("Starting Bundle Upsell API...")
    logger.info(f"Server: http://{API_CONFIG['host']}:{API_CONFIG['port']}")

    app.run(
        host=API_CONFIG["host"],
        port=API_CONFIG["port"],
        debug=API_CONFIG["debug"]
    )
