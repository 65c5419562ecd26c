"""
Configuration for the Bundle Upsell Shopify App.

This file contains all configuration constants including:
- Shopify app credentials and OAuth scopes
- MongoDB connection settings
- Session storage and cookie settings
- API server and logging settings
"""

import os


# =============================================================================
# SHOPIFY APP CONFIGURATION
# =============================================================================

SHOPIFY_CONFIG = {
    "api_key": os.getenv("SHOPIFY_API_KEY", ""),
    "api_secret": os.getenv("SHOPIFY_API_SECRET", ""),
    "scopes": [
        s.strip()
        for s in os.getenv("SHOPIFY_SCOPES", "write_products,read_products").split(",")
        if s.strip()
    ],
    # Public host name of this app, used to build the OAuth redirect URI
    "host": os.getenv("SHOPIFY_HOST", "localhost:3000"),
    "api_version": os.getenv("SHOPIFY_API_VERSION", "2023-01"),
}

# Path the provider redirects back to after the consent screen
AUTH_CALLBACK_PATH = "/auth/callback"

# Shop domains accepted by /auth
SHOP_DOMAIN_PATTERN = r"^[a-zA-Z0-9][a-zA-Z0-9\-]*\.myshopify\.com$"


# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================

MONGO_CONFIG = {
    "uri": os.getenv("MONGO_URI", "mongodb://localhost:27017/shopify_bundles"),
    "db_name": os.getenv("MONGO_DB_NAME", "shopify_bundles"),
}


# =============================================================================
# SESSION CONFIGURATION
# =============================================================================

SESSION_CONFIG = {
    # Signs the cookie that carries the OAuth state and the current shop.
    # Unset means a random per-process key (cookies die on restart).
    "secret_key": os.getenv("SECRET_KEY", ""),
    # "memory" (lost on restart) or "mongo"
    "storage": os.getenv("SESSION_STORAGE", "memory").lower(),
    "cookie_secure": os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true",
    # Use "None" together with cookie_secure when embedded in the Shopify admin
    "cookie_samesite": os.getenv("SESSION_COOKIE_SAMESITE", "Lax"),
}


# =============================================================================
# BUNDLE MESSAGES
# =============================================================================

DASHBOARD_MESSAGE = "Welcome to the Bundle Upsell Dashboard!"


# =============================================================================
# API CONFIGURATION
# =============================================================================

API_CONFIG = {
    "host": os.getenv("FLASK_HOST", "0.0.0.0"),
    "port": int(os.getenv("PORT", 3000)),
    "debug": os.getenv("FLASK_DEBUG", "false").lower() == "true",
}


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

LOGGING_CONFIG = {
    "level": os.getenv("LOG_LEVEL", "INFO"),
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
