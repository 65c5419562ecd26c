"""
Source module for the Bundle Upsell Shopify App.

This module contains:
- shopify_auth: Shopify OAuth gateway and product pass-through
- session_store: Pluggable storage for shop access tokens
- bundle_store: Bundle documents and CRUD operations
- schemas: Request body validation
- errors: Error types mapped to HTTP responses
"""

from .bundle_store import Bundle, BundleStore, get_bundle_store
from .session_store import (
    MemorySessionStorage,
    MongoSessionStorage,
    SessionStore,
    ShopSession,
    create_session_store,
)
from .shopify_auth import ShopifyAuthGateway, sanitize_shop

__all__ = [
    "Bundle",
    "BundleStore",
    "get_bundle_store",
    "MemorySessionStorage",
    "MongoSessionStorage",
    "SessionStore",
    "ShopSession",
    "create_session_store",
    "ShopifyAuthGateway",
    "sanitize_shop",
]
