"""
Session storage for Shopify access tokens.

A session maps a shop domain to the offline access token obtained through
OAuth. Two backends share the same interface:

- MemorySessionStorage: process-local dict, lost on restart
- MongoSessionStorage: one document per shop in the "shop_sessions" collection

The app receives a store instance at construction time, so the backend can
be swapped without touching any call site.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional

from mongoengine import DateTimeField, Document, StringField
from pymongo.errors import PyMongoError

from src.errors import StorageError

logger = logging.getLogger(__name__)


class ShopSession:
    """An authenticated shop and its access token."""

    def __init__(self, shop: str, access_token: str, scope: Optional[str] = None):
        self.shop = shop
        self.access_token = access_token
        self.scope = scope

    def __repr__(self) -> str:
        return f"ShopSession(shop={self.shop!r}, scope={self.scope!r})"


class SessionStore:
    """
    Interface every session backend implements.

    Usage:
        store = create_session_store("memory")
        store.put("shop1.myshopify.com", "shpat_...")
        session = store.get("shop1.myshopify.com")
    """

    def get(self, shop: str) -> Optional[ShopSession]:
        raise NotImplementedError

    def put(self, shop: str, access_token: str, scope: Optional[str] = None) -> ShopSession:
        raise NotImplementedError

    def delete(self, shop: str) -> bool:
        raise NotImplementedError


class MemorySessionStorage(SessionStore):
    """In-process store. Sessions do not survive a restart."""

    def __init__(self):
        self._sessions: Dict[str, ShopSession] = {}
        self._lock = threading.Lock()

    def get(self, shop: str) -> Optional[ShopSession]:
        with self._lock:
            return self._sessions.get(shop)

    def put(self, shop: str, access_token: str, scope: Optional[str] = None) -> ShopSession:
        session = ShopSession(shop, access_token, scope)
        with self._lock:
            self._sessions[shop] = session
        logger.info(f"Stored session for {shop}")
        return session

    def delete(self, shop: str) -> bool:
        with self._lock:
            return self._sessions.pop(shop, None) is not None


class ShopSessionDocument(Document):
    """Persistent form of a ShopSession."""

    shop = StringField(required=True, unique=True)
    access_token = StringField(required=True)
    scope = StringField()
    updated_at = DateTimeField()

    meta = {"collection": "shop_sessions"}


class MongoSessionStorage(SessionStore):
    """Stores sessions in MongoDB so they survive restarts."""

    def get(self, shop: str) -> Optional[ShopSession]:
        try:
            doc = ShopSessionDocument.objects(shop=shop).first()
        except PyMongoError as e:
            logger.error(f"Error loading session for {shop}: {e}")
            raise StorageError("Failed to load session.") from e
        if doc is None:
            return None
        return ShopSession(doc.shop, doc.access_token, doc.scope)

    def put(self, shop: str, access_token: str, scope: Optional[str] = None) -> ShopSession:
        try:
            ShopSessionDocument.objects(shop=shop).update_one(
                upsert=True,
                set__access_token=access_token,
                set__scope=scope,
                set__updated_at=datetime.now(timezone.utc),
            )
        except PyMongoError as e:
            logger.error(f"Error storing session for {shop}: {e}")
            raise StorageError("Failed to store session.") from e
        logger.info(f"Stored session for {shop}")
        return ShopSession(shop, access_token, scope)

    def delete(self, shop: str) -> bool:
        try:
            return bool(ShopSessionDocument.objects(shop=shop).delete())
        except PyMongoError as e:
            logger.error(f"Error deleting session for {shop}: {e}")
            raise StorageError("Failed to delete session.") from e


def create_session_store(storage: str) -> SessionStore:
    """
    Build a session store from its configured name.

    Args:
        storage: "memory" or "mongo"

    Raises:
        ValueError: If the name is unknown
    """
    if storage == "memory":
        return MemorySessionStorage()
    if storage == "mongo":
        return MongoSessionStorage()
    raise ValueError(f"Unknown session storage: {storage!r}")
