"""
MongoDB connection handling.

The app talks to MongoDB only through mongoengine documents, which use
the "default" connection alias registered here.
"""

import logging
from typing import Any, Optional

import mongoengine

logger = logging.getLogger(__name__)

DEFAULT_ALIAS = "default"


def connect_database(
    uri: str,
    db_name: Optional[str] = None,
    mongo_client_class: Optional[Any] = None,
) -> None:
    """
    (Re)register the default mongoengine connection.

    Any connection already registered under the default alias is dropped
    first, so calling this twice with different settings is safe.

    Args:
        uri: MongoDB connection string
        db_name: Database name (overrides the one in the URI)
        mongo_client_class: Alternative client class, e.g. mongomock.MongoClient
    """
    mongoengine.disconnect(alias=DEFAULT_ALIAS)

    kwargs = {"host": uri, "alias": DEFAULT_ALIAS}
    if db_name:
        kwargs["db"] = db_name
    if mongo_client_class is not None:
        kwargs["mongo_client_class"] = mongo_client_class

    mongoengine.connect(**kwargs)
    logger.info(f"Registered MongoDB connection (db={db_name or 'from URI'})")


def disconnect_database() -> None:
    """Drop the default connection."""
    mongoengine.disconnect(alias=DEFAULT_ALIAS)
