"""
Bundle Store for the Bundle Upsell app.

A bundle is a shop-owned group of product IDs sold together at a discount.
Every operation here is a single MongoDB call:

1. create        - insert a new bundle
2. list_by_shop  - find all bundles of one shop
3. update        - replace name/products/discount of one bundle
4. delete        - remove one bundle (missing IDs are not an error)

No catalog lookups and no discount math happen here.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from mongoengine import Document, FloatField, ListField, StringField
from mongoengine.errors import OperationError
from mongoengine.errors import ValidationError as DocumentValidationError
from pymongo.errors import PyMongoError

from src.errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)

# Driver-level failures that map to StorageError
STORAGE_ERRORS = (PyMongoError, OperationError, DocumentValidationError)


class Bundle(Document):
    """A bundle document, stored with the same field names the frontend sends."""

    shop = StringField(required=True)
    bundle_name = StringField(required=True, db_field="bundleName")
    products = ListField(StringField())
    discount = FloatField(required=True)

    meta = {
        "collection": "bundles",
        "indexes": ["shop"],
    }

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize for JSON responses.

        The discount is stored as a double, so a whole-number discount is
        emitted as a JSON integer (15, not 15.0).
        """
        return {
            "id": str(self.id),
            "shop": self.shop,
            "bundleName": self.bundle_name,
            "products": list(self.products),
            "discount": _json_number(self.discount),
        }


def _json_number(value: Union[int, float]) -> Union[int, float]:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class BundleStore:
    """
    CRUD operations over Bundle documents.

    Usage:
        store = get_bundle_store()
        bundle = store.create("shop1.myshopify.com", "Summer Pack", ["p1", "p2"], 15)
        bundles = store.list_by_shop("shop1.myshopify.com")
    """

    _instance: Optional['BundleStore'] = None

    @classmethod
    def get_instance(cls) -> 'BundleStore':
        """Get the singleton instance of BundleStore."""
        if cls._instance is None:
            cls._instance = BundleStore()
        return cls._instance

    def create(
        self,
        shop: str,
        bundle_name: str,
        products: List[str],
        discount: Union[int, float],
    ) -> Bundle:
        """
        Persist a new bundle. No duplicate check is made.

        Raises:
            StorageError: If the insert fails
        """
        bundle = Bundle(
            shop=shop,
            bundle_name=bundle_name,
            products=list(products),
            discount=discount,
        )
        try:
            bundle.save()
        except STORAGE_ERRORS as e:
            logger.error(f"Error creating bundle for {shop}: {e}")
            raise StorageError("Failed to create bundle.") from e

        logger.info(f"Created bundle {bundle.id} '{bundle_name}' for {shop}")
        return bundle

    def list_by_shop(self, shop: str) -> List[Bundle]:
        """
        All bundles owned by a shop, in storage order.

        Returns:
            List of bundles (empty if the shop has none)
        """
        try:
            return list(Bundle.objects(shop=shop))
        except STORAGE_ERRORS as e:
            logger.error(f"Error fetching bundles for {shop}: {e}")
            raise StorageError("Failed to fetch bundles.") from e

    def update(
        self,
        bundle_id: str,
        bundle_name: str,
        products: List[str],
        discount: Union[int, float],
    ) -> Bundle:
        """
        Replace name, products and discount of a bundle in one atomic call.

        The owning shop is never touched.

        Returns:
            The updated bundle

        Raises:
            NotFoundError: If the ID is malformed or unknown
            StorageError: If the update fails
        """
        if not ObjectId.is_valid(bundle_id):
            raise NotFoundError(f"Bundle {bundle_id} not found.")

        try:
            updated = Bundle.objects(id=bundle_id).modify(
                new=True,
                set__bundle_name=bundle_name,
                set__products=list(products),
                set__discount=discount,
            )
        except STORAGE_ERRORS as e:
            logger.error(f"Error updating bundle {bundle_id}: {e}")
            raise StorageError("Failed to update bundle.") from e

        if updated is None:
            raise NotFoundError(f"Bundle {bundle_id} not found.")

        logger.info(f"Updated bundle {bundle_id} -> '{bundle_name}'")
        return updated

    def delete(self, bundle_id: str) -> bool:
        """
        Delete a bundle. Unknown or malformed IDs are treated as already deleted.

        Returns:
            True if a document was removed, False otherwise

        Raises:
            StorageError: If the delete fails
        """
        if not ObjectId.is_valid(bundle_id):
            logger.info(f"Delete of malformed bundle id {bundle_id!r} ignored")
            return False

        try:
            deleted = Bundle.objects(id=bundle_id).delete()
        except STORAGE_ERRORS as e:
            logger.error(f"Error deleting bundle {bundle_id}: {e}")
            raise StorageError("Failed to delete bundle.") from e

        if deleted:
            logger.info(f"Deleted bundle {bundle_id}")
        return bool(deleted)


# Singleton accessor function
def get_bundle_store() -> BundleStore:
    """Get the singleton BundleStore instance."""
    return BundleStore.get_instance()
