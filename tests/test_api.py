"""
Test Suite for the Bundle Upsell HTTP API.

Exercises every route through Flask's test client with MongoDB replaced by
mongomock and Shopify network calls patched out.
"""

import pytest
import sys
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import mongomock
import shopify
from bson import ObjectId
from flask import Flask
from flask.sessions import SecureCookieSessionInterface

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from api.app import OAUTH_SHOP_KEY, OAUTH_STATE_KEY, SHOP_KEY, create_app
from src.bundle_store import Bundle, BundleStore
from src.database import disconnect_database
from src.session_store import MemorySessionStorage


SHOP = "shop1.myshopify.com"

SUMMER_PACK = {
    "shop": SHOP,
    "bundleName": "Summer Pack",
    "products": ["p1", "p2"],
    "discount": 15,
}


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def session_store():
    return MemorySessionStorage()


@pytest.fixture
def app(session_store):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key",
            "MONGO_URI": "mongodb://localhost:27017/api_test",
            "MONGO_DB_NAME": "api_test",
            "MONGO_CLIENT_CLASS": mongomock.MongoClient,
            "SHOPIFY_API_KEY": "test-key",
            "SHOPIFY_API_SECRET": "test-secret",
            "SHOPIFY_HOST": "bundles.example.com",
        },
        session_store=session_store,
        bundle_store=BundleStore(),
    )
    yield app
    Bundle.drop_collection()
    disconnect_database()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def created_bundle(client):
    response = client.post("/create-bundle", json=SUMMER_PACK)
    assert response.status_code == 201
    return response.get_json()["bundle"]


# =============================================================================
# TEST: HEALTH & DASHBOARD
# =============================================================================

class TestStaticRoutes:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_dashboard(self, client):
        response = client.get(f"/dashboard?shop={SHOP}")

        assert response.status_code == 200
        assert response.get_data(as_text=True) == "Welcome to the Bundle Upsell Dashboard!"

    def test_unknown_route(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.get_json()["success"] is False


# =============================================================================
# TEST: AUTH
# =============================================================================

class TestAuthRoutes:
    """Tests for /auth and /auth/callback."""

    def test_auth_without_shop_is_400(self, client):
        response = client.get("/auth")

        assert response.status_code == 400
        assert "Location" not in response.headers
        assert response.get_json()["error"] == "Missing shop parameter."

    def test_auth_with_invalid_shop_is_400(self, client):
        response = client.get("/auth?shop=evil.com")

        assert response.status_code == 400

    def test_auth_redirects_to_consent_screen(self, client):
        response = client.get(f"/auth?shop={SHOP}")

        assert response.status_code == 302
        location = urlparse(response.headers["Location"])
        assert location.netloc == SHOP
        assert location.path == "/admin/oauth/authorize"

        with client.session_transaction() as sess:
            assert sess[OAUTH_SHOP_KEY] == SHOP
            assert parse_qs(location.query)["state"] == [sess[OAUTH_STATE_KEY]]

    def test_full_oauth_flow(self, client, session_store, monkeypatch):
        monkeypatch.setattr(shopify.Session, "request_token", lambda self, params: "shpat_abc")

        begin = client.get(f"/auth?shop={SHOP}")
        state = parse_qs(urlparse(begin.headers["Location"]).query)["state"][0]

        response = client.get(
            "/auth/callback",
            query_string={"code": "c0de", "hmac": "x", "shop": SHOP, "state": state, "timestamp": "1"},
        )

        assert response.status_code == 302
        assert response.headers["Location"].endswith(f"/dashboard?shop={SHOP}")
        assert session_store.get(SHOP).access_token == "shpat_abc"

        with client.session_transaction() as sess:
            assert sess[SHOP_KEY] == SHOP
            assert OAUTH_STATE_KEY not in sess

    def test_callback_with_wrong_state_is_500(self, client, session_store, monkeypatch):
        monkeypatch.setattr(shopify.Session, "request_token", lambda self, params: "shpat_abc")
        client.get(f"/auth?shop={SHOP}")

        response = client.get(
            "/auth/callback",
            query_string={"code": "c0de", "hmac": "x", "shop": SHOP, "state": "forged", "timestamp": "1"},
        )

        assert response.status_code == 500
        assert response.get_json()["error"] == "Authentication failed."
        assert session_store.get(SHOP) is None

    def test_callback_without_begin_is_500(self, client):
        response = client.get(
            "/auth/callback",
            query_string={"code": "c0de", "hmac": "x", "shop": SHOP, "state": "s", "timestamp": "1"},
        )

        assert response.status_code == 500

    def test_failed_callback_consumes_state(self, client, monkeypatch):
        """After a failed callback the flow must restart at /auth."""
        monkeypatch.setattr(shopify.Session, "request_token", lambda self, params: "shpat_abc")
        begin = client.get(f"/auth?shop={SHOP}")
        state = parse_qs(urlparse(begin.headers["Location"]).query)["state"][0]
        params = {"code": "c0de", "hmac": "x", "shop": SHOP, "timestamp": "1"}

        client.get("/auth/callback", query_string={**params, "state": "forged"})
        retry = client.get("/auth/callback", query_string={**params, "state": state})

        assert retry.status_code == 500


# =============================================================================
# TEST: PRODUCTS
# =============================================================================

class TestProductsRoute:

    def test_without_session_is_500(self, client):
        response = client.get("/products")

        assert response.status_code == 500
        assert response.get_json()["error"] == "Failed to fetch products."

    def test_with_session(self, client, session_store, monkeypatch):
        session_store.put(SHOP, "shpat_abc")
        with client.session_transaction() as sess:
            sess[SHOP_KEY] = SHOP

        class _Product:
            def to_dict(self):
                return {"id": 632910392, "title": "IPod Nano - 8GB"}

        monkeypatch.setattr(shopify.Product, "find", lambda *a, **kw: [_Product()])

        response = client.get("/products")

        assert response.status_code == 200
        assert response.get_json() == {"products": [{"id": 632910392, "title": "IPod Nano - 8GB"}]}

    def test_cookie_signed_with_other_key_is_rejected(self, app, client, session_store):
        """A shop cookie forged with a guessable key does not authenticate."""
        session_store.put(SHOP, "shpat_abc")
        forger = Flask("forger")
        forger.secret_key = "dev-secret-change-me"
        forged = SecureCookieSessionInterface().get_signing_serializer(forger).dumps({SHOP_KEY: SHOP})
        client.set_cookie(app.config["SESSION_COOKIE_NAME"], forged)

        response = client.get("/products")

        assert response.status_code == 500
        assert response.get_json()["error"] == "Failed to fetch products."


class TestSecretKey:

    def test_missing_secret_gets_random_key(self, session_store):
        overrides = {"SECRET_KEY": "", "MONGO_CLIENT_CLASS": mongomock.MongoClient}
        keys = [
            create_app(overrides, session_store=session_store, bundle_store=BundleStore())
            .config["SECRET_KEY"]
            for _ in range(2)
        ]
        disconnect_database()

        assert all(keys)
        assert keys[0] != keys[1]

    def test_configured_secret_kept(self, app):
        assert app.config["SECRET_KEY"] == "test-secret-key"


# =============================================================================
# TEST: BUNDLES
# =============================================================================

class TestCreateBundle:

    def test_create_returns_201(self, client):
        response = client.post("/create-bundle", json=SUMMER_PACK)

        assert response.status_code == 201
        body = response.get_json()
        assert body["message"] == 'Bundle "Summer Pack" created successfully!'
        assert body["bundle"]["bundleName"] == "Summer Pack"
        assert body["bundle"]["products"] == ["p1", "p2"]
        assert body["bundle"]["discount"] == 15

    def test_create_then_list(self, client):
        client.post("/create-bundle", json=SUMMER_PACK)

        response = client.get(f"/bundles?shop={SHOP}")

        assert response.status_code == 200
        bundles = response.get_json()
        assert len(bundles) == 1
        assert bundles[0]["shop"] == SHOP
        assert bundles[0]["bundleName"] == "Summer Pack"
        assert bundles[0]["products"] == ["p1", "p2"]
        assert bundles[0]["discount"] == 15

    @pytest.mark.parametrize("field", ["shop", "bundleName", "products", "discount"])
    def test_missing_field_is_400(self, client, field):
        body = {k: v for k, v in SUMMER_PACK.items() if k != field}

        response = client.post("/create-bundle", json=body)

        assert response.status_code == 400
        assert response.get_json()["error"].startswith("Missing bundle details.")

    def test_no_body_is_400(self, client):
        response = client.post("/create-bundle", data="not json", content_type="text/plain")

        assert response.status_code == 400

    def test_nothing_stored_on_400(self, client):
        client.post("/create-bundle", json={**SUMMER_PACK, "discount": 0})

        assert client.get(f"/bundles?shop={SHOP}").get_json() == []

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_discount_is_400(self, client, literal):
        body = (
            '{"shop": "' + SHOP + '", "bundleName": "N", "products": ["p1"], '
            '"discount": ' + literal + "}"
        )

        response = client.post("/create-bundle", data=body, content_type="application/json")

        assert response.status_code == 400
        assert "discount" in response.get_json()["error"]
        assert client.get(f"/bundles?shop={SHOP}").get_json() == []

    def test_whole_discount_is_json_integer(self, client):
        created = client.post("/create-bundle", json=SUMMER_PACK).get_json()["bundle"]
        listed = client.get(f"/bundles?shop={SHOP}").get_json()[0]

        assert created["discount"] == 15 and isinstance(created["discount"], int)
        assert listed["discount"] == 15 and isinstance(listed["discount"], int)


class TestListBundles:

    def test_missing_shop_is_400(self, client):
        response = client.get("/bundles")

        assert response.status_code == 400
        assert response.get_json()["error"] == "Missing shop parameter."

    def test_empty_shop_returns_empty_array(self, client, created_bundle):
        response = client.get("/bundles?shop=empty.myshopify.com")

        assert response.status_code == 200
        assert response.get_json() == []

    def test_only_requested_shop(self, client, created_bundle):
        client.post("/create-bundle", json={**SUMMER_PACK, "shop": "shop2.myshopify.com"})

        bundles = client.get(f"/bundles?shop={SHOP}").get_json()

        assert [b["shop"] for b in bundles] == [SHOP]


class TestUpdateBundle:

    WINTER_PACK = {"bundleName": "Winter Pack", "products": ["p3"], "discount": 20}

    def test_update_existing(self, client, created_bundle):
        response = client.put(f"/update-bundle/{created_bundle['id']}", json=self.WINTER_PACK)

        assert response.status_code == 200
        assert response.get_json()["message"] == 'Bundle "Winter Pack" updated successfully!'

        bundles = client.get(f"/bundles?shop={SHOP}").get_json()
        assert len(bundles) == 1
        assert bundles[0]["id"] == created_bundle["id"]
        assert bundles[0]["shop"] == SHOP
        assert bundles[0]["bundleName"] == "Winter Pack"
        assert bundles[0]["products"] == ["p3"]
        assert bundles[0]["discount"] == 20

    def test_shop_in_body_is_ignored(self, client, created_bundle):
        body = {**self.WINTER_PACK, "shop": "thief.myshopify.com"}

        client.put(f"/update-bundle/{created_bundle['id']}", json=body)

        assert client.get("/bundles?shop=thief.myshopify.com").get_json() == []
        assert len(client.get(f"/bundles?shop={SHOP}").get_json()) == 1

    def test_unknown_id_is_404(self, client):
        response = client.put(f"/update-bundle/{ObjectId()}", json=self.WINTER_PACK)

        assert response.status_code == 404
        assert response.get_json()["success"] is False

    def test_malformed_id_is_404(self, client):
        response = client.put("/update-bundle/12345", json=self.WINTER_PACK)

        assert response.status_code == 404

    def test_invalid_body_is_400(self, client, created_bundle):
        response = client.put(f"/update-bundle/{created_bundle['id']}", json={"bundleName": "X"})

        assert response.status_code == 400

    def test_huge_int_discount_is_400(self, client, created_bundle):
        body = {**self.WINTER_PACK, "discount": 10 ** 400}

        response = client.put(f"/update-bundle/{created_bundle['id']}", json=body)

        assert response.status_code == 400
        assert client.get(f"/bundles?shop={SHOP}").get_json()[0]["discount"] == 15


class TestDeleteBundle:

    def test_delete_existing(self, client, created_bundle):
        response = client.delete(f"/delete-bundle/{created_bundle['id']}")

        assert response.status_code == 200
        assert response.get_json()["message"] == "Bundle deleted successfully!"
        assert client.get(f"/bundles?shop={SHOP}").get_json() == []

    def test_delete_unknown_id_succeeds(self, client):
        response = client.delete(f"/delete-bundle/{ObjectId()}")

        assert response.status_code == 200

    def test_delete_malformed_id_succeeds(self, client):
        response = client.delete("/delete-bundle/not-an-id")

        assert response.status_code == 200


# =============================================================================
# TEST: STORAGE FAILURES
# =============================================================================

class TestStorageFailures:
    """MongoDB outages come back as 500 with the route's public message."""

    def test_create(self, client, monkeypatch, failing_save):
        monkeypatch.setattr(Bundle, "save", failing_save)

        response = client.post("/create-bundle", json=SUMMER_PACK)

        assert response.status_code == 500
        assert response.get_json() == {"success": False, "error": "Failed to create bundle."}

    def test_list(self, client, monkeypatch, broken_queryset):
        monkeypatch.setattr(Bundle, "objects", broken_queryset)

        response = client.get(f"/bundles?shop={SHOP}")

        assert response.status_code == 500
        assert response.get_json() == {"success": False, "error": "Failed to fetch bundles."}

    def test_update(self, client, monkeypatch, broken_queryset):
        monkeypatch.setattr(Bundle, "objects", broken_queryset)

        response = client.put(
            f"/update-bundle/{ObjectId()}",
            json={"bundleName": "Winter Pack", "products": ["p3"], "discount": 20},
        )

        assert response.status_code == 500
        assert response.get_json() == {"success": False, "error": "Failed to update bundle."}

    def test_delete(self, client, monkeypatch, broken_queryset):
        monkeypatch.setattr(Bundle, "objects", broken_queryset)

        response = client.delete(f"/delete-bundle/{ObjectId()}")

        assert response.status_code == 500
        assert response.get_json() == {"success": False, "error": "Failed to delete bundle."}
