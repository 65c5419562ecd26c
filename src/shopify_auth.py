"""
Shopify OAuth gateway for the Bundle Upsell app.

Handles the three-legged OAuth flow with Shopify:

1. begin             - build the consent-screen URL and a fresh state nonce
2. complete_callback - check state, shop and HMAC, exchange the code for a
                       token and store it in the session store
3. list_products     - read the shop's product list with the stored token

Signature checks and the token exchange are delegated to the ShopifyAPI SDK.
Where the state nonce lives between steps 1 and 2 (a signed cookie) is the
HTTP layer's business.
"""

import logging
import re
import secrets
from typing import Any, Dict, List, Optional, Tuple

import shopify

from config import AUTH_CALLBACK_PATH, SHOP_DOMAIN_PATTERN
from src.errors import AuthenticationError, ProviderError, SessionError, ValidationError
from src.session_store import SessionStore

logger = logging.getLogger(__name__)

_SHOP_RE = re.compile(SHOP_DOMAIN_PATTERN)


def sanitize_shop(shop: Optional[str]) -> str:
    """
    Normalize and check a shop domain.

    Args:
        shop: Raw value of the ``shop`` query parameter

    Returns:
        Lower-cased shop domain, e.g. "shop1.myshopify.com"

    Raises:
        ValidationError: If the shop is missing or not a myshopify.com domain
    """
    if not shop or not shop.strip():
        raise ValidationError("Missing shop parameter.")

    shop = shop.strip().lower()
    shop = re.sub(r"^https?://", "", shop).rstrip("/")

    if not _SHOP_RE.match(shop):
        raise ValidationError("Invalid shop parameter.")
    return shop


class ShopifyAuthGateway:
    """
    Mediates OAuth with Shopify and calls the Admin API on a shop's behalf.

    Usage:
        gateway = ShopifyAuthGateway(session_store, api_key, api_secret,
                                     scopes=["read_products"], host="app.example.com")
        shop, auth_url, state = gateway.begin("shop1.myshopify.com")
        ...
        shop = gateway.complete_callback(request_args, expected_state=state)
        products = gateway.list_products(shop)
    """

    def __init__(
        self,
        session_store: SessionStore,
        api_key: str,
        api_secret: str,
        scopes: List[str],
        host: str,
        api_version: str = "2023-01",
    ):
        self.session_store = session_store
        self.api_key = api_key
        self.api_secret = api_secret
        self.scopes = scopes
        self.host = re.sub(r"^https?://", "", host or "").rstrip("/")
        self.api_version = api_version

        # The SDK keeps credentials at class level
        shopify.Session.setup(api_key=api_key, secret=api_secret)

    @property
    def redirect_uri(self) -> str:
        return f"https://{self.host}{AUTH_CALLBACK_PATH}"

    def begin(self, shop: Optional[str]) -> Tuple[str, str, str]:
        """
        Start OAuth for a shop.

        Args:
            shop: Shop domain from the request

        Returns:
            (sanitized shop, authorization URL, state nonce)

        Raises:
            ValidationError: If the shop is missing or invalid
        """
        shop = sanitize_shop(shop)
        state = secrets.token_urlsafe(24)

        session = shopify.Session(shop, self.api_version)
        auth_url = session.create_permission_url(
            redirect_uri=self.redirect_uri,
            scope=self.scopes,
            state=state,
        )

        logger.info(f"Starting OAuth for {shop}")
        return shop, auth_url, state

    def complete_callback(
        self,
        params: Dict[str, Any],
        expected_state: Optional[str],
        expected_shop: Optional[str] = None,
    ) -> str:
        """
        Validate the OAuth callback and store the resulting session.

        Args:
            params: All query parameters Shopify appended to the callback URL
            expected_state: Nonce issued by begin()
            expected_shop: Shop that began the flow, if known

        Returns:
            The authenticated shop domain

        Raises:
            AuthenticationError: On state/shop mismatch, bad HMAC or failed exchange
        """
        state = params.get("state")
        if not expected_state or not state or not secrets.compare_digest(state, expected_state):
            logger.error("OAuth callback state does not match the stored nonce")
            raise AuthenticationError()

        try:
            shop = sanitize_shop(params.get("shop"))
        except ValidationError as e:
            logger.error(f"OAuth callback carried an invalid shop: {params.get('shop')!r}")
            raise AuthenticationError() from e

        if expected_shop and shop != expected_shop:
            logger.error(f"OAuth callback shop {shop} does not match {expected_shop}")
            raise AuthenticationError()

        try:
            session = shopify.Session(shop, self.api_version)
            # Verifies HMAC and timestamp before exchanging the code
            access_token = session.request_token(params)
        except Exception as e:
            logger.error(f"OAuth token exchange failed for {shop}: {e}")
            raise AuthenticationError() from e

        self.session_store.put(shop, access_token, getattr(session, "access_scopes", None))
        logger.info(f"OAuth completed for {shop}")
        return shop

    def list_products(self, shop: Optional[str]) -> Dict[str, Any]:
        """
        Fetch the shop's products with its stored access token.

        The Admin API response is passed through unfiltered and unpaginated.

        Args:
            shop: Shop resolved from the request's session cookie

        Returns:
            {"products": [...]} as returned by Shopify

        Raises:
            SessionError: If there is no session for the shop
            ProviderError: If the Admin API call fails
        """
        if not shop:
            raise SessionError()

        session = self.session_store.get(shop)
        if session is None:
            logger.error(f"No session stored for {shop}")
            raise SessionError()

        try:
            with shopify.Session.temp(shop, self.api_version, session.access_token):
                products = shopify.Product.find()
        except Exception as e:
            logger.error(f"Error fetching products for {shop}: {e}")
            raise ProviderError() from e

        return {"products": [p.to_dict() for p in products]}
