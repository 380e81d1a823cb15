"""
Shopify Admin GraphQL client and the metafield persistence step.

Each of the four ProductContent fields is stored as its own JSON metafield
under the product_bridge namespace, written in one metafieldsSet mutation.
"""

import logging
from typing import Any

import httpx
import orjson
from pydantic import BaseModel

from errors import Err, ErrorKind, Ok, fail
from models import CONTENT_FIELDS, METAFIELD_NAMESPACE, ProductContent, SavedMetafield
from retry import RetryPolicy, retry_with_policy

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-10"

METAFIELDS_SET_MUTATION = """
mutation MetafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields {
      id
      namespace
      key
      value
    }
    userErrors {
      field
      message
    }
  }
}
"""


class ShopifyAPIError(Exception):
    """Top-level GraphQL error returned with an HTTP 200."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ShopifyAdminClient:
    """Minimal Admin API client: POSTs GraphQL documents for one shop."""

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        http: httpx.AsyncClient | None = None,
    ):
        self.endpoint = f"https://{shop_domain}/admin/api/{api_version}/graphql.json"
        self._headers = {
            "X-Shopify-Access-Token": access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._http = http or httpx.AsyncClient(timeout=30.0)

    async def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._http.post(
            self.endpoint,
            content=orjson.dumps({"query": query, "variables": variables or {}}),
            headers=self._headers,
        )
        response.raise_for_status()
        payload = orjson.loads(response.content)

        errors = payload.get("errors")
        if errors:
            messages = [e.get("message", "") for e in errors if isinstance(e, dict)]
            throttled = any(
                isinstance(e, dict) and (e.get("extensions") or {}).get("code") == "THROTTLED" for e in errors
            )
            # Throttling is reported in-band; surface it as a 429 so it is retried
            raise ShopifyAPIError("; ".join(messages) or "GraphQL error", status_code=429 if throttled else None)
        return payload

    async def aclose(self) -> None:
        await self._http.aclose()


# ---------------------------------------------------------------------------
# Persistence step
# ---------------------------------------------------------------------------


def _jsonable(items: list) -> list:
    return [i.model_dump(mode="json") if isinstance(i, BaseModel) else i for i in items]


def build_metafields(product_id: str, content: ProductContent) -> list[dict[str, str]]:
    return [
        {
            "ownerId": product_id,
            "namespace": METAFIELD_NAMESPACE,
            "key": key,
            "type": "json",
            "value": orjson.dumps(_jsonable(getattr(content, key))).decode(),
        }
        for key in CONTENT_FIELDS
    ]


async def save_product_content(
    client: ShopifyAdminClient,
    product_id: str,
    content: ProductContent,
    **retry_overrides: Any,
) -> Ok[list[SavedMetafield]] | Err:
    """Write all four metafields in one mutation.

    Transport failures (save.shopify_failed) and Shopify refusing the values
    (save.shopify_error) are reported separately: only the former can be
    fixed by trying again.
    """
    metafields = build_metafields(product_id, content)
    result = await retry_with_policy(
        RetryPolicy.COMMERCE,
        lambda: client.graphql(METAFIELDS_SET_MUTATION, {"metafields": metafields}),
        **retry_overrides,
    )
    if not result.success:
        logger.warning(f"metafieldsSet failed after {result.attempts} attempt(s): {result.error}")
        return fail(
            "save.shopify_failed",
            "Failed to save to Shopify after retries.",
            "Check your connection and try again.",
            kind=ErrorKind.TRANSIENT,
            details=str(result.error),
        )

    outcome = (result.value.get("data") or {}).get("metafieldsSet")
    if not outcome:
        logger.warning(f"metafieldsSet returned no result for {product_id}: {result.value}")
        return fail(
            "save.shopify_error",
            "Shopify did not confirm the metafields were saved.",
            "Try saving again; if it keeps failing, check the app's API permissions.",
            kind=ErrorKind.REJECTED,
        )

    user_errors = outcome.get("userErrors") or []
    if user_errors:
        messages = ", ".join(str(e.get("message", "")) for e in user_errors)
        return fail(
            "save.shopify_error",
            f"Shopify rejected the metafields: {messages}",
            "Check that all fields contain valid values and try again.",
            kind=ErrorKind.REJECTED,
        )

    saved = [SavedMetafield.model_validate(m) for m in outcome.get("metafields") or []]
    logger.info(f"Saved {len(saved)} metafields to {product_id}")
    return Ok(saved)
