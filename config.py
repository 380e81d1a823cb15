"""Runtime settings, read from the environment (and a local .env if present)."""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from extractor import DEFAULT_MODEL
from shopify import DEFAULT_API_VERSION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    openai_api_key: str | None = None
    openai_model: str = DEFAULT_MODEL
    shopify_shop_domain: str | None = None
    shopify_access_token: str | None = None
    shopify_api_version: str = DEFAULT_API_VERSION
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL") or DEFAULT_MODEL,
            shopify_shop_domain=os.getenv("SHOPIFY_SHOP_DOMAIN") or None,
            shopify_access_token=os.getenv("SHOPIFY_ACCESS_TOKEN") or None,
            shopify_api_version=os.getenv("SHOPIFY_API_VERSION") or DEFAULT_API_VERSION,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def shopify_configured(self) -> bool:
        return bool(self.shopify_shop_domain and self.shopify_access_token)

    def validate(self) -> list[str]:
        """Return a list of configuration problems (empty when usable)."""
        problems = []
        if not self.openai_api_key:
            problems.append("OPENAI_API_KEY is not set; extraction is unavailable")
        if not self.shopify_configured:
            problems.append("SHOPIFY_SHOP_DOMAIN / SHOPIFY_ACCESS_TOKEN not set; saving is unavailable")
        for problem in problems:
            logger.warning(problem)
        return problems
