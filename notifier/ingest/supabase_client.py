"""Supabase (PostgREST) client for orders, couriers and store settings."""

import logging
import os
from typing import Any

import httpx

from notifier.config.schema import StoreConfig

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"


class StoreClientError(Exception):
    """Raised when the order store returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SupabaseClient:
    """Read-only access to the ordering site's tables.

    Filters use PostgREST operators (``created_at=gt.<ts>``,
    ``order=created_at.asc``). Rows come back as raw dicts; normalization
    happens in the models layer.
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        config: StoreConfig | None = None,
    ):
        self.config = config or StoreConfig()
        self.url = (url or self.config.url or os.environ.get("SUPABASE_URL", "")).rstrip("/")
        self.api_key = api_key or os.environ.get("SUPABASE_KEY", "")
        if not self.url:
            raise StoreClientError("SUPABASE_URL not set")
        if not self.api_key:
            raise StoreClientError("SUPABASE_KEY not set")
        self.timeout = self.config.timeout_seconds

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    def _select(self, table: str, params: dict[str, Any]) -> list[dict]:
        url = f"{self.url}{REST_PREFIX}/{table}"
        try:
            resp = httpx.get(url, params=params, headers=self._headers(), timeout=self.timeout)
            if resp.status_code >= 400:
                body = resp.text
                logger.error("Store %d: GET %s -> %s", resp.status_code, table, body)
                raise StoreClientError(f"HTTP {resp.status_code}: {body}", resp.status_code)
            data = resp.json()
        except ValueError as e:
            raise StoreClientError(f"Invalid response from {table}: {e}") from e
        except httpx.RequestError as e:
            logger.error("Store request failed: GET %s -> %s", table, e)
            raise StoreClientError(f"Request failed: {e}") from e
        if not isinstance(data, list):
            raise StoreClientError(f"Unexpected payload from {table}: {type(data).__name__}")
        return [row for row in data if isinstance(row, dict)]

    # --- Orders ---

    def fetch_orders_after(self, cursor: str, limit: int = 10) -> list[dict]:
        """Orders created strictly after ``cursor``, oldest first."""
        return self._select(self.config.orders_table, {
            "select": "*",
            "created_at": f"gt.{cursor}",
            "order": "created_at.asc",
            "limit": limit,
        })

    def latest_order(self) -> dict | None:
        rows = self._select(self.config.orders_table, {
            "select": "*",
            "order": "created_at.desc",
            "limit": 1,
        })
        return rows[0] if rows else None

    def fetch_orders_updated_after(self, cursor: str, limit: int = 50) -> list[dict]:
        """Orders touched strictly after ``cursor``, oldest update first."""
        return self._select(self.config.orders_table, {
            "select": "*",
            "updated_at": f"gt.{cursor}",
            "order": "updated_at.asc",
            "limit": limit,
        })

    # --- Couriers ---

    def active_couriers(self) -> list[dict]:
        return self._select(self.config.couriers_table, {
            "select": "*",
            "cargo": f"eq.{self.config.courier_role}",
            "ativo": "eq.true",
        })

    # --- Settings ---

    def get_setting(self, key: str | None = None) -> Any:
        """Value of one column of the single store_settings row, or None."""
        column = key or self.config.override_key
        rows = self._select(self.config.settings_table, {"select": column, "limit": 1})
        if not rows:
            return None
        return rows[0].get(column)

    def ping(self) -> bool:
        try:
            self._select(self.config.orders_table, {"select": "id", "limit": 1})
            return True
        except StoreClientError:
            return False
