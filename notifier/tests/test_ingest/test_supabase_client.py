"""Tests for the Supabase order store client."""

import httpx
import pytest
import respx

from notifier.config.schema import StoreConfig
from notifier.ingest.supabase_client import StoreClientError, SupabaseClient

URL = "https://project.supabase.test"


@pytest.fixture
def client() -> SupabaseClient:
    return SupabaseClient(url=URL, api_key="anon-key", config=StoreConfig())


class TestSupabaseClient:
    @respx.mock
    def test_fetch_orders_after(self, client):
        route = respx.get(f"{URL}/rest/v1/orders").mock(
            return_value=httpx.Response(200, json=[{"id": "o1", "created_at": "2026-03-01T20:00:00Z"}])
        )
        rows = client.fetch_orders_after("2026-03-01T19:00:00Z", limit=10)
        assert rows[0]["id"] == "o1"

        request = route.calls.last.request
        assert request.url.params["created_at"] == "gt.2026-03-01T19:00:00Z"
        assert request.url.params["order"] == "created_at.asc"
        assert request.url.params["limit"] == "10"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["authorization"] == "Bearer anon-key"

    @respx.mock
    def test_latest_order(self, client):
        route = respx.get(f"{URL}/rest/v1/orders").mock(
            return_value=httpx.Response(200, json=[{"id": "o9"}])
        )
        assert client.latest_order() == {"id": "o9"}
        assert route.calls.last.request.url.params["order"] == "created_at.desc"

    @respx.mock
    def test_latest_order_empty_table(self, client):
        respx.get(f"{URL}/rest/v1/orders").mock(return_value=httpx.Response(200, json=[]))
        assert client.latest_order() is None

    @respx.mock
    def test_fetch_orders_updated_after(self, client):
        route = respx.get(f"{URL}/rest/v1/orders").mock(return_value=httpx.Response(200, json=[]))
        client.fetch_orders_updated_after("2026-03-01T19:00:00Z")
        params = route.calls.last.request.url.params
        assert params["updated_at"] == "gt.2026-03-01T19:00:00Z"
        assert params["order"] == "updated_at.asc"

    @respx.mock
    def test_active_couriers_filters(self, client):
        route = respx.get(f"{URL}/rest/v1/funcionarios").mock(
            return_value=httpx.Response(200, json=[{"id": "c1", "nome": "João"}])
        )
        assert client.active_couriers() == [{"id": "c1", "nome": "João"}]
        params = route.calls.last.request.url.params
        assert params["cargo"] == "eq.entregador"
        assert params["ativo"] == "eq.true"

    @respx.mock
    def test_get_setting(self, client):
        respx.get(f"{URL}/rest/v1/store_settings").mock(
            return_value=httpx.Response(200, json=[{"manual_status": "closed"}])
        )
        assert client.get_setting() == "closed"

    @respx.mock
    def test_get_setting_no_row(self, client):
        respx.get(f"{URL}/rest/v1/store_settings").mock(return_value=httpx.Response(200, json=[]))
        assert client.get_setting("manual_status") is None

    @respx.mock
    def test_http_error(self, client):
        respx.get(f"{URL}/rest/v1/orders").mock(return_value=httpx.Response(401, json={"message": "bad key"}))
        with pytest.raises(StoreClientError, match="401") as exc:
            client.fetch_orders_after("2026-03-01T19:00:00Z")
        assert exc.value.status_code == 401

    @respx.mock
    def test_network_error(self, client):
        respx.get(f"{URL}/rest/v1/orders").mock(side_effect=httpx.ConnectTimeout("slow"))
        with pytest.raises(StoreClientError, match="Request failed"):
            client.latest_order()

    @respx.mock
    def test_non_list_payload(self, client):
        respx.get(f"{URL}/rest/v1/orders").mock(return_value=httpx.Response(200, json={"oops": 1}))
        with pytest.raises(StoreClientError, match="Unexpected payload"):
            client.latest_order()

    @respx.mock
    def test_ping(self, client):
        respx.get(f"{URL}/rest/v1/orders").mock(return_value=httpx.Response(503))
        assert client.ping() is False

    def test_missing_url_raises(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        with pytest.raises(StoreClientError, match="SUPABASE_URL"):
            SupabaseClient(api_key="k")

    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", URL + "/")
        monkeypatch.setenv("SUPABASE_KEY", "env-key")
        client = SupabaseClient()
        assert client.url == URL
        assert client.api_key == "env-key"
