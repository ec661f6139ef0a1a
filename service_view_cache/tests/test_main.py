"""
End-to-end tests for the view cache service.
"""

import pytest
from fastapi.testclient import TestClient

from service_view_cache.app.main import ReportCatalog, create_app


@pytest.fixture
def app(redis_client):
    return create_app(client=redis_client)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def service(app):
    return app.state.view_cache_service


class TestHealth:
    """Health and metrics endpoints."""

    def test_health_ok(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["service"] == "view_cache"
        assert body["dependencies"] == {"redis": "ok"}

    def test_health_reports_store_outage(self, client, redis_client):
        redis_client.fail_on.add("ping")

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["dependencies"] == {"redis": "error"}

    def test_health_is_never_cached(self, client, redis_client):
        client.get("/health")

        assert "hgetall" not in [command for command, _ in redis_client.calls]

    def test_metrics_expose_cache_outcomes(self, client):
        client.get("/views/reports/daily")
        client.get("/views/reports/daily")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'view_cache_requests_total{outcome="miss"} 1.0' in response.text
        assert 'view_cache_requests_total{outcome="hit"} 1.0' in response.text


class TestCachedViews:
    """Report views cached on their URL."""

    def test_report_rendered_once(self, client, service, redis_client):
        first = client.get("/views/reports/daily")
        second = client.get("/views/reports/daily")

        assert first.status_code == 200
        assert first.text == second.text
        assert service.catalog.render_count["daily"] == 1
        assert redis_client.stored("/views/reports/daily") is not None
        assert "expires" in second.headers
        assert "last-modified" in second.headers
        assert "x-request-id" in second.headers

    def test_query_string_is_part_of_the_key(self, client, service, redis_client):
        client.get("/views/reports/daily?format=short")
        client.get("/views/reports/daily?format=long")

        assert service.catalog.render_count["daily"] == 2
        assert redis_client.stored("/views/reports/daily?format=short") is not None

    def test_update_is_not_cached_and_refresh_header_recomputes(self, client, service):
        client.get("/views/reports/daily")

        update = client.post("/views/reports/daily", json={"title": "Daily digest"})
        assert update.status_code == 200
        assert update.json() == {"report": "daily", "updated": True}

        stale = client.get("/views/reports/daily")
        assert stale.text.startswith("Daily summary")

        fresh = client.get("/views/reports/daily", headers={"x-no-cache": "true"})
        assert fresh.text.startswith("Daily digest")
        assert service.catalog.render_count["daily"] == 2

    def test_refresh_leaves_nothing_stored(self, client, service, redis_client):
        client.get("/views/reports/daily")
        client.get("/views/reports/daily", headers={"x-no-cache": "true"})

        assert redis_client.stored("/views/reports/daily") is None

        client.get("/views/reports/daily")
        assert service.catalog.render_count["daily"] == 3

    def test_unknown_report_status_is_replayed(self, client, service):
        first = client.get("/views/reports/monthly")
        second = client.get("/views/reports/monthly")

        assert first.status_code == second.status_code == 404
        assert second.text == "unknown report monthly\n"

    def test_empty_view(self, client, redis_client):
        client.get("/views/empty")
        response = client.get("/views/empty")

        assert response.status_code == 204
        assert response.content == b""
        assert redis_client.stored("/views/empty")["statusCode"] == b"204"

    def test_store_outage_returns_error(self, client, service, redis_client):
        redis_client.fail_on.add("hgetall")

        response = client.get("/views/reports/daily")

        assert response.status_code == 503
        body = response.json()
        assert body["code"] == "STORE_ERROR"
        assert body["message"].startswith("lookup:")
        assert "daily" not in service.catalog.render_count

    def test_commit_failure_still_serves(self, client, service, redis_client):
        redis_client.fail_on.add("expire")

        response = client.get("/views/reports/daily")

        assert response.status_code == 200
        assert redis_client.stored("/views/reports/daily") is None


class TestCachedPages:
    """Pages keyed on URL and preferred language."""

    def test_pages_vary_by_language(self, client, redis_client):
        english = client.get("/pages/home", headers={"Accept-Language": "en-GB,en;q=0.8"})
        french = client.get("/pages/home", headers={"Accept-Language": "fr"})

        assert 'lang="en-gb"' in english.text
        assert 'lang="fr"' in french.text
        assert english.headers["content-type"].startswith("text/html")
        assert redis_client.stored("page:en-gb:/pages/home") is not None
        assert redis_client.stored("page:fr:/pages/home") is not None

    def test_default_language(self, client, redis_client):
        client.get("/pages/about")

        assert redis_client.stored("page:en:/pages/about") is not None

    def test_page_hit_replays_html(self, client):
        first = client.get("/pages/home", headers={"Accept-Language": "de"})
        second = client.get("/pages/home", headers={"Accept-Language": "de"})

        assert second.text == first.text
        assert second.headers["content-type"] == first.headers["content-type"]


class TestLifespan:
    """Startup and shutdown hooks."""

    def test_shutdown_keeps_injected_client(self, app, redis_client):
        with TestClient(app) as client:
            assert client.get("/health").status_code == 200

        assert redis_client.closed is False


def test_catalog_counts_renders():
    catalog = ReportCatalog()

    assert catalog.render("missing") is None
    catalog.render("weekly")
    catalog.render("weekly")

    assert catalog.render_count == {"weekly": 2}
