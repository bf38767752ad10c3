"""
API 集成测试 - 使用 FastAPI TestClient，平台调用全部模拟
"""

from unittest.mock import Mock, patch
from urllib.parse import urlparse

import pytest
import requests
from fastapi.testclient import TestClient

from stockmedia.api.dependencies import get_coordinator, get_proxy_session, get_shape_adapter
from stockmedia.api.main import create_app
from stockmedia.domain.models import MediaType
from stockmedia.infrastructure.cache import CacheService
from stockmedia.infrastructure.errors import ProviderError
from stockmedia.infrastructure.proxy import encode_proxy_token
from stockmedia.orchestrator import ProviderRegistry, StockMediaCoordinator


@pytest.fixture
def mock_provider(item_factory, result_factory):
    def factory(name, media_type, item_ids):
        provider = Mock()
        provider.get_name.return_value = name
        provider.supports_type.side_effect = lambda t: t == media_type
        provider.get_supported_types.return_value = [media_type]
        provider.is_configured.return_value = True
        provider.rate_limit_state = None
        provider.auth_headers_for.return_value = {}
        provider.serves_host.side_effect = lambda url: (urlparse(url).hostname or "").endswith(f"{name}.com")
        provider.download_media.return_value = None
        items = [item_factory(item_id, source=name, media_type=media_type) for item_id in item_ids]
        provider.search.return_value = result_factory(items, total=len(items) * 10, has_more=True, provider=name)
        return provider

    return factory


@pytest.fixture
def unsplash(mock_provider):
    return mock_provider("unsplash", MediaType.IMAGE, ["u1", "u2"])


@pytest.fixture
def iconfinder(mock_provider):
    return mock_provider("iconfinder", MediaType.ICON, ["i1"])


@pytest.fixture
def coordinator(unsplash, iconfinder, shape_adapter):
    registry = ProviderRegistry([unsplash, iconfinder, shape_adapter])
    return StockMediaCoordinator(registry, cache=CacheService())


@pytest.fixture
def proxy_session():
    return Mock()


@pytest.fixture
def app(coordinator, shape_adapter, proxy_session):
    application = create_app()
    application.dependency_overrides[get_coordinator] = lambda: coordinator
    application.dependency_overrides[get_shape_adapter] = lambda: shape_adapter
    application.dependency_overrides[get_proxy_session] = lambda: proxy_session
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


# ==================== 检索 ====================

class TestSearchEndpoint:
    """单类型检索接口测试"""

    def test_search_images(self, client, unsplash):
        response = client.get("/api/media/stock/search", params={
            "query": "mountain",
            "type": "image",
            "orientation": "landscape",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["query"] == "mountain"
        assert data["providers"] == ["unsplash"]
        assert [item["id"] for item in data["items"]] == ["u1", "u2"]
        assert data["total"] == 20
        assert data["has_more"] is True
        unsplash.search.assert_called_once_with("mountain", 1, 20, {"orientation": "landscape"})

    def test_search_shapes(self, client):
        response = client.get("/api/media/stock/search", params={"query": "circle", "type": "shape"})

        assert response.status_code == 200
        item = response.json()["items"][0]
        assert item["id"] == "shape_1"
        assert item["mime_type"] == "image/svg+xml"
        assert item["width"] is None

    def test_no_provider_for_type(self, client):
        response = client.get("/api/media/stock/search", params={"query": "river", "type": "video"})

        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "no_provider_for_type"

    def test_rate_limited_provider(self, client, unsplash):
        unsplash.search.side_effect = ProviderError.rate_limit_exceeded("unsplash", retry_after=60)

        response = client.get("/api/media/stock/search", params={"query": "mountain"})

        assert response.status_code == 429
        data = response.json()
        assert data["error_code"] == "rate_limit_exceeded"
        assert data["details"]["provider"] == "unsplash"

    def test_provider_timeout(self, client, unsplash):
        unsplash.search.side_effect = ProviderError.timeout("unsplash", 10)
        response = client.get("/api/media/stock/search", params={"query": "mountain"})
        assert response.status_code == 504

    def test_unavailable_provider(self, client, unsplash):
        unsplash.search.side_effect = ProviderError.service_unavailable("unsplash", 502)
        response = client.get("/api/media/stock/search", params={"query": "mountain"})
        assert response.status_code == 503

    @pytest.mark.parametrize("params", [
        {},
        {"query": ""},
        {"query": "sky", "limit": 51},
        {"query": "sky", "page": 0},
        {"query": "sky", "type": "audio"},
    ])
    def test_invalid_parameters(self, client, params):
        response = client.get("/api/media/stock/search", params=params)
        assert response.status_code == 422

    def test_unexpected_error(self, app, unsplash):
        unsplash.search.side_effect = RuntimeError("boom")
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get("/api/media/stock/search", params={"query": "mountain"})

        assert response.status_code == 500
        assert response.json()["error_code"] == "internal_error"

    def test_request_id_header(self, client):
        response = client.get("/api/media/stock/search", params={"query": "mountain"}, headers={"X-Request-ID": "req-1"})
        assert response.headers["X-Request-ID"] == "req-1"
        assert "X-Response-Time" in response.headers
        assert response.headers["Cache-Control"].startswith("no-store")


class TestSearchMultipleEndpoint:
    """多类型检索接口测试"""

    def test_default_types(self, client, unsplash, iconfinder):
        response = client.get("/api/media/stock/search-multiple", params={"query": "blue"})

        assert response.status_code == 200
        data = response.json()
        assert data["providers"] == ["unsplash", "iconfinder"]
        assert [item["id"] for item in data["items"]] == ["u1", "u2", "i1"]
        unsplash.search.assert_called_once_with("blue", 1, 10, {})

    def test_failed_type_is_skipped(self, client, iconfinder):
        iconfinder.search.side_effect = ProviderError.quota_exceeded("iconfinder")

        response = client.get("/api/media/stock/search-multiple", params={"query": "blue", "types": "image,icon"})

        assert response.status_code == 200
        assert response.json()["providers"] == ["unsplash"]

    @pytest.mark.parametrize("types", [" , ", "audio,text"])
    def test_invalid_types(self, client, types):
        response = client.get("/api/media/stock/search-multiple", params={"query": "blue", "types": types})

        assert response.status_code == 400
        assert response.json()["error_code"] == "invalid_input"


class TestProviderEndpoints:
    """平台信息接口测试"""

    def test_types(self, client):
        response = client.get("/api/media/stock/types")
        assert response.json() == {"types": ["image", "icon", "shape"]}

    def test_providers(self, client):
        response = client.get("/api/media/stock/providers")

        assert response.status_code == 200
        data = response.json()
        assert [p["name"] for p in data["providers"]] == ["unsplash", "iconfinder", "shapes"]
        assert data["providers"][2]["supported_types"] == ["shape"]
        assert data["rate_limits"]["unsplash"] is None


class TestDownloadEndpoint:
    """下载地址接口测试"""

    def test_download(self, client, unsplash):
        unsplash.download_media.return_value = "https://images.unsplash.com/photo-u1?full"

        response = client.get("/api/media/stock/unsplash/u1/download", params={"quality": "full"})

        assert response.status_code == 200
        data = response.json()
        assert data["download_url"] == "https://images.unsplash.com/photo-u1?full"
        assert data["quality"] == "full"
        unsplash.download_media.assert_called_once_with("u1", "full")

    def test_download_shape(self, client):
        response = client.get("/api/media/stock/shapes/shape_1/download")
        assert response.status_code == 200
        assert response.json()["download_url"].endswith("/storage/shapes/basic/circle.svg")

    def test_download_not_found(self, client):
        response = client.get("/api/media/stock/iconfinder/999/download")
        assert response.status_code == 404

    def test_unknown_provider(self, client):
        response = client.get("/api/media/stock/flickr/1/download")
        assert response.status_code == 404

    def test_invalid_quality(self, client):
        response = client.get("/api/media/stock/unsplash/u1/download", params={"quality": "ultra"})
        assert response.status_code == 422


class TestShapeEndpoints:
    """形状库接口测试"""

    def test_categories(self, client):
        data = client.get("/api/media/stock/shapes/categories").json()

        assert data["categories"] == ["arrows", "basic", "mostlyused"]
        assert data["shape_categories"] == ["directional", "general", "geometric"]
        assert data["statistics"]["total"] == 3

    def test_featured(self, client):
        response = client.get("/api/media/stock/shapes/featured")
        assert [item["id"] for item in response.json()] == ["shape_1", "shape_3"]

    def test_suggestions(self, client):
        response = client.get("/api/media/stock/shapes/suggestions", params={"query": "ge"})
        assert response.json() == {"suggestions": ["general", "geometric"]}

    def test_by_category(self, client):
        data = client.get("/api/media/stock/shapes/category/arrows").json()
        assert [item["id"] for item in data["items"]] == ["shape_2"]
        assert data["query"] == "arrows"

    def test_shapes_disabled(self, app, client):
        app.dependency_overrides[get_shape_adapter] = lambda: None
        response = client.get("/api/media/stock/shapes/categories")
        assert response.status_code == 404


class TestCacheEndpoints:
    """缓存管理接口测试"""

    def test_metrics(self, client):
        client.get("/api/media/stock/search", params={"query": "mountain"})

        data = client.get("/api/media/stock/cache").json()

        assert data["enabled"] is True
        assert data["writes"] >= 1

    def test_invalidate_provider(self, client, unsplash):
        client.get("/api/media/stock/search", params={"query": "mountain"})

        response = client.delete("/api/media/stock/cache", params={"provider": "unsplash"})

        assert response.status_code == 200
        assert response.json()["provider"] == "unsplash"
        assert response.json()["removed"] == 1

        client.get("/api/media/stock/search", params={"query": "mountain"})
        assert unsplash.search.call_count == 2

    def test_invalidate_all(self, client):
        response = client.delete("/api/media/stock/cache")
        assert response.json()["provider"] is None

    def test_warm(self, client, unsplash):
        response = client.post("/api/media/stock/cache/warm", json={
            "queries": ["business", "  "],
            "types": ["image", "video"],
            "pages": 1,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["warmed"] == 1
        assert data["failed"] == 1
        unsplash.search.assert_called_once_with("business", 1, 20, {})

    def test_warm_rejects_too_many_pages(self, client):
        response = client.post("/api/media/stock/cache/warm", json={"pages": 10})
        assert response.status_code == 422


# ==================== 代理 ====================

def make_upstream(status_code=200, headers=None, chunks=(b"abc",)):
    upstream = Mock()
    upstream.status_code = status_code
    upstream.headers = headers if headers is not None else {"Content-Type": "image/png", "Content-Length": "3"}
    upstream.iter_content.return_value = iter(chunks)
    return upstream


class TestProxyEndpoint:
    """素材代理接口测试"""

    URL = "https://api.unsplash.com/photos/u1/download"

    def test_streams_upstream(self, client, proxy_session, unsplash):
        unsplash.auth_headers_for.return_value = {"Authorization": "Client-ID key"}
        proxy_session.get.return_value = make_upstream()

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.status_code == 200
        assert response.content == b"abc"
        assert response.headers["content-type"] == "image/png"
        assert response.headers["cache-control"] == "public, max-age=86400"
        args, kwargs = proxy_session.get.call_args
        assert args[0] == self.URL
        assert kwargs["headers"] == {"Authorization": "Client-ID key"}
        assert kwargs["stream"] is True
        assert kwargs["allow_redirects"] is False

    def test_upstream_cache_control_kept(self, client, proxy_session):
        proxy_session.get.return_value = make_upstream(headers={"Content-Type": "image/svg+xml", "Cache-Control": "max-age=60"})

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.headers["cache-control"] == "max-age=60"

    def test_invalid_token(self, client, proxy_session):
        response = client.get("/api/media/proxy/_w")
        assert response.status_code == 400
        proxy_session.get.assert_not_called()

    def test_unsafe_target(self, client, proxy_session):
        token = encode_proxy_token("http://169.254.169.254/latest/meta-data")
        response = client.get(f"/api/media/proxy/{token}")
        assert response.status_code == 403
        proxy_session.get.assert_not_called()

    def test_host_outside_allowlist(self, client, proxy_session):
        token = encode_proxy_token("https://example.org/a.png")

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{token}")

        assert response.status_code == 403
        proxy_session.get.assert_not_called()

    def test_lookalike_host_rejected(self, client, proxy_session):
        token = encode_proxy_token("https://unsplash.com.evil.org/a.png")

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{token}")

        assert response.status_code == 403
        proxy_session.get.assert_not_called()

    def test_follows_redirect_within_allowlist(self, client, proxy_session, unsplash):
        unsplash.auth_headers_for.side_effect = (
            lambda url: {"Authorization": "Client-ID key"} if "api.unsplash.com" in url else {}
        )
        redirect = make_upstream(status_code=302, headers={"Location": "https://images.unsplash.com/photo-u1?w=1080"})
        final = make_upstream()
        proxy_session.get.side_effect = [redirect, final]

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.status_code == 200
        assert response.content == b"abc"
        redirect.close.assert_called_once()
        second_args, second_kwargs = proxy_session.get.call_args_list[1]
        assert second_args[0] == "https://images.unsplash.com/photo-u1?w=1080"
        assert second_kwargs["headers"] == {}
        assert second_kwargs["allow_redirects"] is False

    def test_relative_redirect_is_resolved(self, client, proxy_session):
        redirect = make_upstream(status_code=301, headers={"Location": "/photos/u1/file"})
        proxy_session.get.side_effect = [redirect, make_upstream()]

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.status_code == 200
        assert proxy_session.get.call_args_list[1][0][0] == "https://api.unsplash.com/photos/u1/file"

    def test_redirect_to_metadata_address_rejected(self, client, proxy_session):
        redirect = make_upstream(status_code=302, headers={"Location": "http://169.254.169.254/latest/meta-data"})
        proxy_session.get.return_value = redirect

        with patch("stockmedia.api.routes.proxy.is_safe_url", side_effect=lambda url: "169.254" not in url):
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.status_code == 403
        assert proxy_session.get.call_count == 1
        redirect.close.assert_called_once()

    def test_redirect_to_private_resolving_host_rejected(self, client, proxy_session):
        # 白名单内的域名解析到内网地址时，由安全检查拦截
        redirect = make_upstream(status_code=302, headers={"Location": "https://internal.unsplash.com/a.png"})
        proxy_session.get.return_value = redirect

        with patch("stockmedia.api.routes.proxy.is_safe_url", side_effect=lambda url: "internal" not in url) as safe:
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.status_code == 403
        assert proxy_session.get.call_count == 1
        assert safe.call_args[0][0] == "https://internal.unsplash.com/a.png"

    def test_too_many_redirects(self, client, proxy_session):
        proxy_session.get.side_effect = lambda *args, **kwargs: make_upstream(
            status_code=302, headers={"Location": "https://images.unsplash.com/loop"}
        )

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.status_code == 502
        assert proxy_session.get.call_count == 4

    def test_redirect_without_location(self, client, proxy_session):
        proxy_session.get.return_value = make_upstream(status_code=302, headers={})

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.status_code == 502

    def test_upstream_not_found(self, client, proxy_session):
        upstream = make_upstream(status_code=404)
        proxy_session.get.return_value = upstream

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.status_code == 404
        upstream.close.assert_called_once()

    def test_upstream_server_error(self, client, proxy_session):
        proxy_session.get.return_value = make_upstream(status_code=500)

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.status_code == 502

    def test_transport_error(self, client, proxy_session):
        proxy_session.get.side_effect = requests.exceptions.ConnectionError("refused")

        with patch("stockmedia.api.routes.proxy.is_safe_url", return_value=True):
            response = client.get(f"/api/media/proxy/{encode_proxy_token(self.URL)}")

        assert response.status_code == 502


# ==================== 健康检查与指标 ====================

class TestHealthEndpoints:
    """健康检查接口测试"""

    def test_root(self, client):
        data = client.get("/").json()
        assert data["message"].startswith("Welcome to")
        assert "version" in data

    def test_health(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["components"] == {
            "unsplash": "healthy",
            "iconfinder": "healthy",
            "shapes": "healthy",
            "cache": "healthy",
        }

    def test_health_degraded(self, client, iconfinder):
        iconfinder.is_configured.return_value = False

        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["components"]["iconfinder"] == "unconfigured"

    def test_ready_and_live(self, client):
        assert client.get("/ready").json() == {"ready": True}
        assert client.get("/live").json() == {"alive": True}


class TestMetricsEndpoints:
    """指标接口测试"""

    def test_system_metrics(self, client):
        client.get("/api/media/stock/search", params={"query": "mountain"})

        metrics = client.get("/metrics/system").json()["metrics"]

        assert metrics["stockmedia_searches_total"]["value"] >= 1
        assert metrics["stockmedia_searches_total"]["labels"]["image"] >= 1

    def test_all_metrics(self, client):
        data = client.get("/metrics/all").json()
        assert set(data) == {"system", "cache", "rate_limits"}
        assert data["rate_limits"]["shapes"] is None
