"""
Tests for the resolution cache and the shared rate limiter.
"""

import json
import time
from unittest.mock import Mock, patch

import pytest

from post_kind_engine.core.reference_resolver.cache_manager import ResolutionCache
from post_kind_engine.core.reference_resolver.rate_limiter import SharedRateLimiter


class TestResolutionCache:
    """Test suite for ResolutionCache."""

    @pytest.fixture
    def cache(self, tmp_path):
        return ResolutionCache(cache_dir=str(tmp_path), ttl_seconds=60)

    def test_miss_then_hit(self, cache):
        assert cache.get("url_resolver", "https://example.com/a") is None

        cache.set("url_resolver", "https://example.com/a", {"type": "entry", "name": "Example"})

        assert cache.get("url_resolver", "https://example.com/a") == {"type": "entry", "name": "Example"}

    def test_namespaces_are_separate(self, cache):
        cache.set("one", "https://example.com/a", {"type": "entry"})
        assert cache.get("two", "https://example.com/a") is None

    def test_keys_are_deterministic(self, cache):
        key = cache._generate_cache_key("url_resolver", "https://example.com/a")
        assert key == cache._generate_cache_key("url_resolver", "https://example.com/a")
        assert key.startswith("resolved_url_resolver_")
        assert key != cache._generate_cache_key("url_resolver", "https://example.com/b")

    def test_expired_entry_is_removed(self, cache):
        cache.set("url_resolver", "https://example.com/a", {"type": "entry"})

        with patch("post_kind_engine.core.reference_resolver.cache_manager.time.time", return_value=time.time() + 120):
            assert cache.get("url_resolver", "https://example.com/a") is None

        assert cache.get_stats()["total_entries"] == 0

    def test_zero_ttl_never_expires(self, tmp_path):
        cache = ResolutionCache(cache_dir=str(tmp_path), ttl_seconds=0)
        cache.set("url_resolver", "https://example.com/a", {"type": "entry"})

        with patch("post_kind_engine.core.reference_resolver.cache_manager.time.time", return_value=time.time() + 10 ** 8):
            assert cache.get("url_resolver", "https://example.com/a") == {"type": "entry"}

    def test_corrupted_entry_is_removed(self, cache):
        cache.set("url_resolver", "https://example.com/a", {"type": "entry"})
        path = cache._path_for("url_resolver", "https://example.com/a")
        path.write_text("{broken", encoding="utf-8")

        assert cache.get("url_resolver", "https://example.com/a") is None
        assert not path.exists()

    @pytest.mark.parametrize("payload", [
        ["junk"],
        "just a string",
        {"timestamp": "yesterday", "result": {"type": "entry"}},
        {"result": {"type": "entry"}},
        {"timestamp": 1.0, "result": ["entry"]},
        {"timestamp": 1.0, "result": {"name": "No type"}},
    ])
    def test_malformed_entry_is_removed(self, tmp_path, payload):
        cache = ResolutionCache(cache_dir=str(tmp_path), ttl_seconds=0)
        path = cache._path_for("url_resolver", "https://example.com/a")
        path.write_text(json.dumps(payload), encoding="utf-8")

        assert cache.get("url_resolver", "https://example.com/a") is None
        assert not path.exists()

    def test_entry_file_format(self, cache):
        cache.set("url_resolver", "https://example.com/a", {"type": "entry"})
        payload = json.loads(cache._path_for("url_resolver", "https://example.com/a").read_text(encoding="utf-8"))

        assert payload["namespace"] == "url_resolver"
        assert payload["result"] == {"type": "entry"}
        assert isinstance(payload["timestamp"], float)

    def test_clear_by_namespace(self, cache):
        cache.set("one", "a", {"type": "entry"})
        cache.set("two", "b", {"type": "entry"})

        assert cache.clear("one") == 1
        assert cache.get_stats()["total_entries"] == 1
        assert cache.clear() == 1


class TestSharedRateLimiter:
    """Test suite for SharedRateLimiter."""

    @pytest.fixture
    def sleep(self):
        return Mock()

    def _response(self, status_code, headers=None):
        response = Mock()
        response.status_code = status_code
        response.headers = headers or {}
        return response

    def test_no_delay_configured(self, sleep):
        limiter = SharedRateLimiter(min_delay_seconds=0, sleep=sleep)
        limiter.wait_if_needed("example.com")
        limiter.wait_if_needed("example.com")
        sleep.assert_not_called()

    def test_second_request_to_same_host_waits(self, sleep):
        limiter = SharedRateLimiter(min_delay_seconds=5.0, sleep=sleep)

        limiter.wait_if_needed("example.com")
        limiter.wait_if_needed("other.test")
        sleep.assert_not_called()

        limiter.wait_if_needed("example.com")
        sleep.assert_called_once()
        assert 0 < sleep.call_args[0][0] <= 5.0

    def test_success_is_returned_without_retry(self, sleep):
        limiter = SharedRateLimiter(sleep=sleep)
        request_call = Mock(return_value=self._response(200))

        response = limiter.execute_with_retry("example.com", request_call)

        assert response.status_code == 200
        request_call.assert_called_once()
        sleep.assert_not_called()

    def test_429_is_retried_with_retry_after(self, sleep):
        limiter = SharedRateLimiter(sleep=sleep)
        request_call = Mock(side_effect=[self._response(429, {"Retry-After": "3"}), self._response(200)])

        response = limiter.execute_with_retry("example.com", request_call)

        assert response.status_code == 200
        assert request_call.call_count == 2
        sleep.assert_called_once_with(3.0)

    def test_backoff_is_capped(self, sleep):
        limiter = SharedRateLimiter(max_retries=1, base_backoff_seconds=100.0, max_backoff_seconds=10.0, sleep=sleep)
        request_call = Mock(side_effect=[self._response(503), self._response(200)])

        limiter.execute_with_retry("example.com", request_call)

        assert sleep.call_args[0][0] == 10.0

    def test_last_response_returned_when_retries_run_out(self, sleep):
        limiter = SharedRateLimiter(max_retries=2, sleep=sleep)
        request_call = Mock(return_value=self._response(503))

        response = limiter.execute_with_retry("example.com", request_call)

        assert response.status_code == 503
        assert request_call.call_count == 3
        assert sleep.call_count == 2

    def test_errors_propagate(self, sleep):
        limiter = SharedRateLimiter(sleep=sleep)
        request_call = Mock(side_effect=ConnectionError("refused"))

        with pytest.raises(ConnectionError):
            limiter.execute_with_retry("example.com", request_call)
