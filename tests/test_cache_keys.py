"""
Unit tests for cache key generation
"""
from src.cache.cache_keys import CacheKeyBuilder
from src.core.requests import LogicalRequest


def test_build_key_format():
    key = CacheKeyBuilder.build("coingecko", "markets", {"vs_currency": "usd", "page": 1})

    assert key == "cryptotracker:coingecko:markets:page=1&vs_currency=usd"


def test_build_key_without_params():
    assert CacheKeyBuilder.build("coingecko", "coin") == "cryptotracker:coingecko:coin"


def test_key_independent_of_param_order():
    """Test that cache keys are consistent regardless of param order"""
    key1 = CacheKeyBuilder.build("coingecko", "markets", {"page": 1, "vs_currency": "usd"})
    key2 = CacheKeyBuilder.build("coingecko", "markets", {"vs_currency": "usd", "page": 1})

    assert key1 == key2


def test_values_normalized():
    key1 = CacheKeyBuilder.build("coingecko", "markets", {"vs_currency": "USD", "sparkline": False})
    key2 = CacheKeyBuilder.build("coingecko", "markets", {"vs_currency": "usd", "sparkline": "false"})

    assert key1 == key2


def test_api_key_never_in_key():
    key = CacheKeyBuilder.build(
        "coingecko", "markets", {"vs_currency": "usd", "x_cg_demo_api_key": "secret"}
    )

    assert "secret" not in key
    assert key == "cryptotracker:coingecko:markets:vs_currency=usd"


def test_for_request_keys():
    assert CacheKeyBuilder.for_request(LogicalRequest.coin("bitcoin")) == (
        "cryptotracker:coingecko:coin:bitcoin"
    )
    assert CacheKeyBuilder.for_request(LogicalRequest.chart("bitcoin", days=7)) == (
        "cryptotracker:coingecko:chart:bitcoin:days=7&vs_currency=usd"
    )


def test_for_request_distinguishes_parameters():
    week = CacheKeyBuilder.for_request(LogicalRequest.chart("bitcoin", days=7))
    month = CacheKeyBuilder.for_request(LogicalRequest.chart("bitcoin", days=30))

    assert week != month
