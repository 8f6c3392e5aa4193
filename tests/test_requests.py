"""
Unit tests for logical requests and parameter normalization
"""
import pytest

from src.core.enums import RequestKind
from src.core.requests import LogicalRequest, normalize_params, normalize_value


def test_normalize_value():
    assert normalize_value(True) == "true"
    assert normalize_value(False) == "false"
    assert normalize_value(" USD ") == "usd"
    assert normalize_value(50) == "50"


def test_markets_defaults_applied():
    """Missing parameters take the documented defaults"""
    request = LogicalRequest.markets()

    assert request.query() == {
        "order": "market_cap_desc",
        "page": "1",
        "per_page": "50",
        "sparkline": "false",
        "vs_currency": "usd",
    }


def test_chart_defaults_applied():
    request = LogicalRequest.chart("bitcoin")

    assert request.query() == {"days": "7", "vs_currency": "usd"}
    assert request.coin_id == "bitcoin"


def test_parameter_order_does_not_matter():
    first = LogicalRequest.markets(vs_currency="eur", page=2, per_page=100)
    second = LogicalRequest.markets(per_page=100, page=2, vs_currency="EUR")

    assert first == second
    assert hash(first) == hash(second)


def test_unknown_and_none_parameters_dropped():
    params = normalize_params(RequestKind.MARKETS, {"page": None, "foo": "bar"})

    assert "foo" not in params
    assert params["page"] == "1"


def test_coin_request_requires_id():
    with pytest.raises(ValueError):
        LogicalRequest.coin("")

    with pytest.raises(ValueError):
        LogicalRequest.chart("   ")


def test_paths():
    markets = LogicalRequest.markets()
    coin = LogicalRequest.coin("bitcoin")
    chart = LogicalRequest.chart("ethereum", days=30)

    assert markets.backend_path() == "/markets"
    assert markets.upstream_path() == "/coins/markets"
    assert coin.backend_path() == "/coins/bitcoin"
    assert coin.upstream_path() == "/coins/bitcoin"
    assert chart.backend_path() == "/coins/ethereum/market_chart"
    assert chart.query()["days"] == "30"


def test_coin_id_is_path_encoded():
    request = LogicalRequest.coin("a/b")

    assert request.backend_path() == "/coins/a%2Fb"


def test_describe():
    request = LogicalRequest.chart("bitcoin", days=1)

    assert request.describe() == "chart bitcoin days=1 vs_currency=usd"
