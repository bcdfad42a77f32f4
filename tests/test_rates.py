"""
Tests for the exchange-rate collaborator. No network: requests.get is
monkeypatched.
"""
import pytest
import requests
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from profit_os.config import FALLBACK_RATES
from profit_os.data import rates as rates_module
from profit_os.data.rates import (
    RatesFetchError,
    fetch_exchange_rates,
    fetch_frankfurter_rates,
    rebase_rates,
    static_rates,
)


class _FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


class TestRebaseRates:
    """Tests for converting EUR quotes into reporting-currency multipliers."""

    def test_rebase_onto_gbp(self):
        rates = rebase_rates({"GBP": 0.85, "USD": 1.1}, "GBP")

        assert rates["GBP"] == pytest.approx(1.0)
        assert rates["EUR"] == pytest.approx(0.85)
        assert rates["USD"] == pytest.approx(0.85 / 1.1)

    def test_rebase_onto_eur(self):
        rates = rebase_rates({"GBP": 0.85}, "EUR")

        assert rates["EUR"] == 1.0
        assert rates["GBP"] == pytest.approx(1 / 0.85)

    def test_missing_reporting_quote_raises(self):
        with pytest.raises(RatesFetchError):
            rebase_rates({"USD": 1.1}, "GBP")


class TestFetchFrankfurter:
    """Tests for the default HTTP fetcher."""

    def test_successful_fetch(self, monkeypatch):
        calls = {}

        def fake_get(url, params=None, timeout=None):
            calls["url"] = url
            calls["params"] = params
            calls["timeout"] = timeout
            return _FakeResponse({"base": "EUR", "date": "2025-03-31", "rates": {"GBP": 0.8, "USD": 1.0}})

        monkeypatch.setattr(rates_module.requests, "get", fake_get)

        rates = fetch_frankfurter_rates(
            currencies=["GBP", "USD"], url="https://rates.test/latest", timeout=2, reporting_currency="GBP",
        )

        assert calls["url"] == "https://rates.test/latest"
        assert calls["params"] == {"to": "GBP,USD"}
        assert calls["timeout"] == 2
        assert rates["USD"] == pytest.approx(0.8)
        assert rates["EUR"] == pytest.approx(0.8)

    def test_http_error_raises_fetch_error(self, monkeypatch):
        monkeypatch.setattr(
            rates_module.requests, "get",
            lambda *args, **kwargs: _FakeResponse({}, status_code=503),
        )

        with pytest.raises(RatesFetchError):
            fetch_frankfurter_rates(reporting_currency="GBP")

    def test_empty_payload_raises_fetch_error(self, monkeypatch):
        monkeypatch.setattr(
            rates_module.requests, "get",
            lambda *args, **kwargs: _FakeResponse({"rates": {}}),
        )

        with pytest.raises(RatesFetchError):
            fetch_frankfurter_rates(reporting_currency="GBP")


class TestFetchExchangeRates:
    """Tests for the fallback wrapper."""

    def test_live_rates(self):
        table = fetch_exchange_rates(fetcher=lambda: {"GBP": 1.0, "EUR": 0.86}, reporting_currency="GBP")

        assert table.is_fallback is False
        assert table.source == "live"
        assert table.rates["EUR"] == 0.86
        assert table.error is None

    def test_fetcher_failure_uses_fallback(self):
        def failing():
            raise RatesFetchError("boom")

        table = fetch_exchange_rates(fetcher=failing, reporting_currency="GBP")

        assert table.is_fallback is True
        assert table.source == "fallback"
        assert table.error == "boom"
        assert table.rates == FALLBACK_RATES

    def test_injected_fallback_table(self):
        def failing():
            raise ValueError("bad json")

        table = fetch_exchange_rates(
            fetcher=failing, fallback={"EUR": 0.9}, reporting_currency="GBP",
        )

        assert table.rates == {"EUR": 0.9, "GBP": 1.0}

    def test_empty_result_uses_fallback(self):
        table = fetch_exchange_rates(fetcher=lambda: {}, reporting_currency="GBP")

        assert table.is_fallback is True

    def test_network_failure_uses_fallback(self, monkeypatch):
        def fake_get(*args, **kwargs):
            raise requests.ConnectionError("offline")

        monkeypatch.setattr(rates_module.requests, "get", fake_get)

        table = fetch_exchange_rates(reporting_currency="GBP")

        assert table.is_fallback is True
        assert "offline" in table.error

    def test_static_rates(self):
        table = static_rates(reporting_currency="GBP")

        assert table.is_fallback is False
        assert table.source == "static"
        assert table.rates["GBP"] == 1.0
