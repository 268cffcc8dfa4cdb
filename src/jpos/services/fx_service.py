from __future__ import annotations

import logging
import math
from datetime import date

import requests

from jpos.domain.errors import FxUnavailableError

log = logging.getLogger("jpos.fx")

PRIMARY_URL = "https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api@latest/v1/currencies/{cur}.json"
FALLBACK_URL = "https://latest.currency-api.pages.dev/v1/currencies/{cur}.json"


class FxService:
    """Rates are expressed as base-currency units per one unit of the foreign currency."""

    def __init__(self, repo, settings):
        self.repo = repo
        self.settings = settings

    def _fetch_json(self, url: str) -> dict:
        r = requests.get(url, timeout=10)
        r.raise_for_status()
        return r.json()

    def _extract_rate(self, data: dict, currency: str, base: str) -> float:
        # structure: {"date":"YYYY-MM-DD","usd":{"uah":41.2, ...}}
        quotes = data.get(currency.lower())
        if isinstance(quotes, dict) and base.lower() in quotes:
            return self._validate_rate(quotes[base.lower()])
        raise FxUnavailableError(f"FX API response missing {currency}/{base} rate.")

    def _validate_rate(self, value: object) -> float:
        try:
            rate = float(value)
        except (TypeError, ValueError) as e:
            raise FxUnavailableError(f"FX rate is not a number. Received: {value!r}") from e
        if not math.isfinite(rate) or rate <= 0:
            raise FxUnavailableError(f"FX rate must be > 0. Received: {rate}")
        return rate

    def get_rate(self, currency: str, on: date | None = None) -> float:
        currency = (currency or "").strip().upper()
        base = self.settings.base_currency()
        if not currency or currency == base:
            return 1.0

        key = f"fx:{(on or date.today()).isoformat()}:{currency}"
        cached = self.repo.get(key)
        if cached is not None:
            return float(cached["rate"])

        last_err = None
        if self.settings.auto_update_rates():
            for url in (PRIMARY_URL, FALLBACK_URL):
                try:
                    data = self._fetch_json(url.format(cur=currency.lower()))
                    rate = self._extract_rate(data, currency, base)
                    self.repo.set(key, {"rate": rate})
                    log.info("fx_rate_fetched currency=%s base=%s rate=%.4f", currency, base, rate)
                    return rate
                except (requests.RequestException, ValueError, FxUnavailableError) as e:
                    last_err = e
                    log.warning("fx_source_failed url=%s error=%s", url, e)

        configured = self.settings.configured_rate(currency)
        if configured is not None and configured > 0:
            log.warning("fx_fallback_configured currency=%s rate=%.4f", currency, configured)
            return configured

        raise FxUnavailableError(
            f"No exchange rate available for {currency}. Last error: {last_err}"
        )
