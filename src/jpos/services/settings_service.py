from __future__ import annotations

import copy
import logging
import math

from jpos.domain.errors import ValidationError

log = logging.getLogger(__name__)

SETTINGS_KEY = "system:settings"

DEFAULT_SETTINGS: dict = {
    "fiscal": {
        "checkboxEnabled": False,
        "taxRate": 20,
        "companyName": "",
        "companyAddress": "",
        "taxNumber": "",
    },
    "currency": {
        "baseCurrency": "UAH",
        "exchangeRates": {"USD": 37.5, "EUR": 40.2},
        "autoUpdateRates": True,
    },
    "printing": {
        "receiptPrinter": "",
        "labelPrinter": "",
        "autoprint": False,
    },
}


def _validate(settings: dict) -> dict:
    if not isinstance(settings, dict):
        raise ValidationError("Settings must be an object.")
    for section in DEFAULT_SETTINGS:
        if section in settings and not isinstance(settings[section], dict):
            raise ValidationError(f"Settings section '{section}' must be an object.")

    currency = settings.get("currency") or {}
    rates = currency.get("exchangeRates", {})
    if not isinstance(rates, dict):
        raise ValidationError("'currency.exchangeRates' must be an object.")
    for code, value in rates.items():
        try:
            rate = float(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Exchange rate for {code} must be a number.") from e
        if math.isnan(rate) or rate <= 0:
            raise ValidationError(f"Exchange rate for {code} must be > 0.")

    fiscal = settings.get("fiscal") or {}
    if "taxRate" in fiscal:
        try:
            tax = float(fiscal["taxRate"])
        except (TypeError, ValueError) as e:
            raise ValidationError("'fiscal.taxRate' must be a number.") from e
        if math.isnan(tax) or tax < 0 or tax > 100:
            raise ValidationError("'fiscal.taxRate' must be between 0 and 100.")
    return settings


class SettingsService:
    def __init__(self, repo):
        self.repo = repo

    def get(self) -> dict:
        stored = self.repo.get(SETTINGS_KEY)
        if stored is None:
            return copy.deepcopy(DEFAULT_SETTINGS)
        return stored

    def put(self, settings: dict) -> dict:
        """Replace the settings blob wholesale."""
        _validate(settings)
        self.repo.set(SETTINGS_KEY, settings)
        log.info("settings_saved sections=%s", ",".join(sorted(settings)))
        return settings

    def base_currency(self) -> str:
        return str((self.get().get("currency") or {}).get("baseCurrency") or "UAH").upper()

    def configured_rate(self, currency: str):
        rates = (self.get().get("currency") or {}).get("exchangeRates") or {}
        value = rates.get(currency.upper())
        return float(value) if value is not None else None

    def auto_update_rates(self) -> bool:
        return bool((self.get().get("currency") or {}).get("autoUpdateRates", False))
