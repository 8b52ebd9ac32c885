"""Seed rows for the reference catalogs of a fresh store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import yaml

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = Path(__file__).parent / "default_data.yaml"


@dataclass
class DefaultCountry:
    iso: str
    name: str
    currency: str
    sort_order: int = 0


@dataclass
class DefaultCurrency:
    iso: str
    name: str
    symbol: str
    enabled: bool = True
    sort_order: int = 0


@dataclass
class DefaultPaymentMethod:
    type: int
    name: str
    description: str = ""
    sort_order: int = 0


class DefaultDataProvider(Protocol):
    """Supplies the rows seeded into empty catalog tables."""

    def countries(self) -> List[DefaultCountry]:
        ...

    def currencies(self) -> List[DefaultCurrency]:
        ...

    def payment_methods(self) -> List[DefaultPaymentMethod]:
        ...


class YamlDefaultData:
    """Default catalog loaded from a YAML file (the bundled one unless given)."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DEFAULT_DATA_PATH
        self._data: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._data is None:
            with open(self.path, "r", encoding="utf-8") as f:
                self._data = yaml.safe_load(f) or {}
            logger.debug("Loaded default catalog from %s", self.path)
        return self._data

    def countries(self) -> List[DefaultCountry]:
        return [
            DefaultCountry(
                iso=c["iso"],
                name=c["name"],
                currency=c.get("currency", ""),
                sort_order=c.get("sort_order", 0),
            )
            for c in self._load().get("countries", [])
        ]

    def currencies(self) -> List[DefaultCurrency]:
        return [
            DefaultCurrency(
                iso=c["iso"],
                name=c["name"],
                symbol=c.get("symbol", ""),
                enabled=c.get("enabled", True),
                sort_order=c.get("sort_order", 0),
            )
            for c in self._load().get("currencies", [])
        ]

    def payment_methods(self) -> List[DefaultPaymentMethod]:
        return [
            DefaultPaymentMethod(
                type=int(p["type"]),
                name=p["name"],
                description=p.get("description", ""),
                sort_order=p.get("sort_order", 0),
            )
            for p in self._load().get("payment_methods", [])
        ]
