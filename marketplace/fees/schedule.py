"""
Barème de frais par palier (pur: pas de DB, pas de Stripe).
- Chaque devise a un forfait (base_fee), un seuil et un taux appliqué à la part du prix au-delà du seuil.
- Tous les montants sont arrondis à l'unité mineure de la devise (ROUND_HALF_UP sur la valeur non arrondie).
- La table est un artefact JSON versionné unique, injecté ici et exposé en lecture aux calculateurs d'affichage.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional
import json
import logging

from marketplace import config
from marketplace.errors import InvalidRequest, UnsupportedCurrency

logger = logging.getLogger(__name__)

PARTIES = ("buyer", "seller")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Convertit str|int|float|Decimal en Decimal (via str pour éviter la dérive binaire)."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidRequest(f"Montant invalide pour {field}: {value!r}")


def round_minor(value: Decimal, digits: int = 2) -> Decimal:
    """Arrondi half-up à l'unité mineure (2 décimales pour GBP/USD/EUR)."""
    return value.quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FeeBreakdown:
    base_fee: Decimal
    percentage_fee: Decimal
    total: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {
            "baseFee": str(self.base_fee),
            "percentageFee": str(self.percentage_fee),
            "total": str(self.total),
        }


@dataclass(frozen=True)
class CurrencyFeeRule:
    base_fee: Decimal
    percent_threshold: Decimal
    percent_rate: Decimal
    minor_unit_digits: int = 2

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CurrencyFeeRule":
        return cls(
            base_fee=Decimal(str(raw["base_fee"])),
            percent_threshold=Decimal(str(raw["percent_threshold"])),
            percent_rate=Decimal(str(raw["percent_rate"])),
            minor_unit_digits=int(raw.get("minor_unit_digits", 2)),
        )


@dataclass(frozen=True)
class FeeTable:
    version: int
    base_currency: str
    rules: Dict[str, CurrencyFeeRule]
    party_overrides: Dict[str, Dict[str, CurrencyFeeRule]]
    processing_costs: Dict[str, Dict[str, Decimal]]
    raw: Dict[str, Any]

    def rule_for(self, currency: str, party: str = "buyer") -> Optional[CurrencyFeeRule]:
        override = (self.party_overrides.get(party) or {}).get(currency)
        return override or self.rules.get(currency)


def parse_fee_table(raw: Dict[str, Any]) -> FeeTable:
    rules = {code.upper(): CurrencyFeeRule.from_dict(r) for code, r in (raw.get("currencies") or {}).items()}
    overrides: Dict[str, Dict[str, CurrencyFeeRule]] = {}
    for party, per_currency in (raw.get("party_overrides") or {}).items():
        overrides[party] = {code.upper(): CurrencyFeeRule.from_dict(r) for code, r in (per_currency or {}).items()}
    costs = {
        code.upper(): {"percent": Decimal(str(c["percent"])), "fixed": Decimal(str(c["fixed"]))}
        for code, c in (raw.get("processing_costs") or {}).items()
    }
    base = str(raw.get("base_currency") or config.BASE_CURRENCY).upper()
    if base not in rules:
        raise ValueError(f"Table de frais invalide: devise de base {base} absente")
    return FeeTable(
        version=int(raw.get("version") or 1),
        base_currency=base,
        rules=rules,
        party_overrides=overrides,
        processing_costs=costs,
        raw=raw,
    )


@lru_cache(maxsize=4)
def load_fee_table(path: Optional[str] = None) -> FeeTable:
    """Charge (et met en cache) la table versionnée depuis FEE_TABLE_PATH."""
    table_path = Path(path) if path else Path(config.FEE_TABLE_PATH)
    with table_path.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    table = parse_fee_table(raw)
    logger.info("fees.table loaded version=%s currencies=%s", table.version, sorted(table.rules))
    return table


class FeeSchedule:
    """Calcul des frais pour une partie (acheteur ou vendeur)."""

    def __init__(self, party: str = "buyer", table: Optional[FeeTable] = None, unknown_currency_policy: Optional[str] = None):
        if party not in PARTIES:
            raise ValueError(f"Partie inconnue: {party}")
        self.party = party
        self.table = table or load_fee_table()
        self.unknown_currency_policy = (unknown_currency_policy or config.UNKNOWN_CURRENCY_POLICY).lower()

    @classmethod
    def for_party(cls, party: str, table: Optional[FeeTable] = None) -> "FeeSchedule":
        return cls(party=party, table=table)

    def resolve_currency(self, currency_code: str) -> str:
        code = (currency_code or "").strip().upper()
        if code in self.table.rules:
            return code
        if self.unknown_currency_policy == "reject":
            raise UnsupportedCurrency(f"Devise non supportée: {currency_code!r}")
        # Repli documenté: devise inconnue => barème de la devise de base (pas une perte silencieuse)
        logger.warning("fees.unknown_currency code=%r fallback=%s", currency_code, self.table.base_currency)
        return self.table.base_currency

    def rule(self, currency_code: str) -> CurrencyFeeRule:
        return self.table.rule_for(self.resolve_currency(currency_code), self.party)

    def compute_fee(self, item_price: Any, currency_code: str) -> FeeBreakdown:
        price = to_decimal(item_price, "itemPrice")
        if price < 0:
            raise InvalidRequest("Le prix doit être positif")
        rule = self.rule(currency_code)
        over = price - rule.percent_threshold
        percentage = over * rule.percent_rate if over > 0 else Decimal("0")
        digits = rule.minor_unit_digits
        return FeeBreakdown(
            base_fee=round_minor(rule.base_fee, digits),
            percentage_fee=round_minor(percentage, digits),
            total=round_minor(rule.base_fee + percentage, digits),
        )


def compute_fee(item_price: Any, currency_code: str, party: str = "buyer") -> FeeBreakdown:
    return FeeSchedule.for_party(party).compute_fee(item_price, currency_code)
