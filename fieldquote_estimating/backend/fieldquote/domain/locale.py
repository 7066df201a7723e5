# backend/fieldquote/domain/locale.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from .money import round_money, to_decimal

SUPPORTED_LOCALES: tuple[str, ...] = ("en", "pt")
DEFAULT_LOCALE = "en"

_CURRENCY = {
    "en": {"symbol": "$", "thousands": ",", "decimal": ".", "space": ""},
    "pt": {"symbol": "R$", "thousands": ".", "decimal": ",", "space": " "},
}

_STATUS_LABELS = {
    "en": {
        "DRAFT": "Draft",
        "SENT": "Sent",
        "APPROVED": "Approved",
        "IN_PROGRESS": "In progress",
        "DONE": "Done",
    },
    "pt": {
        "DRAFT": "Rascunho",
        "SENT": "Enviado",
        "APPROVED": "Aprovado",
        "IN_PROGRESS": "Em andamento",
        "DONE": "Concluido",
    },
}


def resolve_locale(requested: Optional[str], company_default: Optional[str] = None) -> str:
    """requested > company default > DEFAULT_LOCALE; region suffixes (pt-BR) are dropped."""
    for cand in (requested, company_default):
        if cand:
            base = str(cand).strip().lower().replace("_", "-").split("-", 1)[0]
            if base in SUPPORTED_LOCALES:
                return base
    return DEFAULT_LOCALE


def format_money(amount: Any, locale: str, *, places: int = 2) -> str:
    loc = resolve_locale(locale)
    fmt = _CURRENCY[loc]

    value = round_money(to_decimal(amount, field="amount"), places)
    sign = "-" if value < 0 else ""
    value = abs(value)

    whole, _, frac = f"{value:.{places}f}".partition(".")
    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    body = fmt["thousands"].join(groups)
    if places > 0:
        body = f"{body}{fmt['decimal']}{frac}"
    return f"{sign}{fmt['symbol']}{fmt['space']}{body}"


def status_label(status: str, locale: str) -> str:
    labels = _STATUS_LABELS[resolve_locale(locale)]
    return labels.get(str(status or "").upper(), str(status))


def format_totals(totals: dict[str, Decimal], locale: str, *, places: int = 2) -> dict[str, str]:
    return {k: format_money(v, locale, places=places) for k, v in totals.items() if isinstance(v, Decimal)}
