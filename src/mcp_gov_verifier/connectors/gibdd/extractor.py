"""Reading GIBDD fine check results.

Fines come as table rows whose cells are classified by content: KoAP
article numbers ("12.9 ч.2"), 20-25 digit payment identifiers (UIN), dates
and amounts. The second date of a row is the deadline of the 50% discount
and a second, smaller amount is the discounted sum.
"""

import re
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from ..extraction import (
    KeywordPresence,
    LabeledAmount,
    NoResultPhrase,
    PayloadShape,
    RuleBasedExtractor,
    TableRows,
    low_confidence,
    parse_amount,
    parse_ru_date,
)
from .interfaces import GibddFine

NO_FINES_PHRASES = (
    "штрафов не найдено",
    "штрафы не найдены",
    "нарушений не найдено",
    "нарушения не найдены",
    "по вашему запросу ничего не найдено",
    "данных не обнаружено",
    "задолженности нет",
    "0 штрафов",
)

FINE_KEYWORDS = ("штраф", "нарушение", "постановление", "коап")
DESCRIPTION_KEYWORDS = ("превышение", "проезд", "парковк", "нарушение")
LOCATION_MARKERS = ("г.", "ул.", "пр.")
DEPARTMENT_MARKERS = ("ГИБДД", "ЦАФАП", "ОДД")

PAYMENT_URL = "https://www.gosuslugi.ru/pay?uin={uin}"

_ARTICLE_RE = re.compile(r"^\d+\.\d+(\s*ч\.?\s*\d+)?$", re.IGNORECASE)
_UIN_RE = re.compile(r"^\d{20,25}$")
_AMOUNT_RE = re.compile(r"^[\d\s,.]+\s*(?:руб\.?|₽)?$", re.IGNORECASE)
_LABELED_AMOUNT_RE = re.compile(
    r"(?:сумма|итого)[^:]*:\s*([\d\s,.]+)\s*(?:руб|₽|рублей)", re.IGNORECASE
)
_FINE_COUNT_RE = re.compile(r"(\d+)\s*(?:штраф|нарушени)", re.IGNORECASE)

SHAPE = PayloadShape(
    flag_key="has_fines",
    items_key="fines",
    count_key="fines_count",
)


def parse_fine_row(cells: List[str]) -> Optional[Dict[str, Any]]:
    """Build a fine from one table row; None without an amount, article or UIN."""
    if len(cells) < 2:
        return None

    fine = GibddFine()

    for cell in cells:
        iso_date = parse_ru_date(cell)
        if iso_date:
            if not fine.date:
                fine.date = iso_date
            elif not fine.discount_deadline:
                fine.discount_deadline = iso_date
            continue

        if _ARTICLE_RE.match(cell):
            fine.article = cell
            continue

        if _UIN_RE.match(cell):
            fine.uin = cell
            fine.payment_url = PAYMENT_URL.format(uin=cell)
            continue

        if _AMOUNT_RE.match(cell):
            amount = parse_amount(re.sub(r"[^\d,.]", "", cell))
            if amount is not None:
                if not fine.amount:
                    fine.amount = amount
                elif not fine.discount_amount and amount < fine.amount:
                    fine.discount_amount = amount
            continue

        if any(marker in cell for marker in DEPARTMENT_MARKERS):
            fine.department = cell
        elif any(marker in cell for marker in LOCATION_MARKERS):
            fine.location = cell
        elif any(keyword in cell.lower() for keyword in DESCRIPTION_KEYWORDS) or len(cell) > 30:
            fine.description = cell

    if fine.amount or fine.article or fine.uin:
        return asdict(fine)
    return None


def build_extractor() -> RuleBasedExtractor:
    return RuleBasedExtractor(
        rules=[
            NoResultPhrase(NO_FINES_PHRASES, SHAPE),
            TableRows(parse_fine_row, SHAPE, min_cells=2),
            LabeledAmount(_LABELED_AMOUNT_RE, SHAPE),
            KeywordPresence(FINE_KEYWORDS, SHAPE, count_pattern=_FINE_COUNT_RE),
        ],
        default=lambda: low_confidence(SHAPE.negative()),
        name="gibdd",
    )
