"""Reading FSSP search results.

The result table has no stable column order, so every cell is classified by
its content: case numbers end in ``-ИП``, dates are ``DD.MM.YYYY``, amounts
are bare numbers, the bailiff is written as "Фамилия И.О.".
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
from .interfaces import ExecutiveProceeding

NO_DEBT_PHRASES = (
    "по вашему запросу ничего не найдено",
    "данных не обнаружено",
    "информация отсутствует",
    "записей не найдено",
    "ничего не найдено",
    "нет данных",
    "результатов не найдено",
)

DEBT_KEYWORDS = (
    "исполнительное производство",
    "судебный пристав",
    "взыскатель",
    "должник",
)

SUBJECT_KEYWORDS = ("долг", "пошлин", "штраф", "алимент", "налог")
DOCUMENT_KEYWORDS = ("приказ", "постановлени", "исполнительный лист")

_CASE_NUMBER_RE = re.compile(r"\d{5,}/\d{2}/\d+")
_UIN_RE = re.compile(r"^\d{15,25}$")
_AMOUNT_RE = re.compile(r"^[\d\s,.]+$")
_BAILIFF_RE = re.compile(r"^[А-ЯЁ][а-яё]+\s+[А-ЯЁ]\.[А-ЯЁ]\.?$")
_LABELED_AMOUNT_RE = re.compile(r"сумма[^:]*:\s*([\d\s,.]+)\s*(?:руб|₽|рублей)", re.IGNORECASE)

SHAPE = PayloadShape(
    flag_key="has_debt",
    items_key="exec_proceedings",
    count_key="total_proceedings",
)


def parse_proceeding_row(cells: List[str]) -> Optional[Dict[str, Any]]:
    """Build a proceeding from one table row.

    Returns None for rows with fewer than three cells or without a case
    number, payment identifier (UIN) or amount.
    """
    if len(cells) < 3:
        return None

    proceeding = ExecutiveProceeding()

    for cell in cells:
        lowered = cell.lower()

        iso_date = parse_ru_date(cell)
        if iso_date:
            if not proceeding.date:
                proceeding.date = iso_date
            continue

        if "ИП" in cell or _CASE_NUMBER_RE.search(cell):
            if not proceeding.number:
                proceeding.number = cell
            continue

        if _UIN_RE.match(cell):
            if not proceeding.uin:
                proceeding.uin = cell
            continue

        if _AMOUNT_RE.match(cell):
            amount = parse_amount(cell)
            if amount is not None:
                proceeding.amount = amount
            continue

        if _BAILIFF_RE.match(cell):
            proceeding.bailiff = cell
        elif "ОСП" in cell or "отдел" in lowered:
            proceeding.department = cell
        elif any(keyword in lowered for keyword in DOCUMENT_KEYWORDS):
            proceeding.executive_document = cell
        elif any(keyword in lowered for keyword in SUBJECT_KEYWORDS):
            proceeding.subject = cell

    if proceeding.number or proceeding.uin or proceeding.amount:
        return asdict(proceeding)
    return None


def build_extractor() -> RuleBasedExtractor:
    return RuleBasedExtractor(
        rules=[
            NoResultPhrase(NO_DEBT_PHRASES, SHAPE),
            TableRows(parse_proceeding_row, SHAPE, min_cells=3),
            LabeledAmount(_LABELED_AMOUNT_RE, SHAPE),
            KeywordPresence(DEBT_KEYWORDS, SHAPE),
        ],
        default=lambda: low_confidence(SHAPE.negative()),
        name="fssp",
    )
