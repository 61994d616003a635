"""Rule-based extraction of verification answers from portal HTML.

The portals return free-form HTML with no stable structure, so answers are
read heuristically by an ordered list of rules. The first rule that
recognises the page decides the result:

1. ``NoResultPhrase``: an explicit "nothing found" phrase, negative answer
2. ``TableRows``: result table rows parsed into line items, positive answer
3. ``LabeledAmount``: a "сумма ...: N руб" style total, positive answer
4. ``KeywordPresence``: domain keywords present, positive answer

Nothing matching means the page could not be read. The extractor then falls
back to its default result, which is flagged as low confidence.

Extraction is pure and never raises: a rule that blows up is logged and
skipped.
"""

import html as html_lib
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Pattern, Sequence

from ..config.mcp_logger import logger
from .interfaces import Extraction

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_ROW_RE = re.compile(r"<tr[^>]*>(.*?)</tr>", re.IGNORECASE | re.DOTALL)
_CELL_RE = re.compile(r"<td[^>]*>(.*?)</td>", re.IGNORECASE | re.DOTALL)
_RU_DATE_RE = re.compile(r"^\d{2}\.\d{2}\.\d{4}$")

LOW_CONFIDENCE_MESSAGE = (
    "Не удалось однозначно распознать ответ сервиса; "
    "результат определен по умолчанию"
)


def contains_phrase(text: str, phrase: str, reject_negated: bool = False) -> bool:
    """Substring match that does not start inside a word ('10 штрафов' is not '0 штрафов').

    With ``reject_negated``, an occurrence directly preceded by "не " does not count.
    """
    prefix = r"(?<!\w)(?<!не )" if reject_negated else r"(?<!\w)"
    return re.search(prefix + re.escape(phrase), text) is not None


def clean_text(fragment: str) -> str:
    """Strip tags, decode entities and collapse whitespace."""
    text = _TAG_RE.sub(" ", fragment)
    text = html_lib.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def page_text(html: str) -> str:
    """Lower-cased visible text of a page, for phrase matching."""
    return clean_text(html).lower()


def table_rows(html: str, min_cells: int = 1) -> List[List[str]]:
    """Cleaned ``<td>`` texts of every non-header table row.

    Rows containing ``<th`` or ``class="header"`` are header rows and skipped.
    """
    rows = []
    for match in _ROW_RE.finditer(html):
        row = match.group(0)
        if "<th" in row.lower() or 'class="header"' in row:
            continue
        cells = [clean_text(cell) for cell in _CELL_RE.findall(row)]
        if len(cells) >= min_cells:
            rows.append(cells)
    return rows


def parse_ru_date(value: str) -> Optional[str]:
    """Convert ``DD.MM.YYYY`` to ISO ``YYYY-MM-DD``; None if not a valid date."""
    value = value.strip()
    if not _RU_DATE_RE.match(value):
        return None
    try:
        return datetime.strptime(value, "%d.%m.%Y").date().isoformat()
    except ValueError:
        return None


def parse_amount(value: str) -> Optional[float]:
    """Parse ``"5 000,50"``-style amounts; None unless a positive number."""
    digits = re.sub(r"\s", "", value).replace(",", ".")
    try:
        amount = float(digits)
    except ValueError:
        return None
    return amount if amount > 0 else None


@dataclass
class PayloadShape:
    """Field names of a debt-style payload (flag, total, items, count)."""
    flag_key: str
    items_key: str
    count_key: str
    amount_key: str = "total_amount"

    def negative(self) -> Extraction:
        return self.build(False, [], 0.0)

    def build(self, verdict: bool, items: List[Dict[str, Any]], total: float) -> Extraction:
        return Extraction(
            verdict=verdict,
            payload={
                self.flag_key: verdict,
                self.amount_key: round(total, 2),
                self.items_key: items,
                self.count_key: len(items),
            },
        )


class ExtractionRule(ABC):
    """One recognition step of a :class:`RuleBasedExtractor`."""

    @abstractmethod
    def apply(self, html: str, text: str) -> Optional[Extraction]:
        """Return an extraction if this rule recognises the page, else None.

        Args:
            html: Raw page HTML.
            text: Lower-cased visible text of the page.
        """
        pass


@dataclass
class NoResultPhrase(ExtractionRule):
    """Any of ``phrases`` in the page text means a negative answer."""
    phrases: Sequence[str]
    shape: PayloadShape

    def apply(self, html: str, text: str) -> Optional[Extraction]:
        if any(contains_phrase(text, phrase) for phrase in self.phrases):
            return self.shape.negative()
        return None


@dataclass
class TableRows(ExtractionRule):
    """Result table rows turned into line items by ``row_parser``.

    ``row_parser`` receives the cleaned cells of one row and returns a line
    item dict, or None when the row has no identifying field.
    """
    row_parser: Callable[[List[str]], Optional[Dict[str, Any]]]
    shape: PayloadShape
    min_cells: int = 2

    def apply(self, html: str, text: str) -> Optional[Extraction]:
        items = []
        for cells in table_rows(html, self.min_cells):
            item = self.row_parser(cells)
            if item:
                items.append(item)
        if not items:
            return None
        total = sum(item.get("amount") or 0.0 for item in items)
        return self.shape.build(True, items, total)


@dataclass
class LabeledAmount(ExtractionRule):
    """A labelled total in the page text means a positive answer.

    ``pattern`` must capture the number in group 1.
    """
    pattern: Pattern
    shape: PayloadShape

    def apply(self, html: str, text: str) -> Optional[Extraction]:
        match = self.pattern.search(text)
        if not match:
            return None
        amount = parse_amount(match.group(1))
        if amount is None:
            return None
        return self.shape.build(True, [], amount)


@dataclass
class KeywordPresence(ExtractionRule):
    """Domain keywords in the page text mean a positive answer with no total.

    When ``count_pattern`` is set, the page must also state a positive count
    (captured in group 1), e.g. "2 штрафа".
    """
    keywords: Sequence[str]
    shape: PayloadShape
    count_pattern: Optional[Pattern] = None

    def apply(self, html: str, text: str) -> Optional[Extraction]:
        if not any(keyword in text for keyword in self.keywords):
            return None
        if self.count_pattern is not None:
            match = self.count_pattern.search(text)
            if not match or int(match.group(1)) <= 0:
                return None
        return self.shape.build(True, [], 0.0)


@dataclass
class PhraseRule(ExtractionRule):
    """Any of ``phrases`` in the page text yields a fixed extraction."""
    phrases: Sequence[str]
    outcome: Callable[[], Extraction]
    reject_negated: bool = False

    def apply(self, html: str, text: str) -> Optional[Extraction]:
        if any(contains_phrase(text, phrase, self.reject_negated) for phrase in self.phrases):
            return self.outcome()
        return None


@dataclass
class RuleBasedExtractor:
    """Ordered rules plus the default used when none of them match."""
    rules: List[ExtractionRule]
    default: Callable[[], Extraction]
    name: str = "extractor"
    _logger: Any = field(init=False, repr=False, default=None)

    def __post_init__(self):
        self._logger = logger.bind(extractor=self.name)

    def parse(self, html: str) -> Extraction:
        text = page_text(html or "")

        for rule in self.rules:
            try:
                result = rule.apply(html or "", text)
            except Exception as e:
                self._logger.warning(
                    "extraction_rule_failed",
                    rule=rule.__class__.__name__,
                    error=str(e)
                )
                continue
            if result is not None:
                self._logger.debug(
                    "extraction_rule_matched",
                    rule=rule.__class__.__name__,
                    verdict=result.verdict
                )
                return result

        self._logger.warning("extraction_undetermined")
        return self.default()


def low_confidence(extraction: Extraction, message: str = LOW_CONFIDENCE_MESSAGE) -> Extraction:
    """Mark an extraction as a default rather than a reading of the page."""
    extraction.low_confidence = True
    extraction.message = message
    return extraction
