"""Reading MVD invalid passports register results.

The register answers with a sentence rather than a table, so reading is a
set of phrase rules. Being listed means the passport is invalid; not being
listed means it is presumed valid.
"""

from functools import partial
from typing import Optional

from ..extraction import PhraseRule, RuleBasedExtractor
from ..interfaces import Extraction
from .interfaces import PassportStatus

INVALID_PHRASES = (
    "недействителен",
    "не действителен",
    "не является действительным",
    "входит в базу недействительных",
    "числится в базе",
    "значится недействительным",
    "аннулирован",
)

NOT_FOUND_PHRASES = (
    "не значится",
    "не числится",
    "не входит в базу недействительных",
    "среди недействительных не значится",
    "не найден в базе недействительных",
    "паспорт действителен",
    "является действительным",
)

# A finished check with no phrase above; the page title alone does not count
RESULT_PHRASES = ("результат проверки", "проверка завершена", "данные о паспорте")

ERROR_PHRASES = ("ошибка", "повторите попытку", "неверный код", "попробуйте позже")

INVALID_MESSAGE = "Паспорт числится в базе недействительных паспортов МВД"
NOT_FOUND_MESSAGE = "Паспорт не найден в базе недействительных паспортов"
ERROR_MESSAGE = "Ошибка при проверке. Повторите попытку позже."
UNDETERMINED_MESSAGE = "Не удалось определить статус паспорта"


def outcome(
    status: PassportStatus,
    message: Optional[str] = None,
    low_confidence: bool = False
) -> Extraction:
    """Extraction for a register answer; series and number are added by the service."""
    is_invalid = status == PassportStatus.INVALID
    is_valid = status in (PassportStatus.VALID, PassportStatus.NOT_FOUND)
    return Extraction(
        verdict=is_invalid,
        payload={"status": status.value, "is_valid": is_valid},
        low_confidence=low_confidence,
        message=message,
    )


def build_extractor() -> RuleBasedExtractor:
    # "не числится в базе" must not count as "числится в базе"
    return RuleBasedExtractor(
        rules=[
            PhraseRule(
                INVALID_PHRASES,
                partial(outcome, PassportStatus.INVALID, INVALID_MESSAGE),
                reject_negated=True,
            ),
            PhraseRule(NOT_FOUND_PHRASES, partial(outcome, PassportStatus.NOT_FOUND, NOT_FOUND_MESSAGE)),
            PhraseRule(
                RESULT_PHRASES,
                partial(outcome, PassportStatus.NOT_FOUND, NOT_FOUND_MESSAGE, True),
            ),
            PhraseRule(ERROR_PHRASES, partial(outcome, PassportStatus.UNKNOWN, ERROR_MESSAGE)),
        ],
        default=partial(outcome, PassportStatus.UNKNOWN, UNDETERMINED_MESSAGE, True),
        name="passport",
    )
