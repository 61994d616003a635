"""MVD passport validity check service.

Looks a passport up in the MVD register of invalid passports
(services.fms.gov.ru/info-service.htm?sid=2000).
"""

from typing import Any, List

from ...browser.session import FieldSpec, FormSpec
from ..interfaces import Extraction, VerificationService
from ..validation import as_mapping, require_digits
from .extractor import NOT_FOUND_MESSAGE, build_extractor, outcome
from .interfaces import PassportQuery, PassportStatus

#: Series that always comes back INVALID while the integration is disabled
TEST_INVALID_SERIES = "0000"

FORM_SELECTOR = 'form, input[name="sid"]'

SERIES_SELECTORS = (
    'input[name="sid"]',
    'input[name="series"]',
    'input#seria',
    'input[placeholder*="серия"]',
    'input[placeholder*="Серия"]',
)
NUMBER_SELECTORS = (
    'input[name="num"]',
    'input[name="number"]',
    'input#num',
    'input[placeholder*="номер"]',
    'input[placeholder*="Номер"]',
)

CAPTCHA_IMAGE_SELECTORS = (
    'img.captcha',
    'img[name="captcha"]',
    '#captchaImage',
    'img[src*="captcha"]',
    '.captcha-img',
    'img[alt*="captcha"]',
    'img[src*="getImage"]',
)
CAPTCHA_INPUT_SELECTORS = (
    'input[name="captcha"]',
    'input[name="code"]',
    'input[name="captchaCode"]',
    '#captchaInput',
    'input#captcha',
    '.captcha-input',
    'input[name="captchaword"]',
)
SUBMIT_SELECTORS = (
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Отправить")',
    'button:has-text("Проверить")',
    'button:has-text("отправить")',
    'button:has-text("проверить")',
    'input[value="Отправить"]',
    'input[value="Проверить"]',
    '.btn-search',
    '#submitButton',
)


class PassportService(VerificationService[PassportQuery]):
    """Passport validity check against the MVD invalid passports register.

    The verdict is "flagged invalid": True only when the register lists the
    passport.
    """

    name = "passport"
    cache_prefix = "passport-validity"
    disabled_error = (
        "Автоматическая проверка паспорта недоступна. Рекомендуем проверить статус "
        "на официальном сайте: https://services.fms.gov.ru/info-service.htm?sid=2000"
    )
    failure_error = "Сервис МВД временно недоступен. Повторите проверку позже."
    circuit_open_error = (
        "Сервис МВД временно недоступен (слишком много ошибок подряд). "
        "Повторите проверку позже."
    )

    def __init__(self):
        self.extractor = build_extractor()

    def normalize(self, query: Any) -> PassportQuery:
        fields = as_mapping(query)
        return PassportQuery(
            series=require_digits(fields, "series", 4),
            number=require_digits(fields, "number", 6),
        )

    def key_fields(self, query: PassportQuery) -> List[str]:
        return [query.series, query.number]

    def form_spec(self, query: PassportQuery, url: str) -> FormSpec:
        return FormSpec(
            url=url,
            form_selector=FORM_SELECTOR,
            fields=[
                FieldSpec("series", SERIES_SELECTORS, query.series),
                FieldSpec("number", NUMBER_SELECTORS, query.number),
            ],
            submit_selectors=SUBMIT_SELECTORS,
            captcha_image_selectors=CAPTCHA_IMAGE_SELECTORS,
            captcha_input_selectors=CAPTCHA_INPUT_SELECTORS,
        )

    def parse(self, html: str, query: PassportQuery) -> Extraction:
        return self._with_document(self.extractor.parse(html), query)

    def empty_extraction(self, query: PassportQuery) -> Extraction:
        return self._with_document(outcome(PassportStatus.UNKNOWN), query)

    def disabled_extraction(self, query: PassportQuery) -> Extraction:
        if query.series == TEST_INVALID_SERIES:
            extraction = outcome(PassportStatus.INVALID, "Тестовые данные: паспорт недействителен")
        else:
            extraction = outcome(
                PassportStatus.NOT_FOUND,
                "Тестовые данные: паспорт не найден в базе недействительных"
            )
        return self._with_document(extraction, query)

    def failure_extraction(self, query: PassportQuery) -> Extraction:
        extraction = outcome(
            PassportStatus.UNKNOWN,
            "Рекомендуем проверить статус на официальном сайте: services.fms.gov.ru"
        )
        return self._with_document(extraction, query)

    def demo_extraction(self) -> Extraction:
        return self._with_document(
            outcome(PassportStatus.NOT_FOUND, NOT_FOUND_MESSAGE),
            PassportQuery(series="4510", number="123456"),
        )

    @staticmethod
    def _with_document(extraction: Extraction, query: PassportQuery) -> Extraction:
        extraction.payload["series"] = query.series
        extraction.payload["number"] = query.number
        return extraction
