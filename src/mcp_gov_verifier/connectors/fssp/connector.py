"""FSSP debt check service.

Searches the enforcement proceedings database of the Federal Bailiff
Service (fssp.gov.ru/iss/ip) for a private person by name, birth date and
region.
"""

from typing import Any, List

from ...browser.session import FieldSpec, FormSpec
from ...exceptions import QueryValidationError
from ..interfaces import Extraction, VerificationService
from ..validation import as_mapping, optional_text, parse_date, require_text, to_form_date
from .extractor import SHAPE, build_extractor
from .interfaces import FsspQuery
from .regions import region_name

FORM_SELECTOR = "form, .search-form, #searchForm, .ip-search"

PHYSICAL_PERSON_SELECTORS = (
    'input[value="physical"]',
    'input[name="searchType"][value="1"]',
    'label:has-text("физическ")',
    'label:has-text("Физическ")',
    'a:has-text("физическ")',
    'a:has-text("Физическ")',
    'button:has-text("физическ")',
    'button:has-text("Физическ")',
    '#is_ip_extended',
)

REGION_SELECTORS = ('select[name="region"]', 'select[name="is[region_id]"]', 'select#region', '#is_region_id')
LAST_NAME_SELECTORS = ('input[name="lastname"]', 'input[name="is[lastname]"]', 'input#lastname', 'input[name="fam"]')
FIRST_NAME_SELECTORS = ('input[name="firstname"]', 'input[name="is[firstname]"]', 'input#firstname', 'input[name="nam"]')
MIDDLE_NAME_SELECTORS = (
    'input[name="secondname"]', 'input[name="is[secondname]"]', 'input#secondname', 'input[name="otch"]'
)
BIRTH_DATE_SELECTORS = ('input[name="birthdate"]', 'input[name="is[date]"]', 'input#birthdate', 'input[name="dat"]')

CAPTCHA_IMAGE_SELECTORS = (
    'img.captcha',
    'img[name="captcha"]',
    '#captchaImage',
    'img[src*="captcha"]',
    '.captcha-img',
    'img[alt*="captcha"]',
)
CAPTCHA_INPUT_SELECTORS = (
    'input[name="captcha"]',
    'input[name="code"]',
    'input[name="captchaCode"]',
    '#captchaInput',
    'input#captcha',
    '.captcha-input',
)
SUBMIT_SELECTORS = (
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Найти")',
    'button:has-text("Поиск")',
    'button:has-text("найти")',
    'input[value="Найти"]',
    'input[value="Поиск"]',
    '.search-btn',
    '.btn-search',
    '#searchButton',
)


class FsspService(VerificationService[FsspQuery]):
    """Debt check against the FSSP enforcement proceedings database."""

    name = "fssp"
    cache_prefix = "fssp-check"
    disabled_error = (
        "Автоматическая проверка ФССП недоступна. Рекомендуем проверить статус "
        "на официальном сайте: https://fssp.gov.ru/iss/ip"
    )
    failure_error = "Сервис ФССП временно недоступен. Повторите проверку позже."
    circuit_open_error = (
        "Сервис ФССП временно недоступен (слишком много ошибок подряд). "
        "Повторите проверку позже."
    )

    def __init__(self):
        self.extractor = build_extractor()

    def normalize(self, query: Any) -> FsspQuery:
        fields = as_mapping(query)

        raw_region = fields.get("region")
        try:
            region = int(str(raw_region).strip())
        except (TypeError, ValueError):
            raise QueryValidationError("region", "must be a region code between 1 and 99")
        if not 1 <= region <= 99:
            raise QueryValidationError("region", "must be a region code between 1 and 99")

        return FsspQuery(
            last_name=require_text(fields, "last_name"),
            first_name=require_text(fields, "first_name"),
            birth_date=parse_date(fields, "birth_date"),
            region=region,
            middle_name=optional_text(fields, "middle_name"),
        )

    def key_fields(self, query: FsspQuery) -> List[str]:
        return [
            query.last_name,
            query.first_name,
            query.middle_name or "",
            query.birth_date,
            str(query.region),
        ]

    def form_spec(self, query: FsspQuery, url: str) -> FormSpec:
        fields = [
            FieldSpec(
                name="region",
                selectors=REGION_SELECTORS,
                value=f"{query.region:02d}",
                kind="select",
                label=region_name(query.region),
            ),
            FieldSpec("last_name", LAST_NAME_SELECTORS, query.last_name),
            FieldSpec("first_name", FIRST_NAME_SELECTORS, query.first_name),
        ]
        if query.middle_name:
            fields.append(FieldSpec("middle_name", MIDDLE_NAME_SELECTORS, query.middle_name))
        fields.append(FieldSpec("birth_date", BIRTH_DATE_SELECTORS, to_form_date(query.birth_date)))

        return FormSpec(
            url=url,
            form_selector=FORM_SELECTOR,
            fields=fields,
            submit_selectors=SUBMIT_SELECTORS,
            mode_selectors=PHYSICAL_PERSON_SELECTORS,
            captcha_image_selectors=CAPTCHA_IMAGE_SELECTORS,
            captcha_input_selectors=CAPTCHA_INPUT_SELECTORS,
        )

    def parse(self, html: str, query: Any = None) -> Extraction:
        return self.extractor.parse(html)

    def empty_extraction(self, query: FsspQuery) -> Extraction:
        return SHAPE.negative()

    def demo_extraction(self) -> Extraction:
        proceedings = [
            {
                "number": "12345/21/77001-ИП",
                "date": "2021-03-15",
                "subject": "Госпошлина",
                "department": "ОСП по Центральному АО г. Москвы",
                "bailiff": "Петров А.И.",
                "amount": 5000.5,
                "executive_document": "Судебный приказ № 2-1234/2021 от 01.02.2021",
                "uin": None,
            },
            {
                "number": "54321/22/77002-ИП",
                "date": "2022-06-20",
                "subject": "Штраф ГИБДД",
                "department": "ОСП по Южному АО г. Москвы",
                "bailiff": "Сидорова Е.В.",
                "amount": 1500.0,
                "executive_document": "Постановление по делу об АП № 18810177220123456 от 15.05.2022",
                "uin": None,
            },
        ]
        return SHAPE.build(True, proceedings, 6500.5)
