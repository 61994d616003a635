"""GIBDD traffic fine check service.

Queries the traffic police fine search (гибдд.рф/check/fines) either by plate
number plus vehicle registration certificate (STS) or by driver's license.
"""

from typing import Any, List

from ...browser.session import FieldSpec, FormSpec
from ...exceptions import QueryValidationError
from ..interfaces import Extraction, VerificationService
from ..validation import as_mapping, parse_date, require_text, to_form_date
from .extractor import PAYMENT_URL, SHAPE, build_extractor
from .interfaces import GibddCheckType, GibddQuery

FORM_SELECTOR = "form, .check-form, #fines-form"

STS_TAB_SELECTORS = (
    'a:has-text("СТС")',
    'button:has-text("СТС")',
    '[data-tab="sts"]',
    '[href="#sts"]',
    '.tab-sts',
    '#tab-sts',
)
LICENSE_TAB_SELECTORS = (
    'a:has-text("ВУ")',
    'button:has-text("ВУ")',
    'a:has-text("водительск")',
    'button:has-text("водительск")',
    '[data-tab="license"]',
    '[href="#license"]',
    '.tab-license',
    '#tab-license',
)

REG_NUMBER_SELECTORS = (
    'input[name="regNumber"]',
    'input[name="rz"]',
    'input#regNumber',
    'input#rz',
    'input[placeholder*="госномер"]',
    'input[placeholder*="номер"]',
)
STS_NUMBER_SELECTORS = (
    'input[name="stsNumber"]',
    'input[name="sts"]',
    'input#stsNumber',
    'input#sts',
    'input[placeholder*="СТС"]',
    'input[placeholder*="свидетельство"]',
)
LICENSE_NUMBER_SELECTORS = (
    'input[name="licenseNumber"]',
    'input[name="vu"]',
    'input#licenseNumber',
    'input#vu',
    'input[placeholder*="ВУ"]',
    'input[placeholder*="удостоверен"]',
)
ISSUE_DATE_SELECTORS = (
    'input[name="issueDate"]',
    'input[name="vuDate"]',
    'input#issueDate',
    'input#vuDate',
    'input[type="date"][name*="date"]',
)

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
    'button:has-text("Проверить")',
    'button:has-text("Запросить")',
    'input[value="Проверить"]',
    'input[value="Запросить"]',
    '.check-btn',
    '.btn-check',
    '#checkButton',
)


class GibddService(VerificationService[GibddQuery]):
    """Unpaid traffic fines check."""

    name = "gibdd"
    cache_prefix = "gibdd-check"
    disabled_error = (
        "Автоматическая проверка штрафов ГИБДД недоступна. Рекомендуем проверить "
        "на официальном сайте: https://гибдд.рф/check/fines или на Госуслугах: "
        "https://www.gosuslugi.ru"
    )
    failure_error = "Сервис ГИБДД временно недоступен. Повторите проверку позже."
    circuit_open_error = (
        "Сервис ГИБДД временно недоступен (слишком много ошибок подряд). "
        "Повторите проверку позже."
    )

    def __init__(self):
        self.extractor = build_extractor()

    def normalize(self, query: Any) -> GibddQuery:
        fields = as_mapping(query)

        raw_type = fields.get("check_type")
        if isinstance(raw_type, GibddCheckType):
            check_type = raw_type
        else:
            try:
                check_type = GibddCheckType(str(raw_type or "").strip().lower())
            except ValueError:
                raise QueryValidationError("check_type", "must be 'sts' or 'license'")

        if check_type == GibddCheckType.STS:
            return GibddQuery(
                check_type=check_type,
                reg_number=require_text(fields, "reg_number").replace(" ", ""),
                sts_number=require_text(fields, "sts_number").replace(" ", ""),
            )

        return GibddQuery(
            check_type=check_type,
            license_number=require_text(fields, "license_number").replace(" ", ""),
            issue_date=parse_date(fields, "issue_date", required=False),
        )

    def key_fields(self, query: GibddQuery) -> List[str]:
        if query.check_type == GibddCheckType.STS:
            return [query.check_type.value, query.reg_number, query.sts_number]
        return [query.check_type.value, query.license_number, query.issue_date or ""]

    def form_spec(self, query: GibddQuery, url: str) -> FormSpec:
        if query.check_type == GibddCheckType.STS:
            mode_selectors = STS_TAB_SELECTORS
            fields = [
                FieldSpec("reg_number", REG_NUMBER_SELECTORS, query.reg_number),
                FieldSpec("sts_number", STS_NUMBER_SELECTORS, query.sts_number),
            ]
        else:
            mode_selectors = LICENSE_TAB_SELECTORS
            fields = [FieldSpec("license_number", LICENSE_NUMBER_SELECTORS, query.license_number)]
            if query.issue_date:
                fields.append(FieldSpec("issue_date", ISSUE_DATE_SELECTORS, to_form_date(query.issue_date)))

        return FormSpec(
            url=url,
            form_selector=FORM_SELECTOR,
            fields=fields,
            submit_selectors=SUBMIT_SELECTORS,
            mode_selectors=mode_selectors,
            captcha_image_selectors=CAPTCHA_IMAGE_SELECTORS,
            captcha_input_selectors=CAPTCHA_INPUT_SELECTORS,
        )

    def parse(self, html: str, query: Any = None) -> Extraction:
        return self.extractor.parse(html)

    def empty_extraction(self, query: GibddQuery) -> Extraction:
        return SHAPE.negative()

    def demo_extraction(self) -> Extraction:
        department = "ЦАФАП ОДД ГИБДД ГУ МВД России по г. Москве"
        fines = [
            {
                "date": "2024-01-10",
                "article": "12.9 ч.2",
                "description": (
                    "Превышение установленной скорости движения на величину "
                    "более 20, но не более 40 км/ч"
                ),
                "amount": 500.0,
                "discount_amount": 250.0,
                "discount_deadline": "2024-01-30",
                "uin": "18810177220123456789",
                "payment_url": PAYMENT_URL.format(uin="18810177220123456789"),
                "location": "г. Москва, ул. Тверская",
                "department": department,
            },
            {
                "date": "2024-01-05",
                "article": "12.16 ч.1",
                "description": "Несоблюдение требований, предписанных дорожными знаками",
                "amount": 500.0,
                "discount_amount": 250.0,
                "discount_deadline": "2024-01-25",
                "uin": "18810177220987654321",
                "payment_url": PAYMENT_URL.format(uin="18810177220987654321"),
                "location": "г. Москва, Ленинградский пр-т",
                "department": department,
            },
        ]
        extraction = SHAPE.build(True, fines, 1000.0)
        extraction.message = "Тестовые данные. Для реальной проверки используйте официальный сайт ГИБДД."
        return extraction
