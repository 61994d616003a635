"""Tests for the browser automation session."""

import asyncio

import pytest

from mcp_gov_verifier.browser.session import (
    FORM_SUBMIT_SCRIPT,
    BrowserAutomationSession,
    FieldSpec,
    FormSpec,
    first_match,
)
from mcp_gov_verifier.exceptions import (
    CaptchaSolveError,
    CaptchaUnavailableError,
    CaptchaUnsolvedError,
    FormNotFoundError,
    NonRetryableError,
    PortalError,
    RetryableError,
)
from tests.fixtures.browser_fixtures import (
    FakeCaptchaProvider,
    FakeElement,
    FakePage,
    FakePageProvider,
)

RESULT_HTML = "<html><body>Результат</body></html>"


def _form(**overrides) -> FormSpec:
    spec = dict(
        url="https://portal.example/form",
        form_selector="form",
        fields=[
            FieldSpec("last_name", ('input[name="lastname"]', 'input#lastname'), "ИВАНОВ"),
            FieldSpec(
                "region",
                ('select[name="region"]',),
                "77",
                kind="select",
                label="г. Москва",
            ),
        ],
        submit_selectors=('button[type="submit"]', '.btn-search'),
        mode_selectors=('#physical',),
        captcha_image_selectors=('img.captcha',),
        captcha_input_selectors=('input[name="captcha"]',),
        settle_seconds=3.0,
    )
    spec.update(overrides)
    return FormSpec(**spec)


def _portal_elements(with_captcha: bool = False, region_options=None):
    elements = {
        'input#lastname': FakeElement('input#lastname'),
        'select[name="region"]': FakeElement('select[name="region"]', options=region_options or {"77": "г. Москва"}),
        '#physical': FakeElement('#physical'),
        '.btn-search': FakeElement('.btn-search'),
    }
    if with_captcha:
        elements['img.captcha'] = FakeElement('img.captcha', image=b"captcha-png")
        elements['input[name="captcha"]'] = FakeElement('input[name="captcha"]')
    return elements


def _session(provider, captcha=None, sleep=None):
    async def no_sleep(seconds):
        pass

    return BrowserAutomationSession(
        provider,
        captcha_provider=captcha,
        selector_timeout=1.0,
        sleep=sleep or no_sleep,
        service="test",
    )


class TestFirstMatch:
    """Tests for the selector-fallback helper."""

    @pytest.mark.asyncio
    async def test_returns_first_present_candidate(self):
        page = FakePage({'#b': FakeElement('#b'), '#c': FakeElement('#c')})

        selector, element = await first_match(page, ('#a', '#b', '#c'))

        assert selector == '#b'
        assert element.selector == '#b'
        assert page.queried == ['#a', '#b']

    @pytest.mark.asyncio
    async def test_none_when_nothing_matches(self):
        assert await first_match(FakePage(), ('#a', '#b')) is None

    @pytest.mark.asyncio
    async def test_query_errors_count_as_misses(self):
        class BrokenSelectorPage(FakePage):
            async def query_selector(self, selector):
                if selector == ':bad(':
                    raise ValueError("Unexpected token")
                return await super().query_selector(selector)

        page = BrokenSelectorPage({'#ok': FakeElement('#ok')})

        selector, _ = await first_match(page, (':bad(', '#ok'))

        assert selector == '#ok'


class TestBrowserAutomationSession:
    """Tests for one form submission."""

    @pytest.mark.asyncio
    async def test_fills_and_submits_form(self):
        elements = _portal_elements()
        provider = FakePageProvider(lambda: FakePage(elements, html=RESULT_HTML))
        sleeps = []

        async def record_sleep(seconds):
            sleeps.append(seconds)

        html = await _session(provider, sleep=record_sleep).execute(_form())

        assert html == RESULT_HTML
        assert elements['#physical'].clicked == 1
        assert elements['input#lastname'].value == "ИВАНОВ"
        assert elements['select[name="region"]'].value == "77"
        assert elements['.btn-search'].clicked == 1
        assert sleeps == [3.0]
        assert provider.acquired == provider.released == 1

    @pytest.mark.asyncio
    async def test_select_falls_back_to_label(self):
        elements = _portal_elements(region_options={"45": "г. Москва"})
        provider = FakePageProvider(lambda: FakePage(elements))

        await _session(provider).execute(_form())

        assert elements['select[name="region"]'].value == "45"

    @pytest.mark.asyncio
    async def test_missing_field_is_skipped(self):
        elements = _portal_elements()
        del elements['input#lastname']
        provider = FakePageProvider(lambda: FakePage(elements, html=RESULT_HTML))

        assert await _session(provider).execute(_form()) == RESULT_HTML

    @pytest.mark.asyncio
    async def test_missing_mode_selector_is_fine(self):
        elements = _portal_elements()
        del elements['#physical']
        provider = FakePageProvider(lambda: FakePage(elements, html=RESULT_HTML))

        assert await _session(provider).execute(_form()) == RESULT_HTML

    @pytest.mark.asyncio
    async def test_submit_script_when_no_button(self):
        elements = _portal_elements()
        del elements['.btn-search']
        page = FakePage(elements)
        provider = FakePageProvider(lambda: page)

        await _session(provider).execute(_form())

        assert page.evaluated == [FORM_SUBMIT_SCRIPT]

    @pytest.mark.asyncio
    async def test_form_not_found(self):
        provider = FakePageProvider(lambda: FakePage(form_present=False))

        with pytest.raises(FormNotFoundError):
            await _session(provider).execute(_form())
        assert provider.released == 1

    @pytest.mark.asyncio
    async def test_navigation_failure_becomes_portal_error(self):
        provider = FakePageProvider(acquire_error=RuntimeError("net::ERR_NAME_NOT_RESOLVED"))

        with pytest.raises(PortalError):
            await _session(provider).execute(_form())
        assert provider.released == 0

    @pytest.mark.asyncio
    async def test_captcha_solved_and_entered(self):
        elements = _portal_elements(with_captcha=True)
        provider = FakePageProvider(lambda: FakePage(elements))
        captcha = FakeCaptchaProvider(solution="x7k2p")

        await _session(provider, captcha).execute(_form())

        assert captcha.images == [b"captcha-png"]
        assert elements['input[name="captcha"]'].value == "x7k2p"

    @pytest.mark.asyncio
    async def test_captcha_without_solver_is_non_retryable(self):
        provider = FakePageProvider(lambda: FakePage(_portal_elements(with_captcha=True)))

        with pytest.raises(CaptchaUnavailableError):
            await _session(provider, FakeCaptchaProvider(enabled=False)).execute(_form())
        assert provider.released == 1

    @pytest.mark.asyncio
    async def test_captcha_without_provider_is_non_retryable(self):
        provider = FakePageProvider(lambda: FakePage(_portal_elements(with_captcha=True)))

        with pytest.raises(CaptchaUnavailableError):
            await _session(provider).execute(_form())

    @pytest.mark.asyncio
    async def test_unsolved_captcha_is_non_retryable(self):
        provider = FakePageProvider(lambda: FakePage(_portal_elements(with_captcha=True)))

        with pytest.raises(CaptchaUnsolvedError) as exc_info:
            await _session(provider, FakeCaptchaProvider(solution=None)).execute(_form())

        assert isinstance(exc_info.value, NonRetryableError)
        assert provider.released == 1

    @pytest.mark.asyncio
    async def test_captcha_deadline_is_retryable(self):
        provider = FakePageProvider(lambda: FakePage(_portal_elements(with_captcha=True)))
        captcha = FakeCaptchaProvider(solution=None, timed_out=True)

        with pytest.raises(CaptchaSolveError) as exc_info:
            await _session(provider, captcha).execute(_form())

        assert isinstance(exc_info.value, RetryableError)

    @pytest.mark.asyncio
    async def test_captcha_input_missing_still_submits(self):
        elements = _portal_elements(with_captcha=True)
        del elements['input[name="captcha"]']
        provider = FakePageProvider(lambda: FakePage(elements, html=RESULT_HTML))

        html = await _session(provider, FakeCaptchaProvider()).execute(_form())

        assert html == RESULT_HTML
        assert elements['.btn-search'].clicked == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_portal_error(self):
        class CrashingPage(FakePage):
            async def content(self):
                raise RuntimeError("Target page, context or browser has been closed")

        provider = FakePageProvider(lambda: CrashingPage(_portal_elements()))

        with pytest.raises(PortalError):
            await _session(provider).execute(_form())
        assert provider.released == 1

    @pytest.mark.asyncio
    async def test_lease_released_on_cancellation(self):
        started = asyncio.Event()

        async def hang(seconds):
            started.set()
            await asyncio.sleep(3600)

        provider = FakePageProvider(lambda: FakePage(_portal_elements()))
        task = asyncio.create_task(_session(provider, sleep=hang).execute(_form()))
        await started.wait()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert provider.released == 1
