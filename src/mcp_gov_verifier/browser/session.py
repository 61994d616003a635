"""Browser automation session: one form submission, start to finish.

A portal form is described declaratively with :class:`FormSpec`. Every element
is located through an ordered list of candidate selectors, because the portals
change markup without notice; :func:`first_match` returns the first candidate
present on the page.

One call to :meth:`BrowserAutomationSession.execute` is one attempt. It never
retries by itself; the gateway's retry policy decides that.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from ..captcha.interfaces import ICaptchaProvider
from ..config.mcp_logger import logger
from ..exceptions import (
    CaptchaSolveError,
    CaptchaUnavailableError,
    CaptchaUnsolvedError,
    FormNotFoundError,
    PortalError,
    VerificationError,
)
from .interfaces import IElement, IPage, IPageProvider

FORM_SUBMIT_SCRIPT = "() => { const f = document.querySelector('form'); if (f) f.submit(); }"


@dataclass
class FieldSpec:
    """One input to fill.

    Attributes:
        name: Logical field name, used in logs.
        selectors: Candidate selectors, tried in order.
        value: Text to type, or option value for ``kind="select"``.
        kind: ``"fill"`` for inputs, ``"select"`` for drop-downs.
        label: For selects, the visible option label tried when the value
            does not match any option.
    """
    name: str
    selectors: Sequence[str]
    value: str
    kind: str = "fill"
    label: Optional[str] = None


@dataclass
class FormSpec:
    """Everything needed to submit a portal form once."""
    url: str
    form_selector: str
    fields: List[FieldSpec]
    submit_selectors: Sequence[str]
    mode_selectors: Sequence[str] = ()
    captcha_image_selectors: Sequence[str] = ()
    captcha_input_selectors: Sequence[str] = ()
    settle_seconds: float = 3.0


async def first_match(page: IPage, selectors: Sequence[str]) -> Optional[Tuple[str, IElement]]:
    """Return ``(selector, element)`` for the first candidate on the page.

    A selector the browser rejects counts as a miss.
    """
    for selector in selectors:
        try:
            element = await page.query_selector(selector)
        except Exception as e:
            logger.debug("selector_query_failed", selector=selector, error=str(e))
            continue
        if element is not None:
            return selector, element
    return None


class BrowserAutomationSession:
    """Drives one portal form per call to :meth:`execute`.

    Args:
        page_provider: Source of pages already navigated to the form URL.
        captcha_provider: Solver used when the form shows an image captcha.
        selector_timeout: Seconds to wait for the form to appear.
        sleep: Coroutine used for the post-submit settle pause.
        service: Name bound into log records.
    """

    def __init__(
        self,
        page_provider: IPageProvider,
        captcha_provider: Optional[ICaptchaProvider] = None,
        selector_timeout: float = 10.0,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        service: str = "portal"
    ):
        self._pages = page_provider
        self._captcha = captcha_provider
        self._selector_timeout_ms = int(selector_timeout * 1000)
        self._sleep = sleep
        self.logger = logger.bind(service=service, component="browser_session")

    async def execute(self, form: FormSpec) -> str:
        """Fill and submit ``form`` and return the resulting page HTML.

        Raises:
            FormNotFoundError: The form did not appear in time.
            CaptchaUnavailableError: A captcha is shown but solving is disabled.
            CaptchaSolveError: The solver chain ran out of time.
            CaptchaUnsolvedError: No solver could read the captcha.
            PortalError: Navigation or any other browser failure.
        """
        try:
            lease = await self._pages.acquire(form.url)
        except VerificationError:
            raise
        except Exception as e:
            raise PortalError(f"Could not open {form.url}: {e}") from e

        try:
            return await self._run(lease.page, form)
        except VerificationError:
            raise
        except Exception as e:
            raise PortalError(f"Browser interaction failed: {e}") from e
        finally:
            await self._pages.release(lease)

    async def _run(self, page: IPage, form: FormSpec) -> str:
        try:
            await page.wait_for_selector(form.form_selector, timeout=self._selector_timeout_ms)
        except Exception as e:
            raise FormNotFoundError(f"Form '{form.form_selector}' not found: {e}") from e

        if form.mode_selectors:
            await self._select_mode(page, form.mode_selectors)

        for spec in form.fields:
            await self._fill_field(page, spec)

        if form.captcha_image_selectors:
            await self._handle_captcha(page, form)

        await self._submit(page, form.submit_selectors)

        try:
            await page.wait_for_load_state("networkidle", timeout=self._selector_timeout_ms)
        except Exception as e:
            self.logger.debug("load_state_wait_skipped", error=str(e))

        await self._sleep(form.settle_seconds)
        return await page.content()

    async def _select_mode(self, page: IPage, selectors: Sequence[str]) -> None:
        match = await first_match(page, selectors)
        if match is None:
            self.logger.debug("mode_selector_not_found")
            return
        selector, element = match
        try:
            await element.click()
            self.logger.debug("mode_selected", selector=selector)
        except Exception as e:
            self.logger.debug("mode_click_failed", selector=selector, error=str(e))

    async def _fill_field(self, page: IPage, spec: FieldSpec) -> None:
        match = await first_match(page, spec.selectors)
        if match is None:
            self.logger.warning("field_not_found", field=spec.name)
            return
        selector, element = match

        if spec.kind == "select":
            try:
                await element.select_option(value=spec.value)
            except Exception:
                if not spec.label:
                    raise
                await element.select_option(label=spec.label)
        else:
            await element.fill(spec.value)

        self.logger.debug("field_filled", field=spec.name, selector=selector)

    async def _handle_captcha(self, page: IPage, form: FormSpec) -> None:
        match = await first_match(page, form.captcha_image_selectors)
        if match is None:
            return
        selector, image_element = match
        self.logger.info("captcha_detected", selector=selector)

        if self._captcha is None or not self._captcha.is_enabled():
            raise CaptchaUnavailableError("Captcha required but no solver is configured")

        image = await image_element.screenshot()
        result = await self._captcha.solve(image)
        if not result.success or not result.solution:
            if result.timed_out:
                raise CaptchaSolveError(result.error or "Captcha solving timed out")
            raise CaptchaUnsolvedError(result.error or "Captcha was not solved")

        input_match = await first_match(page, form.captcha_input_selectors)
        if input_match is None:
            self.logger.warning("captcha_input_not_found")
            return
        await input_match[1].fill(result.solution)
        self.logger.info("captcha_answer_entered")

    async def _submit(self, page: IPage, selectors: Sequence[str]) -> None:
        match = await first_match(page, selectors)
        if match is not None:
            await match[1].click()
            return
        self.logger.debug("submit_button_not_found_using_script")
        await page.evaluate(FORM_SUBMIT_SCRIPT)
