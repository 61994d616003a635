"""Exception hierarchy for the verification gateways.

Internal stages raise these typed errors; the gateway is the single place
that turns them into fallback results. The split between retryable and
non-retryable errors drives the retry loop.
"""


class VerificationError(Exception):
    """Base class for all verification errors."""
    pass


class RetryableError(VerificationError):
    """A transient failure; the attempt may be repeated."""
    pass


class NonRetryableError(VerificationError):
    """A failure that repeating the attempt cannot fix.

    Raising one of these aborts the retry loop immediately.
    """
    pass


class QueryValidationError(NonRetryableError):
    """The query is missing a required field or has a malformed one."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid field '{field}': {reason}")


class CaptchaUnavailableError(NonRetryableError):
    """A captcha is on the page but no solver is configured."""
    pass


class CaptchaSolveError(RetryableError):
    """The captcha solver could not produce an answer.

    Raised by individual solvers, and by the session when the solver chain
    ran out of time.
    """
    pass


class CaptchaUnsolvedError(NonRetryableError):
    """Every solver answered and none could read the captcha."""
    pass


class FormNotFoundError(RetryableError):
    """The portal form did not appear within the timeout."""
    pass


class PortalError(RetryableError):
    """Navigation or interaction with the portal failed."""
    pass
