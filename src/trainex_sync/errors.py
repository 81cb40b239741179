"""Error hierarchy for schedule retrieval.

Internal code raises these; RetrievalEngine.retrieve is the only place that
turns them into a RetrievalFailure for the caller. The transient/permanent
split lets a caller-side retry policy decide what is worth another run.

Example usage with tenacity (caller side, never inside retrieve):
    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(3))
    async def sync_once():
        ...
"""


class SyncError(Exception):
    """Base exception for all retrieval errors."""

    pass


class TransientError(SyncError):
    """Temporary failure that may succeed on a later run.

    Examples: navigation timeouts, portal briefly unavailable.
    """

    pass


class PermanentError(SyncError):
    """Failure that won't succeed by simply running again."""

    pass


class AuthenticationError(PermanentError):
    """The portal still shows its login form after submitting credentials.

    Wrong credentials, captcha or 2FA. Needs human intervention.
    """

    pass


class ExportNotFoundError(PermanentError):
    """Every discovery strategy ran without yielding calendar content."""

    pass


class BrowserMissingError(PermanentError):
    """The Playwright Chromium build is not installed."""

    pass


class LoginFormNotFoundError(AuthenticationError):
    """The landing page has no recognizable login form or submit control.

    Usually a changed portal layout rather than wrong credentials.
    """

    pass
