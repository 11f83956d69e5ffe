"""Sentry error tracking integration."""

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from intake.core.config import settings


def init_sentry() -> bool:
    """Initialize Sentry error tracking if DSN is configured.

    Client documents are tax records, so PII is never sent. Only 5xx
    responses are captured and 10% of traces sampled.

    Returns:
        True if Sentry was initialized.
    """
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(
                transaction_style="endpoint",
                failed_request_status_codes={*range(500, 600)},
            ),
        ],
    )
    return True


def capture_background_exception(exc: BaseException) -> None:
    """Report an exception raised inside a detached background task.

    Background failures never reach a request handler, so they are sent
    explicitly. No-op when Sentry is not initialized.
    """
    sentry_sdk.capture_exception(exc)
