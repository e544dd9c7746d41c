import logging
import os

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

logger = logging.getLogger(__name__)


def _sample_rate(env_var: str) -> float:
    raw_value = os.getenv(env_var)
    if raw_value is None:
        return 0.0

    try:
        value = float(raw_value)
    except ValueError:
        logger.warning("%s is not a valid float (got %r); tracing disabled", env_var, raw_value)
        return 0.0

    # Rates outside [0, 1] are clamped rather than rejected.
    return min(max(value, 0.0), 1.0)


def init_sentry() -> bool:
    """Report device API errors to Sentry when ``SENTRY_DSN`` is set."""

    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        logger.info("SENTRY_DSN not provided; skipping Sentry initialization.")
        return False

    environment = (os.getenv("SENTRY_ENVIRONMENT") or "").strip() or None
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FastApiIntegration()],
        environment=environment,
        traces_sample_rate=_sample_rate("SENTRY_TRACES_SAMPLE_RATE"),
    )

    device_id = (os.getenv("DEVICE_ID") or "").strip()
    if device_id:
        sentry_sdk.set_tag("device_id", device_id)

    logger.info("Initialized Sentry for device %s", device_id or "<unnamed>")
    return True
