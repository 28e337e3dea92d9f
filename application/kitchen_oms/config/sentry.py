import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.sentry")

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()

SENSITIVE_HEADERS = ['authorization', 'cookie', 'x-admin-token', 'x-razorpay-signature']
SENSITIVE_FIELDS = ['password', 'token', 'secret', 'key', 'signature']


def init_sentry():
    """Initialize Sentry SDK when enabled and configured"""
    if not configs.SENTRY_ENABLED:
        logger.info("sentry_disabled")
        return

    if not configs.SENTRY_DSN:
        logger.warning("sentry_dsn_missing | SENTRY_ENABLED is true but SENTRY_DSN is not configured")
        return

    sentry_sdk.init(
        dsn=configs.SENTRY_DSN,
        environment=configs.ENVIRONMENT,
        release=configs.SENTRY_RELEASE,
        traces_sample_rate=float(configs.SENTRY_TRACES_SAMPLE_RATE),
        profiles_sample_rate=float(configs.SENTRY_PROFILES_SAMPLE_RATE),
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(
                level=logging.INFO,        # Capture info and above as breadcrumbs
                event_level=logging.ERROR  # Send errors as events
            ),
        ],
        send_default_pii=False,
        attach_stacktrace=True,
        sample_rate=1.0,
        max_breadcrumbs=50,
        before_send=before_send_filter,
    )

    logger.info(f"sentry_initialized | environment={configs.ENVIRONMENT}")


def before_send_filter(event, hint):
    """Filter sensitive data before sending to Sentry"""
    request = event.get('request') or {}

    headers = request.get('headers')
    if isinstance(headers, dict):
        for header in list(headers.keys()):
            if header.lower() in SENSITIVE_HEADERS:
                headers[header] = '[Filtered]'

    data = request.get('data')
    if isinstance(data, dict):
        for key in list(data.keys()):
            if any(field in key.lower() for field in SENSITIVE_FIELDS):
                data[key] = '[Filtered]'

    return event


def capture_exception(exception, **kwargs):
    """Wrapper to capture exceptions only if Sentry is enabled"""
    if configs.SENTRY_ENABLED:
        sentry_sdk.capture_exception(exception, **kwargs)
    logger.error(f"exception_captured | type={type(exception).__name__} message={exception}", exc_info=exception)


def add_breadcrumb(message, category="custom", level="info", data=None):
    """Wrapper to add breadcrumbs only if Sentry is enabled"""
    if configs.SENTRY_ENABLED:
        sentry_sdk.add_breadcrumb(
            message=message,
            category=category,
            level=level,
            data=data or {}
        )
