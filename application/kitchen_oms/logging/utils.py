"""
Logging utilities for Kitchen OMS
"""
import logging

from kitchen_oms.logging.config import LoggingConfig
from kitchen_oms.logging.handlers import get_app_handler, get_audit_handler, get_local_file_handler
from kitchen_oms.logging.filters import RequestContextFilter, BusinessContextFilter
from kitchen_oms.logging.slack_handler import slack_handler


def get_app_logger(name: str = 'kitchen_oms'):
    logger = logging.getLogger(name)
    if not logger.handlers:
        # central handler or local file handler per module
        handler = get_app_handler() if LoggingConfig.FIREHOSE_ENABLED else get_local_file_handler(name.replace('.', '_'))
        if not handler.filters:
            handler.addFilter(RequestContextFilter())
            handler.addFilter(BusinessContextFilter())
        logger.addHandler(handler)
        logger.addHandler(slack_handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def get_audit_logger():
    logger = logging.getLogger('kitchen_oms.audit')
    if not logger.handlers:
        handler = get_audit_handler()
        if not handler.filters:
            handler.addFilter(RequestContextFilter())
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def initialize_logging():
    is_valid, message = LoggingConfig.is_valid_config()
    if not is_valid:
        get_app_logger('kitchen_oms').warning(f"logging_config_invalid | reason={message}")
