"""
JSON formatters for Kitchen OMS logging
"""
import json
import logging
from datetime import datetime

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()

APPLICATION_ENVIRONMENT = configs.APPLICATION_ENVIRONMENT
SERVICE_NAME = configs.APP_NAME


class BaseJSONFormatter(logging.Formatter):

    def __init__(self):
        super().__init__()
        self.application_environment = APPLICATION_ENVIRONMENT

    def base_entry(self, record):
        return {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line_number': record.lineno,
            'environment': self.application_environment,
            'service': SERVICE_NAME,
        }

    def format(self, record):
        log_entry = self.base_entry(record)
        log_entry['message'] = record.getMessage()

        if record.exc_info:
            log_entry['exception'] = str(record.exc_info[1])

        self.add_extra_fields(log_entry, record)
        return json.dumps(log_entry, ensure_ascii=False, default=str)

    def add_extra_fields(self, log_entry, record):
        pass


class AppLogsJSONFormatter(BaseJSONFormatter):
    def add_extra_fields(self, log_entry, record):
        log_entry['request_id'] = getattr(record, 'request_id', '')
        log_entry['user_id'] = getattr(record, 'user_id', '')
        log_entry['order_number'] = getattr(record, 'order_number', '')
        log_entry['payment_ref'] = getattr(record, 'payment_ref', '')


class AuditLogsJSONFormatter(BaseJSONFormatter):
    def format(self, record):
        """Audit entries carry request/response extras instead of a message"""
        log_entry = self.base_entry(record)

        if record.exc_info:
            log_entry['exception'] = str(record.exc_info[1])

        self.add_extra_fields(log_entry, record)
        return json.dumps(log_entry, ensure_ascii=False, default=str)

    def add_extra_fields(self, log_entry, record):
        log_entry['user_id'] = getattr(record, 'user_id', '')
        log_entry['request_id'] = getattr(record, 'request_id', '')
        log_entry['duration'] = getattr(record, 'duration', 0.0)
        log_entry['hostname'] = getattr(record, 'hostname', '')
        log_entry['module_name'] = getattr(record, 'module_name', '')

        request_data = getattr(record, 'request', None)
        response_data = getattr(record, 'response', None)
        log_entry['request'] = json.dumps(request_data, ensure_ascii=False, default=str) if request_data else ''
        log_entry['response'] = json.dumps(response_data, ensure_ascii=False, default=str) if response_data else ''

        log_entry['request_method'] = getattr(record, 'request_method', '')
        log_entry['request_path'] = getattr(record, 'request_path', '')
        log_entry['status_code'] = getattr(record, 'status_code', 0)
