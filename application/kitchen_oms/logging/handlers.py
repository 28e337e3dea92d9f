"""
Logging handlers for Kitchen OMS.
Firehose-backed buffered handlers with local-file fallback.
"""
import logging
import os
import time
from logging.handlers import MemoryHandler

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from kitchen_oms.logging.config import LoggingConfig
from kitchen_oms.logging.formatters import AppLogsJSONFormatter, AuditLogsJSONFormatter


class FireHoseHandler(logging.Handler):
    """Kinesis Firehose handler with simple retries"""

    def __init__(self, stream_name: str):
        super().__init__()
        self.stream_name = stream_name
        self.client = self._create_client()
        self.retry_count = LoggingConfig.FIREHOSE_RETRY_COUNT
        self.retry_delay = LoggingConfig.FIREHOSE_RETRY_DELAY

    def _create_client(self):
        return boto3.client(
            "firehose",
            region_name=LoggingConfig.FIREHOSE_REGION_NAME,
            aws_access_key_id=LoggingConfig.FIREHOSE_ACCESS_KEY_ID,
            aws_secret_access_key=LoggingConfig.FIREHOSE_SECRET_ACCESS_KEY,
            config=Config(connect_timeout=10, read_timeout=30, retries={"max_attempts": 2}),
        )

    def bulk_insert(self, actions):
        if not actions:
            return True

        for attempt in range(self.retry_count):
            try:
                response = self.client.put_record_batch(
                    DeliveryStreamName=self.stream_name,
                    Records=actions,
                )
                if response.get("FailedPutCount", 0) == 0:
                    return True
            except (BotoCoreError, ClientError):
                if attempt == self.retry_count - 1:
                    return False
            if attempt < self.retry_count - 1:
                time.sleep(self.retry_delay * (2 ** attempt))
        return False


class BufferedFirehoseHandler(MemoryHandler):
    """Buffers records and ships them in batches on capacity or timeout"""

    def __init__(self, stream_name: str, capacity: int, formatter: logging.Formatter):
        target = FireHoseHandler(stream_name)
        super().__init__(capacity=capacity, target=target)
        self.stream_name = stream_name
        self.buffer_timeout = LoggingConfig.LOG_BUFFER_TIMEOUT
        self.last_flush = time.time()
        self.setFormatter(formatter)
        target.setFormatter(formatter)

    def emit(self, record):
        super().emit(record)
        if time.time() - self.last_flush >= self.buffer_timeout or len(self.buffer) >= self.capacity:
            self.flush()

    def flush(self):
        self.acquire()
        try:
            if self.target and self.buffer:
                actions = [{"Data": self.format(record)} for record in self.buffer]
                self.target.bulk_insert(actions)
                self.buffer.clear()
                self.last_flush = time.time()
        finally:
            self.release()


_handlers = {}


def get_local_file_handler(name: str = 'app'):
    os.makedirs(LoggingConfig.LOG_DIR, exist_ok=True)
    handler = logging.FileHandler(os.path.join(LoggingConfig.LOG_DIR, f'{name}.log'))
    formatter = AuditLogsJSONFormatter() if name.startswith('audit') else AppLogsJSONFormatter()
    handler.setFormatter(formatter)
    return handler


def get_app_handler():
    if LoggingConfig.FIREHOSE_ENABLED:
        if 'app' not in _handlers:
            stream = LoggingConfig.APP_LOGS_STREAM_NAME or 'kitchen-oms-app-logs'
            _handlers['app'] = BufferedFirehoseHandler(stream, LoggingConfig.APP_LOGS_CAPACITY, AppLogsJSONFormatter())
        return _handlers['app']
    return get_local_file_handler('app')


def get_audit_handler():
    if LoggingConfig.FIREHOSE_ENABLED:
        if 'audit' not in _handlers:
            stream = LoggingConfig.AUDIT_LOGS_STREAM_NAME or 'kitchen-oms-audit-logs'
            _handlers['audit'] = BufferedFirehoseHandler(stream, LoggingConfig.AUDIT_LOGS_CAPACITY, AuditLogsJSONFormatter())
        return _handlers['audit']
    return get_local_file_handler('audit_logs')
