"""
Logging filters that stamp request and order context onto records
"""
import logging
import uuid
from kitchen_oms.middlewares.request_context import request_context


class RequestContextFilter(logging.Filter):
    def filter(self, record):
        record.request_id = getattr(request_context, 'request_id', None) or str(uuid.uuid4())
        record.request_method = getattr(request_context, 'request_method', '')
        record.request_path = getattr(request_context, 'request_path', '')
        record.user_id = getattr(request_context, 'user_id', '')
        return True


class BusinessContextFilter(logging.Filter):
    def filter(self, record):
        record.order_number = getattr(request_context, 'order_number', '')
        record.payment_ref = getattr(request_context, 'payment_ref', '')
        return True
