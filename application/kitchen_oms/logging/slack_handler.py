import logging
from datetime import datetime, timezone

import requests

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()


class SlackErrorHandler(logging.Handler):
    """Sends ERROR and CRITICAL logs to Slack"""
    def __init__(self):
        super().__init__(level=logging.ERROR)
        self.webhook = configs.SLACK_WEBHOOK_URL
        self.enabled = bool(self.webhook)

    def build_message(self, record) -> str:
        env = configs.APPLICATION_ENVIRONMENT.upper()
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()

        lines = [
            f":mag: {env}-MONITOR {configs.APP_NAME} raised an error",
            "",
            f"- :clock1: Timestamp: {ts}",
            f"- :triangular_flag_on_post: Level: **{record.levelname}**",
            f"- :warning: Logger: {record.name}",
            f"- :file_folder: Module: {getattr(record, 'module', '')}",
            f"- :pushpin: Function: {getattr(record, 'funcName', '')}",
            f"- :straight_ruler: Line Number: {getattr(record, 'lineno', '')}",
            f"- :receipt: Order: {getattr(record, 'order_number', '') or '-'}",
            "",
            "```" + str(record.getMessage()) + "```",
        ]
        return "\n".join(lines)

    def emit(self, record):
        if not self.enabled:
            return
        try:
            requests.post(self.webhook, json={"text": self.build_message(record)}, timeout=2)
        except requests.RequestException:
            self.handleError(record)


# Export a singleton handler instance for reuse
slack_handler = SlackErrorHandler()
