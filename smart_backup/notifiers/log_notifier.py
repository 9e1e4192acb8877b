"""Default notifier and notifier selection."""

import logging
from typing import Any, Mapping

from .email_notifier import EmailNotifier

logger = logging.getLogger(__name__)


class LogNotifier:
    """Writes notifications to the log."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def notify(self, title: str, body: str) -> bool:
        self.logger.info(f"{title}: {body}")
        return True


def build_notifier(settings: Mapping[str, Any]):
    """Pick a notifier for the given settings.

    An ``email`` section that fails validation is logged and ignored.

    Returns:
        EmailNotifier when a valid ``email`` section is configured, else LogNotifier.
    """
    email_config = settings.get('email')
    if not email_config:
        return LogNotifier()

    if not isinstance(email_config, Mapping):
        logger.warning("Email configuration must be a mapping, using log notifications")
        return LogNotifier()

    try:
        notifier = EmailNotifier.from_config(email_config)
        errors = notifier.validate_configuration()
    except (TypeError, ValueError) as e:
        logger.warning(f"Invalid email configuration ({e}), using log notifications")
        return LogNotifier()

    if errors:
        logger.warning(f"Invalid email configuration ({'; '.join(errors)}), using log notifications")
        return LogNotifier()
    return notifier
