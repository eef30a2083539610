"""Log filters for PII masking and correlation ID injection."""

import logging
import re

EMAIL = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")
PHONE = re.compile(r"\+?\d{3}[-.\s]?\d{3}[-.\s]?\d{4}")
PUSH_TOKEN = re.compile(r"Expo(?:nent)?PushToken\[[^\]]*\]")


def mask_pii(text: str) -> str:
    if "PushToken[" in text:
        text = PUSH_TOKEN.sub("[PUSH_TOKEN]", text)
    if "@" in text:
        text = EMAIL.sub("[EMAIL]", text)
    return PHONE.sub("[PHONE]", text)


class PIIFilter(logging.Filter):
    """Masks e-mails, phone numbers and Expo push tokens.

    Both the format string and string arguments are masked, since captain
    tokens usually arrive as %s arguments.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = mask_pii(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(mask_pii(a) if isinstance(a, str) else a for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {
                k: mask_pii(v) if isinstance(v, str) else v for k, v in record.args.items()
            }
        return True


class DefaultCorrelationFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True
