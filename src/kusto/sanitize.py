"""
PII sanitization for query results.

Redacts or masks personally identifiable information in every string leaf
of a result payload. All functions are pure and idempotent.
"""

import re
from typing import Any


EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
IPV4_PATTERN = re.compile(r'\b(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})\b')
GUID_PATTERN = re.compile(
    r'\b([0-9a-f]{8})-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b',
    re.IGNORECASE
)
PHONE_PATTERN = re.compile(r'(?<![\w.])(?:\+?1[-.]?)?\(?[0-9]{3}\)?[-.]?[0-9]{3}[-.]?[0-9]{4}\b')
URL_CREDENTIALS_PATTERN = re.compile(r'\b(https?://)([^:/\s@]+):([^@\s]+)@')


def redact_emails(text: str) -> str:
    return EMAIL_PATTERN.sub('[EMAIL_REDACTED]', text)


def mask_ips(text: str) -> str:
    """Keep the first two octets of IPv4 addresses."""
    return IPV4_PATTERN.sub(r'\1.\2.xxx.xxx', text)


def mask_guids(text: str) -> str:
    """Keep the first 8 characters of GUIDs."""
    return GUID_PATTERN.sub(r'\1-xxxx-xxxx-xxxx-xxxxxxxxxxxx', text)


def redact_phones(text: str) -> str:
    return PHONE_PATTERN.sub('[PHONE_REDACTED]', text)


def redact_url_credentials(text: str) -> str:
    return URL_CREDENTIALS_PATTERN.sub(r'\1[USER_REDACTED]:[PASS_REDACTED]@', text)


def sanitize_text(text: str) -> str:
    """Apply every redaction rule to a single string."""
    if not text:
        return text

    # Credentials first: the e-mail rule would otherwise eat "user:pass@host"
    text = redact_url_credentials(text)
    text = redact_emails(text)
    text = mask_guids(text)
    text = mask_ips(text)
    text = redact_phones(text)
    return text


def sanitize_object(obj: Any) -> Any:
    """Recursively sanitize all strings in nested dicts, lists and tuples."""
    if isinstance(obj, str):
        return sanitize_text(obj)
    if isinstance(obj, dict):
        return {key: sanitize_object(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return type(obj)(sanitize_object(item) for item in obj)
    return obj
