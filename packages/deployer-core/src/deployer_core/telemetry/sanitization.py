"""Redact credentials from error messages before they leave the process.

Promotion errors routinely carry presigned ECR layer download URLs and
STS error text. Both are recorded on spans and returned to the invoking
workflow, so they are scrubbed here first.
"""

from __future__ import annotations

import re

_SENSITIVE_KEY_PATTERN = re.compile(
    r"(password|secret_access_key|secret_key|access_key_id|session_token|token|authorization)"
    r"\s*[=:]\s*[^\s,;&]+",
    re.IGNORECASE,
)
_URL_CREDENTIAL_PATTERN = re.compile(r"://[^@/\s]+:[^@/\s]+@")
# Query parameters of SigV4 presigned URLs (S3 / ECR layer downloads)
_PRESIGNED_QUERY_PATTERN = re.compile(
    r"(X-Amz-(?:Signature|Credential|Security-Token))=[^&\s]+",
    re.IGNORECASE,
)


def _redact_key_value(match: re.Match[str]) -> str:
    text = match.group(0)
    separator = "=" if "=" in text else ":"
    key = text.split(separator, 1)[0].rstrip()
    return f"{key}{separator}<REDACTED>"


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """Sanitize an error message by redacting credentials and truncating.

    Args:
        msg: Raw error message.
        max_length: Maximum length of the returned message.

    Returns:
        Sanitized and truncated error message.

    Example:
        >>> sanitize_error_message("GET https://b.s3.amazonaws.com/l?X-Amz-Signature=abc")
        'GET https://b.s3.amazonaws.com/l?X-Amz-Signature=<REDACTED>'
    """
    sanitized = _URL_CREDENTIAL_PATTERN.sub("://<REDACTED>@", msg)
    sanitized = _PRESIGNED_QUERY_PATTERN.sub(r"\1=<REDACTED>", sanitized)
    sanitized = _SENSITIVE_KEY_PATTERN.sub(_redact_key_value, sanitized)
    return sanitized[:max_length]


__all__ = ["sanitize_error_message"]
