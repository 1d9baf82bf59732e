"""
Mail provider error classification

Provider error bodies are untyped JSON. They are reduced to a small tagged
union with a fixed extraction order:

    1. body["error"]["message"]
    2. body["message"]
    3. the raw text of the failure
"""

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from .protocols import MailProviderError


@dataclass(frozen=True)
class StructuredError:
    """Provider returned a JSON error with a message field"""
    message: str
    status_code: Optional[int] = None

    @property
    def display(self) -> str:
        return self.message


@dataclass(frozen=True)
class RawError:
    """Anything else: transport failures, HTML error pages, unexpected shapes"""
    text: str
    status_code: Optional[int] = None

    @property
    def display(self) -> str:
        return self.text


ProviderError = Union[StructuredError, RawError]


def _as_mapping(body: Any) -> Optional[dict]:
    if isinstance(body, dict):
        return body
    if isinstance(body, (str, bytes)):
        try:
            parsed = json.loads(body)
        except (ValueError, TypeError):
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def _message_from_body(body: Any) -> Optional[str]:
    mapping = _as_mapping(body)
    if mapping is None:
        return None

    error = mapping.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message.strip():
            return message

    message = mapping.get("message")
    if isinstance(message, str) and message.strip():
        return message

    return None


def classify_provider_error(exc: BaseException) -> ProviderError:
    """Reduce an exception raised by a provider call to a ProviderError"""
    status_code = getattr(exc, "status_code", None)
    body = exc.body if isinstance(exc, MailProviderError) else None

    message = _message_from_body(body)
    if message is not None:
        return StructuredError(message=message, status_code=status_code)

    text = str(exc) or exc.__class__.__name__
    return RawError(text=text, status_code=status_code)


def describe_failure(exc: BaseException) -> str:
    """Full diagnostic text for logs and failure records"""
    parts = [f"{exc.__class__.__name__}: {exc}"]
    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        parts.append(f"status={status_code}")
    body = getattr(exc, "body", None)
    if body is not None:
        if isinstance(body, (dict, list)):
            parts.append(f"body={json.dumps(body, default=str)}")
        else:
            parts.append(f"body={body}")
    return " | ".join(parts)


__all__ = [
    "StructuredError",
    "RawError",
    "ProviderError",
    "classify_provider_error",
    "describe_failure",
]
