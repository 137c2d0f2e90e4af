"""
kube_assistant/agent/error_messages.py

Classification of model-round failures into user-facing messages.
"""

import asyncio
import re
from enum import StrEnum

from pydantic import BaseModel

from kube_assistant.utils.exceptions import CancellationError

CANCELLED_MESSAGE = "Request cancelled."


class ModelErrorCategory(StrEnum):
    """User-facing categories of a failed model round."""
    CANCELLED = "cancelled"
    NETWORK = "network"
    TIMEOUT = "timeout"
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"


class ClassifiedModelError(BaseModel):
    """A classified model error and its fixed user-facing sentence."""
    category: ModelErrorCategory
    message: str


_CATEGORY_MESSAGES: dict[ModelErrorCategory, str] = {
    ModelErrorCategory.CANCELLED: "Operation was cancelled.",
    ModelErrorCategory.NETWORK: "Network connection error. Please check your internet connection and try again.",
    ModelErrorCategory.TIMEOUT: "Request timed out. The operation took too long to complete.",
    ModelErrorCategory.AUTH: "Authentication error. Please check your credentials.",
    ModelErrorCategory.PERMISSION: "Access denied. You may not have permission for this operation.",
    ModelErrorCategory.NOT_FOUND: "The requested resource was not found.",
    ModelErrorCategory.RATE_LIMIT: "Too many requests. Please wait a moment and try again.",
    ModelErrorCategory.SERVER_ERROR: "Server error. The model provider is temporarily unavailable, please try again later.",
    ModelErrorCategory.PARSE_ERROR: "Data format error. The response was not in the expected format.",
    ModelErrorCategory.UNKNOWN: "An unexpected error occurred. Please try again.",
}

_STATUS_CATEGORIES: dict[int, ModelErrorCategory] = {
    401: ModelErrorCategory.AUTH,
    403: ModelErrorCategory.PERMISSION,
    404: ModelErrorCategory.NOT_FOUND,
    408: ModelErrorCategory.TIMEOUT,
    429: ModelErrorCategory.RATE_LIMIT,
}

# checked in order; the first match wins
_MESSAGE_PATTERNS: list[tuple[re.Pattern[str], ModelErrorCategory]] = [
    (re.compile(r"network.*error|fetch.*failed|connection.*(refused|error|reset)", re.I), ModelErrorCategory.NETWORK),
    (re.compile(r"timeout|timed out", re.I), ModelErrorCategory.TIMEOUT),
    (re.compile(r"unauthorized|401", re.I), ModelErrorCategory.AUTH),
    (re.compile(r"forbidden|403", re.I), ModelErrorCategory.PERMISSION),
    (re.compile(r"not found|404", re.I), ModelErrorCategory.NOT_FOUND),
    (re.compile(r"rate limit|429", re.I), ModelErrorCategory.RATE_LIMIT),
    (
        re.compile(r"internal server error|bad gateway|service unavailable|gateway timeout|overloaded|50[0-4]", re.I),
        ModelErrorCategory.SERVER_ERROR,
    ),
    (re.compile(r"parse|json", re.I), ModelErrorCategory.PARSE_ERROR),
    (re.compile(r"abort|cancel", re.I), ModelErrorCategory.CANCELLED),
]


def _category_for_status(status_code: int) -> ModelErrorCategory | None:
    if status_code in _STATUS_CATEGORIES:
        return _STATUS_CATEGORIES[status_code]
    if status_code >= 500:
        return ModelErrorCategory.SERVER_ERROR
    return None


def classify_model_error(error: BaseException) -> ClassifiedModelError:
    """
    Classify an exception raised during a model round.

    The provider's HTTP status code wins when the exception carries one; the
    message is pattern-matched otherwise.
    """
    if isinstance(error, (CancellationError, asyncio.CancelledError)):
        category = ModelErrorCategory.CANCELLED
    else:
        category = None
        status_code = getattr(error, "status_code", None)
        if isinstance(status_code, int):
            category = _category_for_status(status_code)
        if category is None:
            text = str(error) or error.__class__.__name__
            category = next(
                (cat for pattern, cat in _MESSAGE_PATTERNS if pattern.search(text)),
                ModelErrorCategory.UNKNOWN,
            )
    return ClassifiedModelError(category=category, message=_CATEGORY_MESSAGES[category])


def format_model_error(error: BaseException) -> tuple[ModelErrorCategory, str]:
    """Return the category and the assistant-entry text for a failed model round."""
    classified = classify_model_error(error)
    if classified.category == ModelErrorCategory.CANCELLED:
        return classified.category, CANCELLED_MESSAGE
    return classified.category, f"Sorry, there was an error processing your request: {classified.message}"
