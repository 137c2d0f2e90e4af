"""
tests/unit/agent/test_error_messages.py

Unit tests for model-error classification.
"""

import asyncio

import pytest

from kube_assistant.agent.error_messages import (
    CANCELLED_MESSAGE,
    ModelErrorCategory,
    classify_model_error,
    format_model_error,
)
from kube_assistant.utils.exceptions import CancellationError, ModelInvocationError


class TestClassifyModelError:
    """Status codes win over message patterns."""

    @pytest.mark.parametrize(
        ("status_code", "category"),
        [
            (401, ModelErrorCategory.AUTH),
            (403, ModelErrorCategory.PERMISSION),
            (404, ModelErrorCategory.NOT_FOUND),
            (408, ModelErrorCategory.TIMEOUT),
            (429, ModelErrorCategory.RATE_LIMIT),
            (500, ModelErrorCategory.SERVER_ERROR),
            (529, ModelErrorCategory.SERVER_ERROR),
        ],
    )
    def test_status_codes(self, status_code: int, category: ModelErrorCategory) -> None:
        error = ModelInvocationError("provider said no", status_code=status_code)
        assert classify_model_error(error).category == category

    @pytest.mark.parametrize(
        ("message", "category"),
        [
            ("Connection refused", ModelErrorCategory.NETWORK),
            ("Request timed out", ModelErrorCategory.TIMEOUT),
            ("401 Unauthorized", ModelErrorCategory.AUTH),
            ("rate limit exceeded", ModelErrorCategory.RATE_LIMIT),
            ("502 Bad Gateway", ModelErrorCategory.SERVER_ERROR),
            ("Unexpected token < in JSON", ModelErrorCategory.PARSE_ERROR),
            ("something odd", ModelErrorCategory.UNKNOWN),
        ],
    )
    def test_message_patterns(self, message: str, category: ModelErrorCategory) -> None:
        assert classify_model_error(RuntimeError(message)).category == category

    def test_unclassified_status_falls_back_to_message(self) -> None:
        error = ModelInvocationError("Connection reset by peer", status_code=418)
        assert classify_model_error(error).category == ModelErrorCategory.NETWORK

    def test_cancellation(self) -> None:
        assert classify_model_error(CancellationError("stop")).category == ModelErrorCategory.CANCELLED
        assert classify_model_error(asyncio.CancelledError()).category == ModelErrorCategory.CANCELLED


class TestFormatModelError:
    """Assistant-entry text for failed rounds."""

    def test_cancelled_text(self) -> None:
        category, text = format_model_error(CancellationError("stop"))
        assert category == ModelErrorCategory.CANCELLED
        assert text == CANCELLED_MESSAGE

    def test_prefixed_fixed_sentence(self) -> None:
        category, text = format_model_error(ModelInvocationError("secret upstream detail", status_code=401))
        assert category == ModelErrorCategory.AUTH
        assert text == (
            "Sorry, there was an error processing your request: "
            "Authentication error. Please check your credentials."
        )
        assert "secret upstream detail" not in text
