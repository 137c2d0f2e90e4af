"""
tests/unit/utils/test_cli_utils.py

Unit tests for CLI argument helpers.
"""

from argparse import ArgumentParser
from unittest.mock import MagicMock

import pytest

from kube_assistant.config import Config
from kube_assistant.data_models.llms.vendors import AnthropicModel
from kube_assistant.utils.cli_utils import add_model_argument, parse_tool_names, resolve_model


class TestParseToolNames:

    def test_none_keeps_default(self) -> None:
        assert parse_tool_names(None) is None

    def test_split_and_strip(self) -> None:
        assert parse_tool_names(" kubernetes_api_request, trace_dns ,,") == ["kubernetes_api_request", "trace_dns"]

    def test_empty_disables_all(self) -> None:
        assert parse_tool_names("") == []


class TestModelArgument:

    def test_default(self) -> None:
        parser = ArgumentParser()
        add_model_argument(parser)
        assert parser.parse_args([]).model == Config.DEFAULT_MODEL

    def test_resolve_known_model(self) -> None:
        assert resolve_model("claude-opus-4-5", MagicMock()) is AnthropicModel.CLAUDE_OPUS_4_5

    def test_resolve_unknown_model_exits(self) -> None:
        console = MagicMock()
        with pytest.raises(SystemExit) as exc_info:
            resolve_model("llama-3", console)
        assert exc_info.value.code == 1
        assert "Unknown model" in console.print.call_args_list[0].args[0]
