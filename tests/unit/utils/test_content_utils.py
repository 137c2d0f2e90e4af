"""
tests/unit/utils/test_content_utils.py

Unit tests for tool output sanitizing, truncation and suggestion parsing.
"""

from typing import Any

import pytest

from kube_assistant.utils.content_utils import (
    TRUNCATION_MARKER,
    markdown_to_plain_text,
    parse_json_object,
    parse_suggestions,
    sanitize,
    truncate_content,
)


class TestSanitize:

    def test_empty(self) -> None:
        assert sanitize("") == ""

    def test_json_is_compacted(self) -> None:
        assert sanitize('{\n  "kind" :  "PodList",\n  "items": [ ]\n}') == '{"kind": "PodList", "items": []}'

    def test_json_keeps_unicode(self) -> None:
        assert sanitize('["caf\\u00e9"]') == '["café"]'

    def test_broken_json_is_kept(self) -> None:
        assert sanitize("{oops}") == "{oops}"

    def test_html_is_stripped(self) -> None:
        html = "<html><head><style>p {}</style></head><body><p>Hello</p><script>run()</script> &amp; bye</body></html>"
        assert sanitize(html) == "Hello & bye"

    def test_plain_text_with_angle_brackets(self) -> None:
        assert sanitize("replicas < 3 and > 1") == "replicas < 3 and > 1"


class TestTruncateContent:

    def test_fits(self) -> None:
        assert truncate_content("hello", 5) == "hello"

    def test_cut(self) -> None:
        assert truncate_content("hello world", 5) == "hello" + TRUNCATION_MARKER

    def test_never_splits_a_character(self) -> None:
        assert truncate_content("héllo", 2) == "h" + TRUNCATION_MARKER

    def test_zero_budget(self) -> None:
        assert truncate_content("hello", 0) == TRUNCATION_MARKER


class TestParseJsonObject:

    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            ('{"a": 1}', {"a": 1}),
            ("[1, 2]", None),
            ("not json", None),
            (None, None),
        ],
    )
    def test_parse(self, content: Any, expected: Any) -> None:
        assert parse_json_object(content) == expected


class TestParseSuggestions:
    """Splitting the follow-up suggestions line off an assistant reply."""

    def test_trailing_line(self) -> None:
        content = "All 3 pods are running.\n\nSUGGESTIONS: [Show pod logs] | [List **services**] | [Check events]"

        clean, suggestions = parse_suggestions(content)

        assert clean == "All 3 pods are running."
        assert suggestions == ["Show pod logs", "List services", "Check events"]

    def test_without_suggestions(self) -> None:
        assert parse_suggestions("No suggestions here.") == ("No suggestions here.", [])

    def test_at_most_three_and_no_empty_items(self) -> None:
        _, suggestions = parse_suggestions("SUGGESTIONS: [a] | | [b] | [c] | [d]")
        assert suggestions == ["a", "b", "c"]

    def test_line_in_the_middle_is_removed(self) -> None:
        clean, suggestions = parse_suggestions("Intro\nsuggestions: [Describe web-1]\nOutro")
        assert clean == "Intro\nOutro"
        assert suggestions == ["Describe web-1"]

    @pytest.mark.parametrize(
        ("markdown", "expected"),
        [
            ("[Show `kube-system` pods]", "Show kube-system pods"),
            ("- Scale ~~web~~ api", "Scale web api"),
            ("See [the docs](https://kubernetes.io)", "See the docs"),
            ("  many   spaces  ", "many spaces"),
        ],
    )
    def test_markdown_to_plain_text(self, markdown: str, expected: str) -> None:
        assert markdown_to_plain_text(markdown) == expected
