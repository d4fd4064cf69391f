#!/usr/bin/env python3
"""
Tests for the command-line client, with the HTTP layer mocked out.
"""

from unittest.mock import MagicMock, patch

import requests
from click.testing import CliRunner

import cli_search
from conftest import make_story


def api_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def story_json(story_id, title, **kwargs):
    return make_story(story_id, title, **kwargs).model_dump(mode='json')


class TestHelpers:

    def test_format_count(self):
        assert cli_search.format_count(999) == "999"
        assert cli_search.format_count(1500) == "1.5K"
        assert cli_search.format_count(2500000) == "2.5M"

    def test_truncate_content(self):
        assert cli_search.truncate_content("short") == "short"
        assert cli_search.truncate_content("word " * 40, 50).endswith("...")

    def test_format_timestamp_invalid(self):
        assert cli_search.format_timestamp("") == "Unknown time"
        assert cli_search.format_timestamp(None) == "Unknown time"


class TestCommands:

    def test_search(self):
        payload = {
            "items": [{"item": story_json("s1", "Sunset over Santorini"), "relevance_score": 6.0,
                       "matched_by": ["prefix", "token", "tag"]}],
            "total": 1, "has_more": False, "search_time_ms": 3,
            "degraded": False, "failed_strategies": []
        }
        with patch("cli_search.requests.request", return_value=api_response(payload)) as mock_request:
            result = CliRunner().invoke(cli_search.cli, ["search", "sunset", "--size", "3"])

        assert result.exit_code == 0
        assert "Sunset over Santorini" in result.output
        assert "Found 1 stories" in result.output
        args, kwargs = mock_request.call_args
        assert args == ("POST", "http://localhost:8000/search")
        assert kwargs["json"] == {"query": "sunset", "limit": 3, "sort_by": "relevance"}

    def test_search_without_query_fails(self):
        result = CliRunner().invoke(cli_search.cli, ["search"])
        assert result.exit_code == 1

    def test_nearby(self):
        payload = [{"item": story_json("s5", "Fira evening walk"), "distance_km": 7.1}]
        with patch("cli_search.requests.request", return_value=api_response(payload)) as mock_request:
            result = CliRunner().invoke(cli_search.cli, ["nearby", "36.46", "25.37", "--radius", "20"])

        assert result.exit_code == 0
        assert "Fira evening walk" in result.output
        assert "7.10 km" in result.output
        assert mock_request.call_args.kwargs["params"]["radius_km"] == 20.0

    def test_suggest(self):
        with patch("cli_search.requests.request", return_value=api_response(["#backpacking", "Bangkok"])):
            result = CliRunner().invoke(cli_search.cli, ["suggest", "ba"])
        assert result.exit_code == 0
        assert "Bangkok" in result.output

    def test_tags(self):
        with patch("cli_search.requests.request", return_value=api_response(["greece", "sunset"])):
            result = CliRunner().invoke(cli_search.cli, ["tags"])
        assert "#greece #sunset" in result.output

    def test_api_unreachable(self):
        error = requests.exceptions.ConnectionError("refused")
        with patch("cli_search.requests.request", side_effect=error):
            result = CliRunner().invoke(cli_search.cli, ["--api-base", "http://nowhere:1", "trending"])
        assert result.exit_code == 0
        assert "Cannot connect to API at http://nowhere:1" in result.output


class TestHighlighting:

    def test_query_terms_styled(self):
        line = cli_search.highlighted("Sunset over Santorini", "santorini SUNSET", "white")
        marked = [(span.start, span.end) for span in line.spans if span.style == cli_search.MATCH_STYLE]
        assert marked == [(0, 6), (12, 21)]
        assert line.plain == "Sunset over Santorini"

    def test_no_query_no_marks(self):
        line = cli_search.highlighted("Sunset over Santorini", None, "white")
        assert line.spans == []

    def test_search_output_keeps_text(self):
        payload = {
            "items": [{"item": story_json("s1", "Sunset over Santorini"), "relevance_score": 6.0,
                       "matched_by": ["prefix"]}],
            "total": 1, "has_more": False, "search_time_ms": 3,
            "degraded": False, "failed_strategies": []
        }
        with patch("cli_search.requests.request", return_value=api_response(payload)), \
             patch("cli_search.highlight_spans", wraps=cli_search.highlight_spans) as spans:
            result = CliRunner().invoke(cli_search.cli, ["search", "santorini"])

        assert result.exit_code == 0
        assert "Sunset over Santorini" in result.output
        assert spans.call_args_list[0].args == ("Sunset over Santorini", "santorini")
