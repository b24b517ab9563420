"""Tests for prompt building."""

from __future__ import annotations

from tests.factories import make_failure_info
from tracelens.core.models import AnalysisMode
from tracelens.llm.prompts import (
    ANALYSIS_REQUEST_HEADER,
    build_initial_prompt,
    build_user_query_prompt,
    clean_stack_trace,
    estimate_token_count,
    insert_document_context,
    normalize_prompt,
)


class TestInitialPrompt:
    """Tests for build_initial_prompt."""

    def test_sections_in_order(self):
        prompt = build_initial_prompt(
            make_failure_info(with_gherkin=True, with_step_definition=True)
        )

        headers = [
            "### Instruction ###",
            "### Test Failure Context ###",
            "### Error Details ###",
            "### Gherkin Scenario ###",
            "### Step Definition ###",
            "### Code Context ###",
            ANALYSIS_REQUEST_HEADER,
        ]
        positions = [prompt.index(header) for header in headers]
        assert positions == sorted(positions)

    def test_optional_sections_omitted(self):
        prompt = build_initial_prompt(make_failure_info())

        assert "### Gherkin Scenario ###" not in prompt
        assert "### Step Definition ###" not in prompt

    def test_overview_and_full_differ(self):
        failure = make_failure_info()

        overview = build_initial_prompt(failure, AnalysisMode.OVERVIEW)
        full = build_initial_prompt(failure, AnalysisMode.FULL)

        assert "concise summary" in overview
        assert "## Recommended Actions" in full
        assert len(full) > len(overview)

    def test_code_context_shows_file_name_only(self):
        prompt = build_initial_prompt(
            make_failure_info(source_file_path="/home/ci/secret/LoginSteps.java", line_number=7)
        )

        assert "**File:** LoginSteps.java" in prompt
        assert "/home/ci/secret" not in prompt
        assert "**Line:** 7" in prompt

    def test_expected_and_actual_values(self):
        prompt = build_initial_prompt(make_failure_info(expected_value="200", actual_value="500"))

        assert "**Expected Value:** 200" in prompt
        assert "**Actual Value:** 500" in prompt

    def test_custom_instructions_included(self):
        prompt = build_initial_prompt(
            make_failure_info(), custom_instructions="  Answer in German.  "
        )

        assert "**Custom Instructions:**\nAnswer in German." in prompt

    def test_no_error_details(self):
        prompt = build_initial_prompt(make_failure_info(error_message=None, stack_trace=None))

        assert "No error details were captured." in prompt


class TestUserQueryPrompt:
    """Tests for build_user_query_prompt."""

    def test_contains_context_and_query(self):
        prompt = build_user_query_prompt(
            make_failure_info(scenario_name="Checkout"),
            "### Recent Conversation Context ###\nUser: first\n",
            "  second  ",
        )

        assert "**Test Name:** Checkout" in prompt
        assert "User: first" in prompt
        assert prompt.index("### Recent Conversation ###") < prompt.index("### Current Query ###")
        assert "### Current Query ###\nsecond\n" in prompt

    def test_long_stack_trace_is_truncated(self):
        prompt = build_user_query_prompt(
            make_failure_info(stack_trace="x" * 800), "", "why?"
        )

        assert "x" * 500 + "..." in prompt
        assert "x" * 501 not in prompt

    def test_without_failure(self):
        prompt = build_user_query_prompt(None, "", "why?")

        assert "### Test Failure Context ###" not in prompt
        assert "### Recent Conversation ###" not in prompt


class TestPromptHelpers:
    """Tests for prompt utilities."""

    def test_insert_document_context_before_analysis_request(self):
        prompt = f"intro\n\n{ANALYSIS_REQUEST_HEADER}\nanswer"

        merged = insert_document_context(prompt, "### Relevant Documentation ###\ndoc\n")

        assert merged.index("doc") < merged.index(ANALYSIS_REQUEST_HEADER)

    def test_insert_document_context_appends_without_request_section(self):
        merged = insert_document_context("question", "docs")

        assert merged == "question\n\ndocs\n\n"

    def test_insert_empty_context_is_noop(self):
        assert insert_document_context("prompt", "  ") == "prompt"

    def test_clean_stack_trace_removes_collector_metadata(self):
        trace = "=== ERROR MESSAGE ===\nTest name: Login\nAssertionError\n  at Steps.java:3"

        assert clean_stack_trace(trace) == "AssertionError\n  at Steps.java:3"

    def test_estimate_token_count(self):
        assert estimate_token_count("x" * 40) == 10

    def test_normalize_prompt(self):
        assert normalize_prompt("  a  \n\n\n\nb  ") == "a\n\nb"
