"""Helpers that render a FailureInfo into short text blocks."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tracelens.core.models import FailureInfo

SUMMARY_ERROR_LIMIT = 100


def primary_error_message(failure: FailureInfo) -> str | None:
    """Return the most specific error text available for a failure."""
    if failure.error_message and failure.error_message.strip():
        return failure.error_message.strip()
    if failure.stack_trace and failure.stack_trace.strip():
        return failure.stack_trace.strip().splitlines()[0]
    return None


def build_failure_context(failure: FailureInfo) -> str:
    """Build the multi-line failure context stored in the conversation.

    Expected/actual lines are only emitted when both values were captured.
    """
    lines = [f"Test Name: {failure.scenario_name}"]
    if failure.failed_step_text:
        lines.append(f"Failed Step: {failure.failed_step_text}")
    error = primary_error_message(failure)
    if error:
        lines.append(f"Error: {error}")
    if failure.has_expected_actual:
        lines.append(f"Expected: {failure.expected_value}")
        lines.append(f"Actual: {failure.actual_value}")
    return "\n".join(lines)


def build_failure_summary(failure: FailureInfo) -> str:
    """One-line summary: scenario name and a truncated error."""
    error = primary_error_message(failure)
    if not error:
        return failure.scenario_name
    if len(error) > SUMMARY_ERROR_LIMIT:
        error = error[: SUMMARY_ERROR_LIMIT - 3] + "..."
    return f"{failure.scenario_name}: {error}"


def build_retrieval_query(failure: FailureInfo) -> str:
    """Text used to search the knowledge base for a failure."""
    parts = [failure.scenario_name]
    if failure.failed_step_text:
        parts.append(failure.failed_step_text)
    error = primary_error_message(failure)
    if error:
        parts.append(error)
    return "\n".join(parts)
