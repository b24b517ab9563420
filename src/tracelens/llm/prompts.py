"""Prompt templates for test failure analysis."""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import TYPE_CHECKING

from tracelens.core.models import AnalysisMode

if TYPE_CHECKING:
    from tracelens.core.models import FailureInfo

ANALYSIS_REQUEST_HEADER = "### Analysis Request ###"
USER_QUERY_STACK_TRACE_LIMIT = 500

# Metadata lines added by the failure collector that carry no diagnostic value
_STACK_TRACE_NOISE = (
    "=== SOURCE INFORMATION ===",
    "=== ERROR MESSAGE ===",
    "=== PRIMARY OUTPUT ===",
    "Primary source: stack trace",
    "Test name:",
    "Test location:",
    "Step failed",
)

_BLANK_RUN = re.compile(r"\n{3,}")


def clean_stack_trace(stack_trace: str) -> str:
    """Strip collector metadata lines from a stack trace."""
    lines = [
        line
        for line in stack_trace.splitlines()
        if not any(line.strip().startswith(noise) for noise in _STACK_TRACE_NOISE)
    ]
    return "\n".join(lines).strip()


def estimate_token_count(prompt: str) -> int:
    """Rough token estimate (four characters per token)."""
    return len(prompt) // 4


def normalize_prompt(prompt: str) -> str:
    """Trim trailing whitespace and collapse runs of blank lines."""
    lines = [line.rstrip() for line in prompt.strip().splitlines()]
    return _BLANK_RUN.sub("\n\n", "\n".join(lines))


def insert_document_context(prompt: str, document_context: str) -> str:
    """
    Merge retrieved documentation into a prompt.

    The block is placed just before the analysis request so the model reads
    it as evidence; prompts without that section get it appended.

    Args:
        prompt: Prompt built from the failure alone.
        document_context: Rendered documentation block (may be empty).

    Returns:
        Prompt including the documentation block.
    """
    if not document_context or not document_context.strip():
        return prompt

    block = document_context.rstrip() + "\n\n"
    index = prompt.find(ANALYSIS_REQUEST_HEADER)
    if index == -1:
        return prompt.rstrip() + "\n\n" + block
    return prompt[:index] + block + prompt[index:]


def _instruction_section(mode: AnalysisMode) -> str:
    if mode is AnalysisMode.OVERVIEW:
        return (
            "### Instruction ###\n"
            "You are an expert test automation engineer. "
            "Analyze this test failure and provide a concise summary."
        )
    return """### Instruction ###
You are an expert test automation engineer with deep expertise in Cucumber, Selenium and test failure analysis. Analyze this test failure systematically and provide actionable guidance.

**Your Task:**
1. Analyze the failure evidence step-by-step
2. Classify the failure type and root cause
3. Provide specific, actionable recommendations
4. State whether this is a product defect, automation issue, data problem or environment issue

**Analysis Approach:**
- Examine all provided evidence
- Relate the Gherkin scenario, step definition and error details to each other
- Base your conclusions on the technical evidence provided
- Give confidence levels for your assessments"""


def _failure_section(failure: FailureInfo) -> str:
    lines = ["### Test Failure Context ###", f"**Test Name:** {failure.scenario_name}"]
    if failure.failed_step_text:
        lines.append(f"**Failed Step:** {failure.failed_step_text}")
    return "\n".join(lines)


def _error_section(failure: FailureInfo) -> str:
    lines = ["### Error Details ###"]
    if failure.error_message:
        lines.append(f"**Error:** {failure.error_message}")
    if failure.has_expected_actual:
        lines.append(f"**Expected Value:** {failure.expected_value}")
        lines.append(f"**Actual Value:** {failure.actual_value}")
    if failure.stack_trace and failure.stack_trace.strip():
        lines.append(f"**Stack Trace:**\n```\n{clean_stack_trace(failure.stack_trace)}\n```")
    if len(lines) == 1:
        lines.append("No error details were captured.")
    return "\n".join(lines)


def _gherkin_section(failure: FailureInfo) -> str | None:
    scenario = failure.gherkin_scenario_info
    if scenario is None or not scenario.steps:
        return None

    lines = ["### Gherkin Scenario ###"]
    if scenario.feature_name:
        lines.append(f"**Feature:** {scenario.feature_name}")
    if scenario.scenario_name:
        lines.append(f"**Scenario:** {scenario.scenario_name}")
    if scenario.tags:
        lines.append(f"**Tags:** {', '.join(scenario.tags)}")
    if scenario.background_steps:
        background = "\n".join(scenario.background_steps)
        lines.append(f"**Background:**\n```gherkin\n{background}\n```")
    if scenario.full_scenario_text and scenario.full_scenario_text.strip():
        scenario_text = scenario.full_scenario_text.rstrip()
    else:
        scenario_text = "\n".join(scenario.steps)
    lines.append(f"**Scenario Steps:**\n```gherkin\n{scenario_text}\n```")
    return "\n".join(lines)


def _step_definition_section(failure: FailureInfo) -> str | None:
    step = failure.step_definition_info
    if step is None or not step.method_text:
        return None

    lines = ["### Step Definition ###"]
    if step.class_name:
        lines.append(f"**Class:** {step.class_name}")
    if step.method_name:
        lines.append(f"**Method:** {step.method_name}")
    if step.step_pattern:
        lines.append(f"**Step Pattern:** {step.step_pattern}")
    if step.parameters:
        lines.append(f"**Parameters:** {', '.join(step.parameters)}")
    lines.append(f"**Implementation:**\n```\n{step.method_text.rstrip()}\n```")
    return "\n".join(lines)


def _code_context_section(failure: FailureInfo) -> str:
    lines = ["### Code Context ###"]
    if failure.source_file_path:
        # File name only, never the absolute path
        lines.append(f"**File:** {PurePath(failure.source_file_path).name}")
    if failure.line_number > 0:
        lines.append(f"**Line:** {failure.line_number}")
    if len(lines) == 1:
        lines.append("No source location available.")
    return "\n".join(lines)


def _analysis_request_section(mode: AnalysisMode) -> str:
    if mode is AnalysisMode.OVERVIEW:
        return f"""{ANALYSIS_REQUEST_HEADER}
Provide your analysis in this exact format:

### Failure Analysis
- **Failure Type:** [Assertion/Exception/Configuration/Environment/Other]
- **Likely Cause:** [Product Defect/Automation Issue/Data Issue/Environment Issue/Test Design Issue]
- **Confidence:** [High/Medium/Low]

### Technical Details
- **Observed vs. Expected:** [What the test tried to do and what happened instead]

### Recommended Actions
- **Immediate Steps:** [Specific, actionable steps to resolve this issue]"""
    return f"""{ANALYSIS_REQUEST_HEADER}
Provide your analysis in this exact format. Be specific and actionable:

## Failure Analysis
- **Failure Type:** [Assertion/Exception/Configuration/Environment/Other]
- **Likely Cause:** [Product Defect/Automation Issue/Data Issue/Environment Issue/Test Design Issue]
- **Confidence:** [High/Medium/Low]

## Technical Details
- **What Failed:** [What the test was trying to do and what actually happened]
- **Why It Failed:** [Technical explanation referencing the stack trace, step definition or scenario]

## Recommended Actions
- **Immediate Steps:** [Concrete steps to resolve this issue]
- **Investigation Areas:** [What to check next to confirm the root cause]
- **Test Improvements:** [How to make this test more robust]

**Important:** Base your analysis on the evidence provided. If you need more information, say what additional context would help."""


def build_initial_prompt(
    failure: FailureInfo,
    mode: AnalysisMode = AnalysisMode.FULL,
    custom_instructions: str | None = None,
) -> str:
    """
    Build the first analysis prompt for a failure.

    Args:
        failure: Failure captured from the test run.
        mode: OVERVIEW for a short summary, FULL for a detailed analysis.
        custom_instructions: Optional user rules appended to the instruction.

    Returns:
        Prompt whose last section is the analysis request.
    """
    sections = [_instruction_section(mode)]
    if custom_instructions and custom_instructions.strip():
        sections.append(f"**Custom Instructions:**\n{custom_instructions.strip()}")
    sections.append(_failure_section(failure))
    sections.append(_error_section(failure))

    gherkin = _gherkin_section(failure)
    if gherkin:
        sections.append(gherkin)
    step_definition = _step_definition_section(failure)
    if step_definition:
        sections.append(step_definition)

    sections.append(_code_context_section(failure))
    sections.append(_analysis_request_section(mode))
    return "\n\n".join(sections) + "\n"


def build_user_query_prompt(
    failure: FailureInfo | None,
    context_block: str,
    query: str,
    custom_instructions: str | None = None,
) -> str:
    """
    Build the prompt for a follow-up question in the chat.

    Args:
        failure: Failure of the current run, if still available.
        context_block: Output of ConversationContext.build_context_string.
        query: The user's current question.
        custom_instructions: Optional user rules.

    Returns:
        Prompt string.
    """
    sections = [
        "### Role ###\n"
        "You are an expert test automation engineer helping a developer "
        "investigate a failed test.",
        "### Task ###\n"
        "Answer the developer's current question using the failure details "
        "and the recent conversation below.",
    ]

    if failure is not None:
        lines = ["### Test Failure Context ###", f"**Test Name:** {failure.scenario_name}"]
        if failure.failed_step_text:
            lines.append(f"**Failed Step:** {failure.failed_step_text}")
        if failure.error_message:
            lines.append(f"**Error:** {failure.error_message}")
        if failure.stack_trace and failure.stack_trace.strip():
            trace = clean_stack_trace(failure.stack_trace)
            if len(trace) > USER_QUERY_STACK_TRACE_LIMIT:
                trace = trace[:USER_QUERY_STACK_TRACE_LIMIT] + "..."
            lines.append(f"**Stack Trace:**\n```\n{trace}\n```")
        sections.append("\n".join(lines))

    if context_block and context_block.strip():
        sections.append(f"### Recent Conversation ###\n{context_block.strip()}")

    sections.append(f"### Current Query ###\n{query.strip()}")
    sections.append(
        "### Response Guidelines ###\n"
        "- Answer the question directly and concisely\n"
        "- Refer to specific evidence from the failure where possible\n"
        "- Suggest concrete next steps when the question calls for them"
    )

    if custom_instructions and custom_instructions.strip():
        sections.append(f"### Custom Instructions ###\n{custom_instructions.strip()}")

    return "\n\n".join(sections) + "\n"
