"""
Prompt templates for the code quality review.

Templates are rendered with LangChain's PromptTemplate. Literal braces
in the JSON examples are doubled so they survive f-string formatting.
"""

import json
from typing import Any, Optional

from langchain_core.prompts import PromptTemplate

from .types import ProjectProfile, TestResult

DEPENDENCY_RULES = """\
Dependency versions:
- When you comment on how current a dependency is, use ONLY the versions
  listed under "Package Manifest" and "Registry Data" below.
- A registry value of "unknown" means the latest version could not be
  verified. Say so instead of guessing.
- Never state a "latest" version from your own knowledge."""

REPORT_RULES = """\
**IMPORTANT:**
- Output ONLY the JSON object. No text before or after it, no code fences.
- If you do not include every score listed above as a top-level JSON
  number, your response will be considered invalid.
- The markdown report must start with the summary table of all scores,
  then a concise review, then a detailed section-by-section analysis,
  then a list of suggested fixes, then a conclusion.
- Encode newlines inside the report string as \\n."""

EXECUTABLE_TEMPLATE = PromptTemplate(
    input_variables=[
        "language", "files", "test_results", "rubric",
        "manifest", "registry", "dependency_rules", "report_rules",
    ],
    template="""
You are an expert code reviewer for {language} educational projects.
Analyze the following code for quality, best practices, maintainability
and test results. Consider the test results and, if provided, the rubric.

You must output a JSON object with the following fields:
- "codeQualityScore": number (0-100)
- "testScore": number (0-100, based on the test results below, 0 if none ran)
- "report": string (markdown, see below)

Your markdown report must follow this template:

# Code Review Report: <project-name>

## Summary Table
| Metric        | Score |
|---------------|-------|
| Code Quality  | <score> |
| Test Results  | <score> |

## Repository Overview
<short description>

## Code Quality Assessment
### Strengths
- ...
### Weaknesses
- ...

### Code Quality Score: <score>/100

## Test Results Assessment
- ...
### Test Score: <score>/100

## Detailed Code Analysis
... (section-by-section review) ...

## Suggested Fixes
- ...

## Conclusion
<summary>

{dependency_rules}

{report_rules}

## Code
{files}

## Test Results
{test_results}

## Rubric
{rubric}

## Package Manifest
{manifest}

## Registry Data
{registry}

## Output Format
{{ "codeQualityScore": number, "testScore": number, "report": "..." }}
""",
)

COMPILED_TEMPLATE = PromptTemplate(
    input_variables=[
        "language", "files", "rubric", "manifest", "registry",
        "dependency_rules", "report_rules",
    ],
    template="""
You are an expert {language} code reviewer. The project was not built or
executed; judge it from the source alone.

You must output a JSON object with the following fields:
- "codeQualityScore": number (0-100)
- "codeSmellScore": number (0-100, higher means fewer and milder smells)
- "report": string (markdown, see below)

Your markdown report must follow this template:

# Code Review Report: <project-name>

## Summary Table
| Metric        | Score |
|---------------|-------|
| Code Quality  | <score> |
| Code Smell    | <score> |

## Repository Overview
<short description>

## Code Quality Assessment
### Strengths
- ...
### Weaknesses
- ...

### Code Quality Score: <score>/100
- Correctness (<n>/25), Readability (<n>/25), Maintainability (<n>/25),
  Performance (<n>/25)

## Code Smell Assessment
### Identified Code Smells
- ...

### Code Smell Score: <score>/100

## Detailed Code Analysis
... (section-by-section review) ...

## Suggested Fixes
- ...

## Conclusion
<summary>

{dependency_rules}

{report_rules}

## Code
{files}

## Rubric
{rubric}

## Package Manifest
{manifest}

## Registry Data
{registry}

## Output Format
{{ "codeQualityScore": number, "codeSmellScore": number, "report": "..." }}
""",
)


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, sort_keys=True, default=str)


def format_rubric(rubric: Optional[Any]) -> str:
    if rubric is None or rubric == "" or rubric == {}:
        return "Default grading criteria"
    if isinstance(rubric, str):
        return rubric
    return _dump(rubric)


def format_test_results(test_result: Optional[TestResult]) -> str:
    if test_result is None:
        return "Tests were not run."
    return _dump({
        "passed": test_result.passed,
        "failed": test_result.failed,
        "total": test_result.total,
        "details": test_result.details,
    })


def build_review_prompt(
    profile: ProjectProfile,
    files: str,
    test_result: Optional[TestResult] = None,
    rubric: Optional[Any] = None,
    manifest: Optional[dict[str, str]] = None,
    registry_data: Optional[dict[str, str]] = None,
) -> str:
    """
    Render the review prompt for a project profile.

    The output depends only on the arguments, so identical inputs
    always produce the identical prompt.
    """
    common = dict(
        language=profile.language_label,
        files=files or "(no matching source files were found)",
        rubric=format_rubric(rubric),
        manifest=_dump(manifest or {}),
        registry=_dump(registry_data or {}),
        dependency_rules=DEPENDENCY_RULES,
        report_rules=REPORT_RULES,
    )

    if profile.executable:
        return EXECUTABLE_TEMPLATE.format(
            test_results=format_test_results(test_result),
            **common,
        )
    return COMPILED_TEMPLATE.format(**common)
