"""
Quality reviewer: LLM code review with resilient response parsing.

The model is the least reliable part of the pipeline, so review()
never raises. Network errors, timeouts and unparseable answers all
produce a zero-score QualityAnalysis whose report says what went wrong.

Parsing order:
    1. the whole response as JSON
    2. the largest balanced {...} block inside the response
    3. zero scores with the raw response in the report
Missing or non-numeric scores in a parsed object are rescued from the
report's own summary text. Scores that still default to 0 mark the
analysis degraded and are named at the top of the report.
"""

import asyncio
import json
import logging
import re
import time
from typing import Any, Optional

from langchain_openai import ChatOpenAI

from .prompts import build_review_prompt
from .scoring import clamp_score
from .types import (
    ProjectType,
    QualityAnalysis,
    ReviewerConfig,
    TestResult,
    get_profile,
)

logger = logging.getLogger(__name__)

NO_ANALYSIS = "No analysis provided"
MAX_RAW_IN_REPORT = 4000

# Report text patterns: "Code Quality Score: 85/100" or "| Code Quality | 85 |"
_SCORE_PATTERNS = {
    "code_quality_score": (
        re.compile(r"Code Quality Score:?\**\s*(\d{1,3}(?:\.\d+)?)\s*/\s*100", re.I),
        re.compile(r"\|\s*Code Quality\s*\|\s*(\d{1,3}(?:\.\d+)?)\s*\|", re.I),
    ),
    "code_smell_score": (
        re.compile(r"Code Smell Score:?\**\s*(\d{1,3}(?:\.\d+)?)\s*/\s*100", re.I),
        re.compile(r"\|\s*Code Smell\s*\|\s*(\d{1,3}(?:\.\d+)?)\s*\|", re.I),
    ),
    "test_score": (
        re.compile(r"Test Score:?\**\s*(\d{1,3}(?:\.\d+)?)\s*/\s*100", re.I),
        re.compile(r"\|\s*Test(?: Results)?\s*\|\s*(\d{1,3}(?:\.\d+)?)\s*\|", re.I),
    ),
}

# JSON keys the model may use for each score
_SCORE_KEYS = {
    "code_quality_score": ("codeQualityScore", "code_quality_score", "score"),
    "code_smell_score": ("codeSmellScore", "code_smell_score"),
    "test_score": ("testScore", "test_score"),
}

_SCORE_LABELS = {
    "code_quality_score": "a code quality score",
    "code_smell_score": "a code smell score",
    "test_score": "a test score",
}


def _balanced_objects(text: str) -> list[str]:
    """
    Return every balanced {...} span at any nesting depth.

    Unmatched opening braces stay on the stack without hiding the
    objects that follow them. Quotes are only tracked inside a span.
    """
    spans = []
    starts: list[int] = []
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and starts:
            in_string = True
        elif ch == "{":
            starts.append(i)
        elif ch == "}" and starts:
            spans.append(text[starts.pop():i + 1])

    return spans


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """
    Recover a JSON object embedded in free text.

    Tries balanced {...} blocks from largest to smallest and returns
    the first that parses to a dict, or None.
    """
    for candidate in sorted(_balanced_objects(text or ""), key=len, reverse=True):
        try:
            parsed = json.loads(candidate, strict=False)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def load_response_json(content: str) -> Optional[dict[str, Any]]:
    """Parse a model response as JSON, falling back to embedded objects."""
    try:
        parsed = json.loads(content, strict=False)
    except (TypeError, ValueError):
        parsed = None
    if isinstance(parsed, dict):
        return parsed
    return extract_json_object(content)


def _as_score(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return clamp_score(value)
    if isinstance(value, str):
        try:
            return clamp_score(float(value.strip().removesuffix("/100")))
        except ValueError:
            return None
    return None


def extract_scores_from_report(report: str) -> dict[str, float]:
    """
    Pull scores out of a markdown report's summary text or table.

    Returns:
        dict: Only the scores that were found, clamped to [0, 100]
    """
    found = {}
    for name, patterns in _SCORE_PATTERNS.items():
        for pattern in patterns:
            match = pattern.search(report or "")
            if match:
                found[name] = clamp_score(float(match.group(1)))
                break
    return found


def failed_analysis(
    reason: str,
    project_type: ProjectType,
    raw: Optional[str] = None,
) -> QualityAnalysis:
    """Zero-score analysis explaining why the review is missing."""
    report = f"AI analysis failed: {reason}"
    if raw:
        report += f"\n\nRaw model output:\n\n{raw[:MAX_RAW_IN_REPORT]}"
    executable = get_profile(project_type).executable
    return QualityAnalysis(
        code_quality_score=0.0,
        test_score=0.0 if executable else None,
        code_smell_score=None if executable else 0.0,
        report=report,
        degraded=True,
    )


def parse_review_response(
    content: str,
    project_type: ProjectType,
) -> QualityAnalysis:
    """
    Turn a raw model response into a QualityAnalysis.

    Never raises. See the module docstring for the fallback order.
    """
    data = load_response_json(content)
    if data is None:
        logger.warning("Model response contained no parseable JSON object")
        return failed_analysis(
            "the model response was not valid JSON",
            project_type,
            raw=content,
        )

    report = data.get("report")
    if not isinstance(report, str) or not report.strip():
        report = NO_ANALYSIS

    executable = get_profile(project_type).executable
    wanted = ["code_quality_score"]
    wanted.append("test_score" if executable else "code_smell_score")

    scores: dict[str, Optional[float]] = {}
    for name in wanted:
        scores[name] = next(
            (
                score for score in (
                    _as_score(data.get(key)) for key in _SCORE_KEYS[name]
                )
                if score is not None
            ),
            None,
        )

    missing = [name for name, score in scores.items() if score is None]
    defaulted = []
    if missing:
        rescued = extract_scores_from_report(report)
        logger.warning(
            f"Model response missing {missing}; "
            f"rescued {sorted(set(missing) & set(rescued))} from report"
        )
        for name in missing:
            if name not in rescued:
                defaulted.append(name)
            scores[name] = rescued.get(name, 0.0)

    if defaulted:
        labels = ", ".join(_SCORE_LABELS[name] for name in defaulted)
        report = f"AI analysis did not return {labels}; scored 0.\n\n{report}"

    return QualityAnalysis(
        code_quality_score=scores["code_quality_score"],
        test_score=scores.get("test_score"),
        code_smell_score=scores.get("code_smell_score"),
        report=report,
        degraded=bool(defaulted),
    )


def create_chat_model(config: ReviewerConfig) -> ChatOpenAI:
    """Create the chat model client from explicit configuration."""
    return ChatOpenAI(
        model=config.model,
        base_url=config.base_url,
        api_key=config.api_key,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout,
        max_retries=config.max_retries,
    )


class QualityReviewer:
    """
    Runs the LLM code review for one submission at a time.

    Args:
        config: LLM settings
        llm: Chat model exposing ainvoke(); built from config if omitted
        langfuse: Optional Langfuse client for tracing generations
    """

    def __init__(
        self,
        config: ReviewerConfig,
        llm: Optional[Any] = None,
        langfuse: Optional[Any] = None,
    ):
        self.config = config
        self.llm = llm if llm is not None else create_chat_model(config)
        self.langfuse = langfuse

    def _trace(self, prompt: str, output: str, project_type: ProjectType) -> None:
        if self.langfuse is None:
            return
        try:
            trace = self.langfuse.trace(
                name="quality_review",
                metadata={"project_type": project_type.value},
            )
            trace.generation(
                name="review",
                input=prompt,
                output=output,
                model=self.config.model,
            )
        except Exception as e:
            logger.warning(f"Langfuse tracing failed: {e}")

    async def review(
        self,
        files: str,
        project_type: ProjectType,
        test_result: Optional[TestResult] = None,
        rubric: Optional[Any] = None,
        manifest: Optional[dict[str, str]] = None,
        registry_data: Optional[dict[str, str]] = None,
    ) -> QualityAnalysis:
        """
        Review collected sources and return scores plus a report.

        Returns:
            QualityAnalysis: Parsed scores, or a degraded zero-score
            analysis if the call or the parsing failed
        """
        project_type = ProjectType(project_type)
        profile = get_profile(project_type)
        prompt = build_review_prompt(
            profile,
            files,
            test_result=test_result if profile.executable else None,
            rubric=rubric,
            manifest=manifest,
            registry_data=registry_data,
        )

        started = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self.llm.ainvoke(prompt),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Quality review timed out after {self.config.timeout}s"
            )
            return failed_analysis(
                f"the model did not answer within {self.config.timeout}s",
                project_type,
            )
        except Exception as e:
            logger.warning(f"Quality review request failed: {e}")
            return failed_analysis(str(e) or type(e).__name__, project_type)

        content = response.content if isinstance(response.content, str) else (
            json.dumps(response.content)
        )
        self._trace(prompt, content, project_type)

        analysis = parse_review_response(content.strip(), project_type)
        analysis.model_used = self.config.model
        analysis.analysis_time = time.monotonic() - started

        usage = getattr(response, "usage_metadata", None) or {}
        analysis.prompt_tokens = int(usage.get("input_tokens", 0))
        analysis.completion_tokens = int(usage.get("output_tokens", 0))

        logger.info(
            f"Quality review for {project_type.value} project: "
            f"quality={analysis.code_quality_score} "
            f"degraded={analysis.degraded}"
        )
        return analysis
