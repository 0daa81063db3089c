"""Confidence scoring for automatic task creation.

The score is a weighted sum of three factors in ``[0, 1]``:

    context_completeness * 0.4
    + similar_task_history * 0.3
    + specification_clarity * 0.3

and maps to a recommendation through two thresholds. Pre-creation
validation combines the score with a couple of governance checks.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from .models import (
    ConfidenceFactors,
    ConfidenceScore,
    PreCreationValidation,
    Recommendation,
    Task,
    TaskStatus,
)

logger = logging.getLogger("projitive.confidence")


CONTEXT_COMPLETENESS_WEIGHT = 0.4
SIMILAR_TASK_HISTORY_WEIGHT = 0.3
SPECIFICATION_CLARITY_WEIGHT = 0.3

AUTO_CREATE_THRESHOLD = 0.85
REVIEW_REQUIRED_THRESHOLD = 0.6
LOW_CONTEXT_COMPLETENESS = 0.6

REQUIRED_CONTEXT_FILES = ("tasks.md", "roadmap.md", "README.md")
OPTIONAL_CONTEXT_FILES = ("hooks/task_no_actionable.md", "hooks/task_auto_create_validation.md")

TASK_AUTO_CREATE_VALIDATION_HOOK = "task_auto_create_validation.md"

DEFAULT_TASK_AUTO_CREATE_VALIDATION_HOOK = """# Task Auto-Create Validation Hook

## Pre-Creation Checklist
- [ ] Context files exist and are readable
- [ ] Similar tasks have been completed successfully
- [ ] Acceptance criteria are clear and testable
- [ ] Dependencies are identified and available

## Post-Creation Actions
- [ ] Add evidence link to analysis document
- [ ] Notify relevant stakeholders (if configured)
- [ ] Schedule validation review (24h for high-confidence)
"""


def _clamp_factor(value: float, name: str) -> float:
    if value < 0 or value > 1:
        logger.warning(
            f"{name} value {value} is outside [0, 1] range, clamping",
            extra={"extra_fields": {"factor": name, "value": value}},
        )
        return max(0.0, min(1.0, value))
    return value


def recommendation_for(score: float) -> Recommendation:
    if score >= AUTO_CREATE_THRESHOLD:
        return Recommendation.AUTO_CREATE
    if score >= REVIEW_REQUIRED_THRESHOLD:
        return Recommendation.REVIEW_REQUIRED
    return Recommendation.DO_NOT_CREATE


def calculate_confidence_score(factors: ConfidenceFactors) -> ConfidenceScore:
    """Clamp each factor, combine them and bucket the result.

    The weighted sum is rounded to 10 places so that factor combinations
    landing on a threshold are not pushed below it by float error.
    """
    clamped = ConfidenceFactors(
        context_completeness=_clamp_factor(factors.context_completeness, "context_completeness"),
        similar_task_history=_clamp_factor(factors.similar_task_history, "similar_task_history"),
        specification_clarity=_clamp_factor(factors.specification_clarity, "specification_clarity"),
    )
    score = round(
        clamped.context_completeness * CONTEXT_COMPLETENESS_WEIGHT
        + clamped.similar_task_history * SIMILAR_TASK_HISTORY_WEIGHT
        + clamped.specification_clarity * SPECIFICATION_CLARITY_WEIGHT,
        10,
    )
    return ConfidenceScore(score=score, factors=clamped, recommendation=recommendation_for(score))


def calculate_context_completeness(governance_dir: Union[str, Path]) -> float:
    """Share of governance artifacts present; the two hooks count half each."""
    base = Path(governance_dir)
    available = sum(1.0 for name in REQUIRED_CONTEXT_FILES if (base / name).exists())
    available += sum(0.5 for name in OPTIONAL_CONTEXT_FILES if (base / name).exists())
    total = len(REQUIRED_CONTEXT_FILES) + len(OPTIONAL_CONTEXT_FILES)
    return min(1.0, available / total)


def calculate_similar_task_history(tasks: List[Task], candidate_summary: str) -> float:
    """Fraction of keyword-similar tasks that are DONE, 0.5 when none are similar."""
    keywords = [word for word in candidate_summary.lower().split() if len(word) > 3]
    similar = [
        task
        for task in tasks
        if any(keyword in f"{task.title} {task.summary}".lower() for keyword in keywords)
    ]
    if not similar:
        return 0.5
    done = sum(1 for task in similar if task.status == TaskStatus.DONE)
    return done / len(similar)


def calculate_specification_clarity(
    has_roadmap: bool = False,
    has_design_docs: bool = False,
    has_clear_acceptance_criteria: bool = False,
) -> float:
    clarity = 0.3
    if has_roadmap:
        clarity += 0.2
    if has_design_docs:
        clarity += 0.2
    if has_clear_acceptance_criteria:
        clarity += 0.3
    return min(1.0, round(clarity, 10))


def validation_hook_path(governance_dir: Union[str, Path]) -> Path:
    return Path(governance_dir) / "hooks" / TASK_AUTO_CREATE_VALIDATION_HOOK


def has_validation_hook(governance_dir: Union[str, Path]) -> bool:
    return validation_hook_path(governance_dir).is_file()


def run_pre_creation_validation(
    score: ConfidenceScore,
    governance_dir: Optional[Union[str, Path]] = None,
) -> PreCreationValidation:
    """Collect blocking issues for creating a task with ``score``.

    A high-confidence score passes even when issues are reported.
    """
    issues: List[str] = []

    if score.recommendation == Recommendation.DO_NOT_CREATE:
        issues.append(
            f"Confidence score {score.score:.2f} is below threshold ({REVIEW_REQUIRED_THRESHOLD})"
        )

    completeness = score.factors.context_completeness
    if completeness < LOW_CONTEXT_COMPLETENESS:
        issues.append(
            f"Context completeness ({completeness:.2f}) is low - more governance artifacts recommended"
        )

    if governance_dir is not None and not has_validation_hook(governance_dir):
        issues.append("Task auto-create validation hook not found - will create default hook")

    return PreCreationValidation(
        passed=not issues or score.recommendation == Recommendation.AUTO_CREATE,
        issues=issues,
    )


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def generate_confidence_report(score: ConfidenceScore) -> str:
    """Markdown breakdown of a score with per-factor contribution."""
    rows = [
        ("Context Completeness", score.factors.context_completeness, CONTEXT_COMPLETENESS_WEIGHT),
        ("Similar Task History", score.factors.similar_task_history, SIMILAR_TASK_HISTORY_WEIGHT),
        ("Specification Clarity", score.factors.specification_clarity, SPECIFICATION_CLARITY_WEIGHT),
    ]
    lines = [
        "# Confidence Score Report",
        "",
        f"## Final Score: {_pct(score.score)}",
        f"**Recommendation**: {score.recommendation.value.replace('_', ' ')}",
        "",
        "## Factor Breakdown",
        "",
        "| Factor | Score | Weight | Contribution |",
        "|--------|-------|--------|--------------|",
    ]
    for label, value, weight in rows:
        lines.append(f"| {label} | {_pct(value)} | {_pct(weight)} | {_pct(value * weight)} |")
    lines.extend([
        "",
        "## Thresholds",
        "",
        f"- Auto-create: >= {_pct(AUTO_CREATE_THRESHOLD)}",
        f"- Review required: {_pct(REVIEW_REQUIRED_THRESHOLD)} - {_pct(AUTO_CREATE_THRESHOLD)}",
        f"- Do not create: < {_pct(REVIEW_REQUIRED_THRESHOLD)}",
    ])
    return "\n".join(lines)
