"""
Resource Recommender: study material for a classified error.

Candidates are ranked in three tiers:
1. Workstation-specific resources for the error category
2. Category defaults
3. Stage-specific resources

Duplicates keep their highest tier; at most five resources are returned.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from vstation.core.errors import ValidationError
from vstation.core.models import ErrorCategory

MAX_RECOMMENDATIONS = 5


@dataclass(frozen=True)
class Resource:
    id: str
    title: str
    kind: str = "article"
    url: str | None = None
    category: ErrorCategory | None = None
    workstation_id: str | None = None
    stage: str | None = None


def _r(rid: str, title: str, kind: str = "article", **scope) -> Resource:
    return Resource(id=rid, title=title, kind=kind, **scope)


DEFAULT_RESOURCES: list[Resource] = [
    # Category defaults
    _r("res-concept-gb5085", "GB 5085 identification criteria overview", category=ErrorCategory.CONCEPT),
    _r("res-concept-glossary", "Hazard characteristic glossary", category=ErrorCategory.CONCEPT),
    _r("res-concept-catalog", "National hazardous waste catalog walkthrough", "video", category=ErrorCategory.CONCEPT),
    _r("res-calc-units", "Unit conversion cheat sheet", category=ErrorCategory.CALCULATION),
    _r("res-calc-dilution", "Dilution and concentration worked examples", "exercise", category=ErrorCategory.CALCULATION),
    _r("res-calc-rounding", "Significant figures and rounding rules", category=ErrorCategory.CALCULATION),
    _r("res-process-sop", "Standard operating procedure primer", category=ErrorCategory.PROCESS),
    _r("res-process-qc", "Quality control checkpoints", category=ErrorCategory.PROCESS),
    _r("res-format-records", "Filling in field records correctly", category=ErrorCategory.FORMAT),
    _r("res-format-dates", "Date, time and code conventions", category=ErrorCategory.FORMAT),
    # Workstation-specific
    _r("res-ws-hazlab-leaching", "Leaching toxicity limits (GB 5085.3)", workstation_id="hazwaste-lab", category=ErrorCategory.CONCEPT),
    _r("res-ws-hazlab-path", "Choosing the cheapest decisive tests", "video", workstation_id="hazwaste-lab", category=ErrorCategory.PROCESS),
    _r("res-ws-env-flow", "Flow and load calculations for discharge monitoring", "exercise", workstation_id="env-monitoring", category=ErrorCategory.CALCULATION),
    _r("res-ws-env-points", "Laying out monitoring points", workstation_id="env-monitoring", category=ErrorCategory.PROCESS),
    _r("res-ws-sampling-preserve", "Sample preservation and holding times", workstation_id="sampling-center", category=ErrorCategory.PROCESS),
    _r("res-ws-sampling-volume", "Composite sample volume calculation", "exercise", workstation_id="sampling-center", category=ErrorCategory.CALCULATION),
    _r("res-ws-data-stats", "Outliers and averaging in monitoring data", workstation_id="data-center", category=ErrorCategory.CALCULATION),
    # Stage-specific
    _r("res-stage-plan", "Writing a sampling plan", stage="plan_design"),
    _r("res-stage-operation", "Field operation safety checklist", "checklist", stage="operation"),
    _r("res-stage-record", "Record sheet field-by-field guide", stage="record_filling"),
    _r("res-stage-report", "Monitoring report template", "template", stage="report_generation"),
]


class ResourceRecommender:
    """
    Recommends resources for a learner error.

    Usage:
        recommender = ResourceRecommender()
        resources = recommender.recommend(ErrorCategory.CALCULATION, workstation_id="env-monitoring")
    """

    def __init__(self, resources: Iterable[Resource] | None = None, limit: int = MAX_RECOMMENDATIONS):
        self.resources = list(DEFAULT_RESOURCES if resources is None else resources)
        self.limit = limit

    def _workstation_tier(self, category: ErrorCategory, workstation_id: str | None) -> list[Resource]:
        if not workstation_id:
            return []
        return [
            r for r in self.resources
            if r.workstation_id == workstation_id and r.category in (None, category)
        ]

    def _category_tier(self, category: ErrorCategory) -> list[Resource]:
        return [
            r for r in self.resources
            if r.category == category and r.workstation_id is None and r.stage is None
        ]

    def _stage_tier(self, category: ErrorCategory, stage: str | None, workstation_id: str | None) -> list[Resource]:
        if not stage:
            return []
        return [
            r for r in self.resources
            if r.stage == stage
            and r.workstation_id in (None, workstation_id)
            and r.category in (None, category)
        ]

    def recommend(
        self,
        category: ErrorCategory | str,
        workstation_id: str | None = None,
        stage: str | None = None,
        limit: int | None = None,
    ) -> list[Resource]:
        """
        Rank resources for an error.

        Args:
            category: classified error category
            workstation_id: workstation where the error happened
            stage: task stage where the error happened
            limit: cap on returned resources (defaults to 5)

        Returns:
            Resources ordered workstation-specific, category default, stage-specific
        """
        try:
            category = ErrorCategory(category)
        except ValueError as exc:
            raise ValidationError(
                "Unknown error category",
                {"category": f"{category!r} is not one of {[c.value for c in ErrorCategory]}"},
            ) from exc
        limit = self.limit if limit is None else limit

        seen: set[str] = set()
        ranked: list[Resource] = []
        tiers = (
            self._workstation_tier(category, workstation_id),
            self._category_tier(category),
            self._stage_tier(category, stage, workstation_id),
        )
        for tier in tiers:
            for resource in tier:
                if resource.id in seen:
                    continue
                seen.add(resource.id)
                ranked.append(resource)

        if not ranked:
            logger.debug(f"No resources for category={category.value} workstation={workstation_id} stage={stage}")
        return ranked[:limit]
