"""
Achievement Engine: grants, certificates and XP for learner events.

Grants are idempotent per (user, achievement) and certificates per
(user, workstation). The store enforces uniqueness by raising
DuplicateSubmission; the engine turns that into a no-op that returns the
existing record, so a retried or duplicated event never awards XP twice.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Protocol

from loguru import logger
from pydantic import BaseModel, Field

from vstation.core.errors import DuplicateSubmission, NotFoundError, ValidationError
from vstation.core.models import now_ms

from .catalog import PRESET_ACHIEVEMENTS, PRESET_WORKSTATIONS, WorkstationDefinition
from .conditions import AchievementDefinition, AchievementEvent, ConditionContext, evaluate_condition
from .levels import CareerProfile, LevelUpResult, add_experience

# =============================================================================
# Records
# =============================================================================


class AchievementGrant(BaseModel):
    user_id: str
    achievement_id: str
    unlocked_at: int = Field(default_factory=now_ms)


class Certificate(BaseModel):
    id: str
    user_id: str
    workstation_id: str
    workstation_name: str = ""
    certificate_number: str
    granted_at: int = Field(default_factory=now_ms)


@dataclass
class GrantOutcome:
    grant: AchievementGrant
    created: bool
    level_up: LevelUpResult | None = None


@dataclass
class AchievementStatus:
    definition: AchievementDefinition
    unlocked: bool
    unlocked_at: int | None = None


class ProgressionStore(Protocol):
    """Persistence for grants, certificates and career profiles."""

    def get_grants(self, user_id: str) -> list[AchievementGrant]: ...

    def insert_grant(self, grant: AchievementGrant) -> AchievementGrant: ...

    def get_certificates(self, user_id: str) -> list[Certificate]: ...

    def insert_certificate(self, certificate: Certificate) -> Certificate: ...

    def load_profile(self, user_id: str) -> CareerProfile | None: ...

    def save_profile(self, profile: CareerProfile) -> None: ...


class InMemoryProgressionStore:
    """Process-local ProgressionStore."""

    def __init__(self) -> None:
        self._grants: dict[tuple[str, str], AchievementGrant] = {}
        self._certificates: dict[tuple[str, str], Certificate] = {}
        self._profiles: dict[str, dict[str, Any]] = {}

    def get_grants(self, user_id: str) -> list[AchievementGrant]:
        return [g for (uid, _), g in self._grants.items() if uid == user_id]

    def insert_grant(self, grant: AchievementGrant) -> AchievementGrant:
        key = (grant.user_id, grant.achievement_id)
        if key in self._grants:
            raise DuplicateSubmission(f"Achievement {grant.achievement_id} already granted", self._grants[key])
        self._grants[key] = grant
        return grant

    def get_certificates(self, user_id: str) -> list[Certificate]:
        return [c for (uid, _), c in self._certificates.items() if uid == user_id]

    def insert_certificate(self, certificate: Certificate) -> Certificate:
        key = (certificate.user_id, certificate.workstation_id)
        if key in self._certificates:
            raise DuplicateSubmission(f"Certificate for {certificate.workstation_id} already issued", self._certificates[key])
        self._certificates[key] = certificate
        return certificate

    def load_profile(self, user_id: str) -> CareerProfile | None:
        data = self._profiles.get(user_id)
        return CareerProfile.from_dict(data) if data else None

    def save_profile(self, profile: CareerProfile) -> None:
        self._profiles[profile.user_id] = profile.to_dict()


def certificate_number(user_id: str, workstation_id: str, granted_at: int) -> str:
    """Human-readable certificate number, stable for the same inputs."""
    year = datetime.fromtimestamp(granted_at / 1000).year
    digest = hashlib.sha1(f"{user_id}:{workstation_id}".encode("utf-8")).hexdigest()[:8].upper()
    prefix = "".join(part[0] for part in workstation_id.split("-") if part).upper()
    return f"VS-{year}-{prefix}-{digest}"


# =============================================================================
# Engine
# =============================================================================


class AchievementEngine:
    """
    Evaluates achievement conditions and manages career progression.

    Usage:
        engine = AchievementEngine()
        engine.record_task_completion("u1", "case_001", score=92, first_try=True)
        granted = engine.check_achievements("u1", "task_complete", {"task_id": "case_001", "score": 92})
    """

    def __init__(
        self,
        definitions: Iterable[AchievementDefinition] | None = None,
        workstations: Iterable[WorkstationDefinition] | None = None,
        store: ProgressionStore | None = None,
    ):
        self.definitions: dict[str, AchievementDefinition] = {
            d.id: d for d in (PRESET_ACHIEVEMENTS if definitions is None else definitions)
        }
        self.workstations: dict[str, WorkstationDefinition] = {
            w.id: w for w in (PRESET_WORKSTATIONS if workstations is None else workstations)
        }
        self.store: ProgressionStore = store or InMemoryProgressionStore()
        self.context = ConditionContext.from_workstations(w.id for w in self.workstations.values() if w.is_active)
        self._profiles: dict[str, CareerProfile] = {}

    # =========================================================================
    # Profiles
    # =========================================================================

    def get_profile(self, user_id: str) -> CareerProfile:
        """Return the learner's profile, creating it on first use."""
        profile = self._profiles.get(user_id)
        if profile is None:
            profile = self.store.load_profile(user_id) or CareerProfile(user_id=user_id)
            self._profiles[user_id] = profile
        return profile

    def _save(self, profile: CareerProfile) -> None:
        self.store.save_profile(profile)

    def add_experience(self, user_id: str, xp: int, source: str | None = None) -> LevelUpResult:
        profile = self.get_profile(user_id)
        result = add_experience(profile, xp, source)
        self._save(profile)
        return result

    def get_definition(self, achievement_id: str) -> AchievementDefinition:
        definition = self.definitions.get(achievement_id)
        if definition is None:
            raise NotFoundError("achievement", achievement_id)
        return definition

    def get_workstation(self, workstation_id: str) -> WorkstationDefinition:
        workstation = self.workstations.get(workstation_id)
        if workstation is None:
            raise NotFoundError("workstation", workstation_id)
        return workstation

    def is_workstation_unlocked(self, user_id: str, workstation_id: str) -> bool:
        workstation = self.get_workstation(workstation_id)
        return workstation.is_active and self.get_profile(user_id).level >= workstation.required_level

    # =========================================================================
    # Learner Events
    # =========================================================================

    def record_task_completion(
        self,
        user_id: str,
        task_id: str,
        score: float,
        first_try: bool = True,
        study_minutes: float = 0.0,
    ) -> CareerProfile:
        """Update task statistics; XP is granted separately."""
        if not 0 <= score <= 100:
            raise ValidationError("Score out of range", {"score": f"expected 0-100, got {score}"})

        profile = self.get_profile(user_id)
        if task_id not in profile.completed_task_ids:
            profile.completed_task_ids.append(task_id)
        profile.best_scores[task_id] = max(score, profile.best_scores.get(task_id, 0.0))
        profile.first_try_streak = profile.first_try_streak + 1 if first_try else 0
        profile.total_study_minutes += max(0.0, study_minutes)
        self._save(profile)
        return profile

    def record_study_day(self, user_id: str, day: date | None = None) -> int:
        """Advance or reset the consecutive-day streak; returns the new streak."""
        day = day or date.today()
        profile = self.get_profile(user_id)
        last = profile.last_study_date

        if last == day:
            return profile.streak_days
        if last is not None and day - last == timedelta(days=1):
            profile.streak_days += 1
        elif last is None or day > last:
            profile.streak_days = 1
        else:
            # Out-of-order day from a late sync; the streak is unaffected
            return profile.streak_days

        profile.last_study_date = day
        self._save(profile)
        return profile.streak_days

    def record_study_time(self, user_id: str, minutes: float) -> float:
        if minutes < 0:
            raise ValidationError("Study time cannot be negative", {"minutes": f"got {minutes}"})
        profile = self.get_profile(user_id)
        profile.total_study_minutes += minutes
        self._save(profile)
        return profile.total_study_minutes

    def record_login(self, user_id: str) -> CareerProfile:
        profile = self.get_profile(user_id)
        profile.login_count += 1
        self._save(profile)
        return profile

    # =========================================================================
    # Achievements
    # =========================================================================

    def _granted(self, user_id: str) -> dict[str, AchievementGrant]:
        return {g.achievement_id: g for g in self.store.get_grants(user_id)}

    def grant_achievement(self, user_id: str, achievement_id: str) -> GrantOutcome:
        """
        Grant an achievement once.

        A repeat call returns the existing grant with created=False and
        awards nothing.

        Raises:
            NotFoundError: if the achievement id is unknown
        """
        definition = self.get_definition(achievement_id)
        try:
            grant = self.store.insert_grant(AchievementGrant(user_id=user_id, achievement_id=achievement_id))
        except DuplicateSubmission as exc:
            logger.debug(f"Achievement {achievement_id} already granted to {user_id}")
            return GrantOutcome(grant=exc.existing, created=False)

        profile = self.get_profile(user_id)
        profile.achievement_count += 1
        level_up = add_experience(profile, definition.xp_reward, source=f"achievement:{achievement_id}")
        self._save(profile)

        logger.info(
            "Granted achievement {} ({}) to {} (+{} XP)",
            achievement_id,
            definition.rarity.value,
            user_id,
            definition.xp_reward,
        )
        return GrantOutcome(grant=grant, created=True, level_up=level_up)

    def check_achievements(
        self,
        user_id: str,
        event_kind: str | AchievementEvent,
        payload: dict[str, Any] | None = None,
    ) -> list[AchievementDefinition]:
        """
        Evaluate every achievement the user does not hold yet.

        Grants can award enough XP to satisfy level conditions, so
        evaluation repeats until a pass grants nothing new.

        Returns:
            Newly granted definitions (empty if none)
        """
        if isinstance(event_kind, AchievementEvent):
            event = event_kind
        else:
            event = AchievementEvent(user_id=user_id, kind=event_kind, payload=dict(payload or {}))

        profile = self.get_profile(user_id)
        held = set(self._granted(user_id))
        newly: list[AchievementDefinition] = []

        while True:
            satisfied = [
                definition
                for achievement_id, definition in self.definitions.items()
                if achievement_id not in held and evaluate_condition(definition.condition, profile, event, self.context)
            ]
            if not satisfied:
                break
            for definition in satisfied:
                held.add(definition.id)
                if self.grant_achievement(user_id, definition.id).created:
                    newly.append(definition)

        return newly

    def get_achievements(self, user_id: str) -> list[AchievementStatus]:
        granted = self._granted(user_id)
        return [
            AchievementStatus(
                definition=definition,
                unlocked=definition.id in granted,
                unlocked_at=granted[definition.id].unlocked_at if definition.id in granted else None,
            )
            for definition in self.definitions.values()
        ]

    def get_unlocked_achievements(self, user_id: str) -> list[AchievementStatus]:
        return [s for s in self.get_achievements(user_id) if s.unlocked]

    def get_locked_achievements(self, user_id: str) -> list[AchievementStatus]:
        return [s for s in self.get_achievements(user_id) if not s.unlocked]

    def generate_share_card(self, achievement_id: str, base_url: str = "") -> dict[str, Any]:
        definition = self.get_definition(achievement_id)
        return {
            "title": definition.name,
            "description": definition.description,
            "rarity": definition.rarity.value,
            "xp_reward": definition.xp_reward,
            "share_url": f"{base_url.rstrip('/')}/virtual-station?share={achievement_id}",
        }

    # =========================================================================
    # Certificates
    # =========================================================================

    def grant_certificate(self, user_id: str, workstation_id: str) -> Certificate:
        """Issue the workstation certificate once; repeats return the original."""
        workstation = self.get_workstation(workstation_id)
        granted_at = now_ms()
        candidate = Certificate(
            id=f"cert_{workstation_id}_{granted_at}",
            user_id=user_id,
            workstation_id=workstation_id,
            workstation_name=workstation.name,
            certificate_number=certificate_number(user_id, workstation_id, granted_at),
            granted_at=granted_at,
        )
        try:
            certificate = self.store.insert_certificate(candidate)
        except DuplicateSubmission as exc:
            return exc.existing

        profile = self.get_profile(user_id)
        if workstation_id not in profile.certificates:
            profile.certificates.append(workstation_id)
        if workstation_id not in profile.completed_workstations:
            profile.completed_workstations.append(workstation_id)
        self._save(profile)

        logger.info(f"Issued certificate {certificate.certificate_number} to {user_id}")
        return certificate

    def check_certificate_eligibility(
        self,
        user_id: str,
        workstation_id: str,
        completed_tasks: int,
        total_tasks: int,
    ) -> Certificate | None:
        """
        Issue a certificate exactly when completed >= total > 0.

        Returns:
            The newly issued certificate, or None if not yet eligible or
            already issued earlier
        """
        if total_tasks <= 0 or completed_tasks < total_tasks:
            return None
        if any(c.workstation_id == workstation_id for c in self.store.get_certificates(user_id)):
            return None
        return self.grant_certificate(user_id, workstation_id)

    def get_certificates(self, user_id: str) -> list[Certificate]:
        return self.store.get_certificates(user_id)
