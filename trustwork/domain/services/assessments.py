from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog

from trustwork.core.clock import as_utc
from trustwork.core.errors import (
    AlreadyCompleted,
    AttemptInProgress,
    CooldownActive,
    IllegalTransition,
    IntegrityVoided,
    UnlockNotMet,
    ValidationFailed,
)
from trustwork.domain.services.ledger import ChargeResult, CreditLedger
from trustwork.domain.services.scoring import (
    ScoreCard,
    displayed_letter,
    draw_question_order,
    score_slots,
    shuffle_options,
    threshold,
)
from trustwork.infrastructure.db.models import (
    OPTION_LETTERS,
    AssessmentTemplate,
    Assignment,
    Attempt,
    AttemptQuestion,
    AttemptState,
    Difficulty,
    IntegrityEventKind,
    Profile,
    ProfileRole,
    Question,
    Skill,
    Voucher,
)
from trustwork.infrastructure.repositories import UnitOfWork

logger = structlog.get_logger()


@dataclass(slots=True, frozen=True)
class Eligibility:
    allowed: bool
    reason: str
    next_allowed_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class ApplyDecision:
    allowed: bool
    reason: str
    required_score: int | None = None
    attempt_id: str | None = None


@dataclass(slots=True)
class QuestionView:
    position: int
    question_id: str
    prompt: str
    options: dict[str, str]
    chosen_letter: str | None


@dataclass(slots=True)
class AttemptView:
    attempt: Attempt
    questions: list[QuestionView]
    remaining_seconds: int


@dataclass(slots=True)
class StartResult:
    attempt: Attempt
    questions: list[QuestionView]
    balance: int
    charge: ChargeResult | None = None


@dataclass(slots=True)
class AttemptResult:
    attempt: Attempt
    card: ScoreCard | None
    balance: int
    voucher: Voucher | None = None


@dataclass(slots=True)
class ReviewItem:
    position: int
    prompt: str
    options: dict[str, str]
    chosen_letter: str | None
    correct_letter: str
    is_correct: bool
    explanation: str


@dataclass(slots=True)
class TemplateStats:
    template_id: str
    total_attempts: int = 0
    passed: int = 0
    failed: int = 0
    voided: int = 0
    in_progress: int = 0
    average_score: float | None = None
    average_time_seconds: float | None = None
    score_distribution: dict[str, int] = field(default_factory=dict)

    @property
    def pass_rate(self) -> float:
        scored = self.passed + self.failed
        return round(self.passed / scored, 4) if scored else 0.0


class AssessmentEngine:
    """Drives proctored attempts: eligibility, question draw, answers,
    integrity voiding, lazy timeout and scoring.

    Every public call first settles an overdue attempt in its own transaction,
    so a deadline that has passed is recorded even when the caller's request
    is then rejected.
    """

    def __init__(self, uow: UnitOfWork) -> None:
        self.uow = uow
        self.store = uow.store
        self.ledger = CreditLedger(uow)

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    async def can_attempt(
        self, user_id: str, template_id: str, gig_id: str | None = None
    ) -> Eligibility:
        if gig_id is not None:
            await self.uow.run(self.store.get, Assignment, gig_id)
        await self.uow.run(self._expire_overdue_for, user_id, template_id)
        return await self.uow.run(self._eligibility, user_id, template_id)

    async def can_apply(self, user_id: str, gig_id: str) -> ApplyDecision:
        gig = await self.uow.run(self.store.get, Assignment, gig_id)
        if gig.required_template_id is not None and gig.owner_id != user_id:
            await self.uow.run(self._expire_overdue_for, user_id, gig.required_template_id)
        return await self.uow.run(self.decide_apply, user_id, gig_id)

    async def decide_apply(self, user_id: str, gig_id: str) -> ApplyDecision:
        """Application gate, evaluated inside the caller's transaction."""
        gig = await self.store.get(Assignment, gig_id)
        if gig.required_template_id is None:
            return ApplyDecision(allowed=True, reason="no_requirement")
        if gig.owner_id == user_id:
            return ApplyDecision(allowed=True, reason="exempt")

        template = await self.store.get(AssessmentTemplate, gig.required_template_id)
        fraction = gig.passing_fraction_override or template.passing_fraction
        required = threshold(fraction)
        attempts = await self.store.query(
            Attempt,
            Attempt.user_id == user_id,
            Attempt.template_id == template.id,
            Attempt.state.in_((AttemptState.PASSED, AttemptState.TIMED_OUT)),
        )
        qualifying = [
            a for a in attempts if a.passed and a.score is not None and a.score >= required
        ]
        if qualifying:
            best = max(qualifying, key=lambda a: (a.score, a.id))
            return ApplyDecision(
                allowed=True, reason="passed", required_score=required, attempt_id=best.id
            )
        return ApplyDecision(allowed=False, reason="assessment_required", required_score=required)

    async def _eligibility(self, user_id: str, template_id: str) -> Eligibility:
        template = await self.store.get(AssessmentTemplate, template_id)
        in_progress = await self.store.find(
            Attempt,
            Attempt.user_id == user_id,
            Attempt.template_id == template_id,
            Attempt.state == AttemptState.IN_PROGRESS,
        )
        if in_progress is not None:
            return Eligibility(allowed=False, reason="attempt_in_progress")

        profile = await self.store.find(Profile, Profile.user_id == user_id)
        if profile is not None and profile.role == ProfileRole.EMPLOYER:
            return Eligibility(allowed=True, reason="exempt")

        completed = profile.completed_engagements if profile is not None else 0
        if completed < template.unlock_min_engagements:
            return Eligibility(allowed=False, reason="unlock_not_met")

        latest = await self.store.query(
            Attempt,
            Attempt.user_id == user_id,
            Attempt.template_id == template_id,
            Attempt.completed_at.is_not(None),
            order_by=Attempt.completed_at.desc(),
            limit=1,
        )
        if latest:
            cooldown = timedelta(days=self.uow.settings.cooldown_days)
            next_allowed_at = as_utc(latest[0].completed_at) + cooldown
            if self.uow.now() < next_allowed_at:
                return Eligibility(
                    allowed=False, reason="cooldown_active", next_allowed_at=next_allowed_at
                )
        return Eligibility(allowed=True, reason="ok")

    # ------------------------------------------------------------------
    # Attempt lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        user_id: str,
        template_id: str,
        *,
        gig_id: str | None = None,
        voucher_id: str | None = None,
    ) -> StartResult:
        await self.uow.run(self._expire_overdue_for, user_id, template_id)
        return await self.uow.run(self._start, user_id, template_id, gig_id, voucher_id)

    async def _start(
        self,
        user_id: str,
        template_id: str,
        gig_id: str | None,
        voucher_id: str | None,
    ) -> StartResult:
        template = await self.store.get(AssessmentTemplate, template_id)
        if not template.is_active:
            raise ValidationFailed("Assessment template is not active", template_id=template_id)
        if gig_id is not None:
            await self.store.get(Assignment, gig_id)
        if voucher_id is not None:
            await self.ledger.check_voucher(voucher_id, user_id)

        eligibility = await self._eligibility(user_id, template_id)
        if not eligibility.allowed:
            raise _denial(eligibility, template_id)

        is_retake = (
            await self.store.find(
                Attempt, Attempt.user_id == user_id, Attempt.template_id == template_id
            )
            is not None
        )
        charge: ChargeResult | None = None
        if is_retake:
            charge = await self.ledger.charge(
                user_id,
                template.retake_cost,
                f"assessment_retake:{template_id}",
                voucher_id=voucher_id,
            )

        bank = await self.store.query(
            Question,
            Question.template_id == template_id,
            Question.is_active.is_(True),
            order_by=Question.id,
        )
        if len(bank) < template.total_questions:
            raise ValidationFailed(
                "Question bank is smaller than the template requires",
                template_id=template_id,
                available=len(bank),
                required=template.total_questions,
            )

        now = self.uow.now()
        attempt_id = self.uow.ids.new_id()
        attempt = await self.store.insert(
            Attempt(
                id=attempt_id,
                user_id=user_id,
                template_id=template_id,
                gig_id=gig_id,
                state=AttemptState.IN_PROGRESS,
                started_at=now,
                deadline_at=now + timedelta(minutes=template.time_budget_minutes),
                total_count=template.total_questions,
                passing_score=threshold(template.passing_fraction),
                integrity_event_count=0,
                charged_credits=charge.charged if charge else 0,
                voucher_id=charge.voucher_id if charge else None,
            )
        )

        by_id = {question.id: question for question in bank}
        drawn = draw_question_order(attempt_id, list(by_id), template.total_questions)
        slots: list[AttemptQuestion] = []
        for position, question_id in enumerate(drawn):
            slot = await self.store.insert(
                AttemptQuestion(
                    attempt_id=attempt_id,
                    user_id=user_id,
                    position=position,
                    question_id=question_id,
                    option_order=shuffle_options(attempt_id, position),
                    correct_letter=by_id[question_id].correct_letter,
                )
            )
            slots.append(slot)

        balance = charge.balance if charge else await self.ledger.balance(user_id)
        logger.info(
            "attempt_started",
            attempt_id=attempt_id,
            user_id=user_id,
            template_id=template_id,
            gig_id=gig_id,
            retake=is_retake,
            charged=charge.charged if charge else 0,
            deadline_at=attempt.deadline_at.isoformat(),
        )
        return StartResult(
            attempt=attempt,
            questions=_views(slots, by_id),
            balance=balance,
            charge=charge,
        )

    async def answer(self, attempt_id: str, position: int, letter: str) -> AttemptQuestion:
        await self.uow.run(self._timeout_if_due, attempt_id)
        return await self.uow.run(self._answer, attempt_id, position, letter)

    async def _answer(self, attempt_id: str, position: int, letter: str) -> AttemptQuestion:
        attempt = await self.store.get(Attempt, attempt_id)
        self._ensure_open(attempt)
        letter = letter.upper()
        if letter not in OPTION_LETTERS:
            raise ValidationFailed("Answer must be one of A, B, C, D", letter=letter)
        slot = await self.store.find(
            AttemptQuestion,
            AttemptQuestion.attempt_id == attempt_id,
            AttemptQuestion.position == position,
        )
        if slot is None:
            raise ValidationFailed(
                "Question index out of range", position=position, total=attempt.total_count
            )
        await self.store.update(slot, chosen_letter=letter, answered_at=self.uow.now())
        return slot

    async def signal_integrity_event(self, attempt_id: str, kind: str) -> Attempt:
        await self.uow.run(self._timeout_if_due, attempt_id)
        return await self.uow.run(self._signal, attempt_id, kind)

    async def _signal(self, attempt_id: str, kind: str) -> Attempt:
        try:
            event = IntegrityEventKind(kind)
        except ValueError as exc:
            raise ValidationFailed("Unknown integrity event", kind=kind) from exc

        attempt = await self.store.get(Attempt, attempt_id)
        self._ensure_open(attempt)
        now = self.uow.now()
        await self.store.update(
            attempt,
            state=AttemptState.VOIDED_FOR_INTEGRITY,
            integrity_reason=event.value,
            integrity_event_count=attempt.integrity_event_count + 1,
            completed_at=now,
            time_taken_seconds=_elapsed(attempt.started_at, now),
        )
        await self.store.emit("attempt.completed", attempt.id)
        logger.info(
            "attempt_voided",
            attempt_id=attempt.id,
            user_id=attempt.user_id,
            kind=event.value,
        )
        return attempt

    async def submit(self, attempt_id: str) -> AttemptResult:
        await self.uow.run(self._timeout_if_due, attempt_id)
        return await self.uow.run(self._submit, attempt_id)

    async def _submit(self, attempt_id: str) -> AttemptResult:
        attempt = await self.store.get(Attempt, attempt_id)
        self._ensure_open(attempt)
        card, voucher = await self._finalize(attempt, completed_at=self.uow.now(), timed_out=False)
        balance = await self.ledger.balance(attempt.user_id)
        return AttemptResult(attempt=attempt, card=card, balance=balance, voucher=voucher)

    async def _timeout_if_due(self, attempt_id: str) -> bool:
        attempt = await self.store.get(Attempt, attempt_id)
        return await self._timeout(attempt)

    async def _expire_overdue_for(self, user_id: str, template_id: str) -> None:
        overdue = await self.store.query(
            Attempt,
            Attempt.user_id == user_id,
            Attempt.template_id == template_id,
            Attempt.state == AttemptState.IN_PROGRESS,
        )
        for attempt in overdue:
            await self._timeout(attempt)

    async def _timeout(self, attempt: Attempt) -> bool:
        if attempt.state != AttemptState.IN_PROGRESS:
            return False
        deadline = as_utc(attempt.deadline_at)
        if self.uow.now() < deadline:
            return False
        await self._finalize(attempt, completed_at=deadline, timed_out=True)
        return True

    async def _finalize(
        self, attempt: Attempt, *, completed_at: datetime, timed_out: bool
    ) -> tuple[ScoreCard, Voucher | None]:
        template = await self.store.get(AssessmentTemplate, attempt.template_id)
        slots = await self._slots(attempt.id)
        card = score_slots(
            slots,
            passing_fraction=template.passing_fraction,
            excellence_fraction=template.excellence_fraction,
        )
        if timed_out:
            state = AttemptState.TIMED_OUT
        else:
            state = AttemptState.PASSED if card.passed else AttemptState.FAILED

        await self.store.update(
            attempt,
            state=state,
            score=card.score,
            correct_count=card.correct,
            passed=card.passed,
            completed_at=completed_at,
            time_taken_seconds=_elapsed(attempt.started_at, completed_at),
        )

        voucher = None
        if card.excellent:
            voucher = await self.ledger.issue_voucher(
                attempt.user_id, source_attempt_id=attempt.id
            )
        await self.store.emit("attempt.completed", attempt.id)
        logger.info(
            "attempt_timed_out" if timed_out else "attempt_submitted",
            attempt_id=attempt.id,
            user_id=attempt.user_id,
            state=state.value,
            score=card.score,
            passed=card.passed,
            voucher_id=voucher.id if voucher else None,
        )
        return card, voucher

    def _ensure_open(self, attempt: Attempt) -> None:
        if attempt.state == AttemptState.VOIDED_FOR_INTEGRITY:
            raise IntegrityVoided(
                "Attempt was voided for integrity",
                attempt_id=attempt.id,
                reason=attempt.integrity_reason,
            )
        if attempt.state != AttemptState.IN_PROGRESS:
            raise AlreadyCompleted(
                "Attempt is already completed", attempt_id=attempt.id, state=attempt.state.value
            )
        if self.uow.now() > as_utc(attempt.deadline_at):
            raise AlreadyCompleted("Attempt deadline has passed", attempt_id=attempt.id)

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    async def get_attempt(self, attempt_id: str) -> AttemptView:
        await self.uow.run(self._timeout_if_due, attempt_id)
        return await self.uow.run(self._attempt_view, attempt_id)

    async def _attempt_view(self, attempt_id: str) -> AttemptView:
        attempt = await self.store.get(Attempt, attempt_id)
        slots = await self._slots(attempt_id)
        questions = await self._questions_for(slots)
        remaining = 0
        if attempt.state == AttemptState.IN_PROGRESS:
            remaining = max(0, _elapsed(self.uow.now(), attempt.deadline_at))
        return AttemptView(
            attempt=attempt, questions=_views(slots, questions), remaining_seconds=remaining
        )

    async def review_attempt(self, attempt_id: str) -> list[ReviewItem]:
        await self.uow.run(self._timeout_if_due, attempt_id)
        return await self.uow.run(self._review, attempt_id)

    async def _review(self, attempt_id: str) -> list[ReviewItem]:
        attempt = await self.store.get(Attempt, attempt_id)
        if attempt.state == AttemptState.VOIDED_FOR_INTEGRITY:
            raise IntegrityVoided("Voided attempts cannot be reviewed", attempt_id=attempt_id)
        if attempt.state == AttemptState.IN_PROGRESS:
            raise IllegalTransition(
                "Answers are revealed only after completion", attempt_id=attempt_id
            )
        slots = await self._slots(attempt_id)
        questions = await self._questions_for(slots)
        items = []
        for view, slot in zip(_views(slots, questions), slots, strict=True):
            question = questions[slot.question_id]
            items.append(
                ReviewItem(
                    position=slot.position,
                    prompt=view.prompt,
                    options=view.options,
                    chosen_letter=slot.chosen_letter,
                    correct_letter=displayed_letter(slot.option_order, slot.correct_letter),
                    is_correct=slot.is_correct,
                    explanation=question.explanation,
                )
            )
        return items

    async def attempt_history(self, user_id: str) -> list[Attempt]:
        return await self.uow.run(
            self.store.query,
            Attempt,
            Attempt.user_id == user_id,
            order_by=Attempt.started_at.desc(),
        )

    async def list_templates(
        self, *, category: str | None = None, difficulty: Difficulty | None = None
    ) -> list[AssessmentTemplate]:
        return await self.uow.run(self._list_templates, category, difficulty)

    async def _list_templates(
        self, category: str | None, difficulty: Difficulty | None
    ) -> list[AssessmentTemplate]:
        where = [AssessmentTemplate.is_active.is_(True)]
        if difficulty is not None:
            where.append(AssessmentTemplate.difficulty == difficulty)
        if category is not None:
            skills = await self.store.query(Skill, Skill.category == category)
            where.append(AssessmentTemplate.skill_id.in_([skill.id for skill in skills]))
        return await self.store.query(
            AssessmentTemplate, *where, order_by=[AssessmentTemplate.name]
        )

    async def template_stats(self, template_id: str) -> TemplateStats:
        return await self.uow.run(self._template_stats, template_id)

    async def _template_stats(self, template_id: str) -> TemplateStats:
        await self.store.get(AssessmentTemplate, template_id)
        attempts = await self.store.elevated().query(
            Attempt, Attempt.template_id == template_id
        )
        stats = TemplateStats(template_id=template_id, total_attempts=len(attempts))
        scores: list[int] = []
        durations: list[int] = []
        buckets = {"0-49": 0, "50-69": 0, "70-84": 0, "85-100": 0}
        for attempt in attempts:
            if attempt.state == AttemptState.IN_PROGRESS:
                stats.in_progress += 1
                continue
            if attempt.state == AttemptState.VOIDED_FOR_INTEGRITY:
                stats.voided += 1
                continue
            if attempt.passed:
                stats.passed += 1
            else:
                stats.failed += 1
            if attempt.score is not None:
                scores.append(attempt.score)
                buckets[_bucket(attempt.score)] += 1
            if attempt.time_taken_seconds is not None:
                durations.append(attempt.time_taken_seconds)
        if scores:
            stats.average_score = round(sum(scores) / len(scores), 2)
        if durations:
            stats.average_time_seconds = round(sum(durations) / len(durations), 2)
        stats.score_distribution = buckets
        return stats

    async def _slots(self, attempt_id: str) -> list[AttemptQuestion]:
        return await self.store.query(
            AttemptQuestion,
            AttemptQuestion.attempt_id == attempt_id,
            order_by=AttemptQuestion.position,
        )

    async def _questions_for(self, slots: list[AttemptQuestion]) -> dict[str, Question]:
        ids = [slot.question_id for slot in slots]
        rows = await self.store.query(Question, Question.id.in_(ids))
        return {row.id: row for row in rows}


def _views(slots: list[AttemptQuestion], questions: dict[str, Question]) -> list[QuestionView]:
    views = []
    for slot in slots:
        question = questions[slot.question_id]
        options = {
            shown: question.option_text(original)
            for shown, original in zip(OPTION_LETTERS, slot.option_order, strict=True)
        }
        views.append(
            QuestionView(
                position=slot.position,
                question_id=slot.question_id,
                prompt=question.prompt,
                options=options,
                chosen_letter=slot.chosen_letter,
            )
        )
    return views


def _elapsed(start: datetime, end: datetime) -> int:
    return int((as_utc(end) - as_utc(start)).total_seconds())


def _bucket(score: int) -> str:
    if score < 50:
        return "0-49"
    if score < 70:
        return "50-69"
    if score < 85:
        return "70-84"
    return "85-100"


def _denial(eligibility: Eligibility, template_id: str) -> Exception:
    if eligibility.reason == "attempt_in_progress":
        return AttemptInProgress(
            "An attempt for this template is already in progress", template_id=template_id
        )
    if eligibility.reason == "unlock_not_met":
        return UnlockNotMet(
            "Not enough completed engagements to unlock this assessment",
            template_id=template_id,
        )
    return CooldownActive(
        "Assessment is cooling down",
        template_id=template_id,
        next_allowed_at=eligibility.next_allowed_at,
    )


__all__ = [
    "ApplyDecision",
    "AssessmentEngine",
    "AttemptResult",
    "AttemptView",
    "Eligibility",
    "QuestionView",
    "ReviewItem",
    "StartResult",
    "TemplateStats",
]
