"""
Survey Reconciliation for HeartWaves.

Scores follow-up questionnaire answers against a fixed per-phenotype rule
table and adjusts the current assessment accordingly.

Scoring:
    Each answered question that has a rule for the current hint is
    "informative". An answer in the rule's support set votes +1, one in its
    against set votes -1, anything else votes 0.

        support_score = (support_votes - against_votes) / informative

Alignment:
    informative < 2                      -> inconclusive
    severe red flag or score >= 0.35     -> supports
    score <= -0.25                       -> does_not_support
    otherwise                            -> mixed

State transitions (only when status is needs_followup):
    supports          -> confidence promoted one step
    does_not_support  -> revert to normal (no severe flag, confidence <= medium)
                         or confidence demoted one step
    mixed             -> confidence demoted when >= medium
    inconclusive      -> reason updated only
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence

from heartwaves.config import SURVEY
from heartwaves.rules.baseline import ScreeningResult
from heartwaves.rules.phenotype import Confidence, PhenotypeHint, Status, confidence_rank
from heartwaves.rules.questionnaire import Question, normal_questionnaire, questionnaire_for

logger = logging.getLogger(__name__)


class Alignment(str, Enum):
    SUPPORTS = "supports"
    DOES_NOT_SUPPORT = "does_not_support"
    MIXED = "mixed"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class AnswerRule:
    """Answer options that count for and against a phenotype."""

    support: FrozenSet[str]
    against: FrozenSet[str] = frozenset()


def _rule(support: str, against: str = "") -> AnswerRule:
    return AnswerRule(frozenset(support.split()), frozenset(against.split()))


RULES: Dict[PhenotypeHint, Dict[str, AnswerRule]] = {
    PhenotypeHint.POTS_LIKE: {
        "orthostatic": _rule("yes", "no"),
        "tachy_upright": _rule("yes", "no"),
        "brain_fog": _rule("moderate severe", "no"),
        "heat_trigger": _rule("sometimes often", "no"),
        "hydration": _rule("yes", "no"),
    },
    PhenotypeHint.IST_LIKE: {
        "fast_resting_hr": _rule("sometimes often", "no"),
        "palpitations_rest": _rule("sometimes often", "no"),
        "standing_relation": _rule("mixed regardless_posture", "mostly_posture"),
        "stimulants": _rule("no", "high"),
        "med_changes": _rule("no", "yes"),
    },
    PhenotypeHint.OH_LIKE: {
        "dizzy_standing": _rule("sometimes often", "no"),
        "vision_dim": _rule("sometimes often", "no"),
        "presyncope": _rule("near_faint faint", "no"),
        "recovery_lying": _rule("yes", "no"),
        "bp_drop": _rule("yes", "no"),
        "bp_not_measured": _rule("multiple_times"),
    },
    PhenotypeHint.VVS_LIKE: {
        "trigger_pattern": _rule("sometimes often", "no"),
        "warning_signs": _rule("sometimes often", "no"),
        "fainting": _rule("once multiple", "no"),
        "position_relief": _rule("yes", "no"),
        "bp_during_event": _rule("yes", "no"),
        "bp_not_measured": _rule("yes"),
    },
    PhenotypeHint.UNSPECIFIED_AUTONOMIC: {
        "orthostatic": _rule("yes", "no"),
        "presyncope": _rule("near_faint faint", "no"),
        "tachy": _rule("yes", "no"),
        "illness": _rule("no", "yes"),
        "med_changes": _rule("no", "yes"),
    },
}

# Answers that support follow-up regardless of the score
SEVERE_FLAGS: Dict[str, FrozenSet[str]] = {
    "presyncope": frozenset({"faint"}),
    "fainting": frozenset({"once", "multiple"}),
}


@dataclass(frozen=True)
class SurveyAnswer:
    id: str
    prompt: str
    answer: str

    def to_dict(self) -> dict:
        return {"id": self.id, "prompt": self.prompt, "answer": self.answer}


@dataclass
class SymptomsRecord:
    """
    Validated answers of one submission.

    Attributes:
        answers: Answers that matched the questionnaire.
        updated_at: ISO-8601 UTC timestamp of the submission.
    """

    answers: List[SurveyAnswer] = field(default_factory=list)
    updated_at: Optional[str] = None

    def answer_map(self) -> Dict[str, str]:
        """Question id -> stripped, lower-cased answer; blanks skipped."""
        mapped: Dict[str, str] = {}
        for item in self.answers:
            qid = str(item.id).strip()
            answer = str(item.answer).strip().lower()
            if qid and answer:
                mapped[qid] = answer
        return mapped

    def to_dict(self) -> dict:
        return {
            "answers": [answer.to_dict() for answer in self.answers],
            "updated_at": self.updated_at,
        }


@dataclass
class SurveyAssessment:
    """
    Outcome of scoring survey answers against a phenotype.

    Attributes:
        status_context: Screening status at scoring time.
        hint_context: Phenotype hint the answers were scored against.
        answered_count: Number of answers submitted.
        informative_answers: Answers with a rule for the hint.
        support_votes: Answers in a support set.
        against_votes: Answers in an against set.
        support_score: Net vote share in [-1, 1], rounded to 3 places.
        alignment: Alignment category.
        severe_red_flag: True on fainting / near-syncope red flags.
        summary: One-line human-readable summary.
    """

    status_context: str
    hint_context: str
    answered_count: int
    informative_answers: int
    support_votes: int
    against_votes: int
    support_score: float
    alignment: Alignment
    severe_red_flag: bool
    summary: str

    def to_dict(self) -> dict:
        return {
            "status_context": self.status_context,
            "hint_context": self.hint_context,
            "answered_count": self.answered_count,
            "informative_answers": self.informative_answers,
            "support_votes": self.support_votes,
            "against_votes": self.against_votes,
            "support_score": self.support_score,
            "alignment": self.alignment.value,
            "severe_red_flag": self.severe_red_flag,
            "summary": self.summary,
        }


def sanitize_answers(
    questionnaire: Sequence[Question],
    answers: Mapping[str, Any],
    updated_at: Optional[str] = None,
) -> SymptomsRecord:
    """
    Keep only answers to known questions with a valid option.

    Unknown question ids and invalid options are dropped silently.

    Args:
        questionnaire: The questionnaire the answers respond to.
        answers: Question id -> selected option.
        updated_at: Submission timestamp (defaults to now, UTC).

    Returns:
        SymptomsRecord of the surviving answers, in submission order.
    """
    questions = {question.id: question for question in questionnaire if question.id}

    sanitized: List[SurveyAnswer] = []
    for question_id, option in answers.items():
        question = questions.get(str(question_id))
        if question is None:
            continue
        selected = str(option)
        if selected not in question.options:
            continue
        sanitized.append(SurveyAnswer(id=question.id, prompt=question.prompt, answer=selected))

    dropped = len(answers) - len(sanitized)
    if dropped:
        logger.debug(f"Dropped {dropped} answers not matching the questionnaire")

    if updated_at is None:
        updated_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    return SymptomsRecord(answers=sanitized, updated_at=updated_at)


def has_severe_red_flag(answers: Mapping[str, str]) -> bool:
    return any(answers.get(qid) in values for qid, values in SEVERE_FLAGS.items())


def _alignment(informative: int, severe: bool, score: float) -> Alignment:
    if informative < SURVEY.MIN_INFORMATIVE_ANSWERS:
        return Alignment.INCONCLUSIVE
    if severe or score >= SURVEY.SUPPORT_THRESHOLD:
        return Alignment.SUPPORTS
    if score <= SURVEY.AGAINST_THRESHOLD:
        return Alignment.DOES_NOT_SUPPORT
    return Alignment.MIXED


def assess_answers(
    status: Status,
    hint: Optional[PhenotypeHint],
    answers: Mapping[str, str],
) -> SurveyAssessment:
    """
    Score an answer map against the rule table of a phenotype hint.

    Hints without a rule table (including normal) are scored with the
    unspecified-autonomic rules.

    Example:
        >>> assessment = assess_answers(
        ...     Status.NEEDS_FOLLOWUP, PhenotypeHint.POTS_LIKE,
        ...     {"orthostatic": "yes", "tachy_upright": "yes"},
        ... )
        >>> assessment.alignment
        <Alignment.SUPPORTS: 'supports'>
    """
    hint = hint or PhenotypeHint.UNSPECIFIED_AUTONOMIC
    rules = RULES.get(hint, RULES[PhenotypeHint.UNSPECIFIED_AUTONOMIC])

    informative = support_votes = against_votes = 0
    for question_id, answer in answers.items():
        rule = rules.get(question_id)
        if rule is None:
            continue
        informative += 1
        if answer in rule.support:
            support_votes += 1
        elif answer in rule.against:
            against_votes += 1

    severe = has_severe_red_flag(answers)
    score = (support_votes - against_votes) / informative if informative else 0.0
    alignment = _alignment(informative, severe, score)

    return SurveyAssessment(
        status_context=status.value,
        hint_context=hint.value,
        answered_count=len(answers),
        informative_answers=informative,
        support_votes=support_votes,
        against_votes=against_votes,
        support_score=round(score, 3),
        alignment=alignment,
        severe_red_flag=severe,
        summary=(
            f"Survey alignment for {hint.label}: {alignment.value} "
            f"(score {score:.2f}, informative answers {informative})."
        ),
    )


def apply_survey(screening: ScreeningResult, symptoms: SymptomsRecord) -> SurveyAssessment:
    """
    Assess submitted answers and update the screening in place.

    Args:
        screening: Current assessment (mutated).
        symptoms: Validated answers from sanitize_answers.

    Returns:
        The SurveyAssessment, also stored on the screening.
    """
    status = screening.status
    hint = screening.phenotype_hint or PhenotypeHint.UNSPECIFIED_AUTONOMIC

    assessment = assess_answers(status, hint, symptoms.answer_map())
    screening.symptoms = symptoms
    screening.survey_assessment = assessment
    screening.add_note(assessment.summary)

    logger.info(
        f"Survey: hint={hint.value}, alignment={assessment.alignment.value}, "
        f"score={assessment.support_score}"
    )

    if status is not Status.NEEDS_FOLLOWUP:
        return assessment

    confidence = screening.phenotype_confidence

    if assessment.alignment is Alignment.SUPPORTS:
        screening.phenotype_confidence = confidence.promote() if confidence else Confidence.MEDIUM
        screening.phenotype_reason = (
            f"Survey answers align with {hint.label} symptoms and support follow-up."
        )

    elif assessment.alignment is Alignment.DOES_NOT_SUPPORT:
        if not assessment.severe_red_flag and confidence_rank(confidence) <= SURVEY.MAX_REVERT_RANK:
            logger.warning(f"Survey reverted {hint.value} follow-up to normal")
            screening.status = Status.NORMAL
            screening.phenotype_hint = PhenotypeHint.NORMAL
            screening.phenotype_confidence = Confidence.MEDIUM
            screening.phenotype_reason = (
                "Follow-up cluster signal was not supported by symptom answers in this window."
            )
            screening.questionnaire = normal_questionnaire()
            screening.add_note("Survey downgraded status to normal due to low symptom alignment.")
        else:
            screening.phenotype_confidence = confidence.demote() if confidence else Confidence.LOW
            screening.phenotype_reason = (
                "Follow-up signal remains, but symptom answers did not strongly match "
                "the predicted subtype."
            )

    elif assessment.alignment is Alignment.MIXED:
        if confidence_rank(confidence) >= 2:
            screening.phenotype_confidence = confidence.demote()
        screening.phenotype_reason = (
            f"Symptom answers were mixed for {hint.label} pattern; continue monitoring and re-check."
        )

    else:
        screening.phenotype_reason = "Not enough symptom answers yet to validate the follow-up pattern."

    if screening.status is Status.NEEDS_FOLLOWUP:
        screening.questionnaire = questionnaire_for(
            Status.NEEDS_FOLLOWUP, screening.phenotype_hint, screening.bp_data_present
        )

    return assessment
