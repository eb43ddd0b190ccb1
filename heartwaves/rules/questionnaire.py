"""
Follow-up Questionnaires.

Fixed question sets selected deterministically from the screening status,
the phenotype hint and whether blood-pressure data is present:

    normal                 -> fatigue / dizziness / palpitations
    pots_like              -> orthostatic intolerance set
    ist_like               -> resting tachycardia set
    oh_like  (+/- BP)      -> orthostatic hypotension set
    vvs_like (+/- BP)      -> vasovagal set
    anything else          -> unspecified autonomic fallback
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from .phenotype import PhenotypeHint, Status


@dataclass(frozen=True)
class Question:
    """A single follow-up question with its ordinal/nominal options."""

    id: str
    prompt: str
    options: Tuple[str, ...]

    def to_dict(self) -> dict:
        return {"id": self.id, "prompt": self.prompt, "options": list(self.options)}


def _q(qid: str, prompt: str, options: str) -> Question:
    return Question(qid, prompt, tuple(options.split()))


NORMAL_QUESTIONS: Tuple[Question, ...] = (
    _q("fatigue", "In the last 30 days, have you had unusual fatigue?", "no mild moderate severe"),
    _q("dizziness", "In the last 30 days, have you had dizziness when standing?", "no sometimes often"),
    _q("palpitations", "In the last 30 days, have you had palpitations/rapid heartbeat episodes?",
       "no sometimes often"),
)

POTS_QUESTIONS: Tuple[Question, ...] = (
    _q("orthostatic", "Do symptoms worsen when standing and improve when lying down?", "no unsure yes"),
    _q("tachy_upright", "Do you notice rapid heartbeat shortly after standing?", "no unsure yes"),
    _q("brain_fog", "Any brain fog, fatigue, or reduced concentration on upright days?",
       "no mild moderate severe"),
    _q("heat_trigger", "Do heat, hot showers, or long standing make symptoms worse?", "no sometimes often"),
    _q("hydration", "Do fluids/salt intake noticeably change your symptoms?", "no unsure yes"),
)

IST_QUESTIONS: Tuple[Question, ...] = (
    _q("fast_resting_hr", "Do you notice persistent fast heart rate even while resting?", "no sometimes often"),
    _q("palpitations_rest", "Do palpitations happen while seated or lying down?", "no sometimes often"),
    _q("standing_relation", "Are symptoms mainly triggered by standing (vs present regardless of posture)?",
       "mostly_posture mixed regardless_posture"),
    _q("stimulants", "Any caffeine/energy drink or stimulant use on high-HR days?", "no low high"),
    _q("med_changes", "Any medication changes in the last 30 days?", "no unsure yes"),
)

OH_QUESTIONS: Tuple[Question, ...] = (
    _q("dizzy_standing", "Do you feel lightheaded within a few minutes of standing?", "no sometimes often"),
    _q("vision_dim", "Do you notice dim vision or weakness when upright?", "no sometimes often"),
    _q("presyncope", "Any near-fainting/fainting episodes in the last 30 days?", "no near_faint faint"),
    _q("recovery_lying", "Do symptoms improve quickly after sitting or lying down?", "no unsure yes"),
)
OH_BP_PRESENT = _q("bp_drop", "If measured, does your blood pressure drop after standing?", "no unsure yes")
OH_BP_MISSING = _q("bp_not_measured",
                   "Have you measured blood pressure lying and then standing during symptoms?",
                   "not_measured once multiple_times")

VVS_QUESTIONS: Tuple[Question, ...] = (
    _q("trigger_pattern", "Do episodes follow triggers like prolonged standing, heat, pain, or stress?",
       "no sometimes often"),
    _q("warning_signs", "Before symptoms, do you get nausea, sweating, or tunnel vision?", "no sometimes often"),
    _q("fainting", "Any brief loss of consciousness in the last 30 days?", "no once multiple"),
    _q("position_relief", "Do symptoms improve after lying down?", "no unsure yes"),
)
VVS_BP_PRESENT = _q("bp_during_event", "If measured during events, does blood pressure drop?", "no unsure yes")
VVS_BP_MISSING = _q("bp_not_measured",
                    "Would you be able to record seated/standing BP during a future episode?",
                    "no maybe yes")

UNSPECIFIED_QUESTIONS: Tuple[Question, ...] = (
    _q("orthostatic", "Do symptoms worsen when standing and improve when lying down?", "no unsure yes"),
    _q("presyncope", "Any near-fainting or fainting episodes in the last 30 days?", "no near_faint faint"),
    _q("tachy", "Do you notice a rapid heart rate upon standing?", "no unsure yes"),
    _q("hydration", "Have you increased fluids/salt recently or been dehydrated?", "no unsure yes"),
    _q("illness", "Any recent illness, fever, or new medication changes?", "no unsure yes"),
)


def normal_questionnaire() -> List[Question]:
    """The fixed questionnaire shown for a normal screening."""
    return list(NORMAL_QUESTIONS)


def questionnaire_for(status: Status, hint: PhenotypeHint, bp_data_present: bool) -> List[Question]:
    """
    Select the follow-up questionnaire.

    Args:
        status: Screening status.
        hint: Current phenotype hint.
        bp_data_present: Whether blood-pressure data exists in the window.

    Returns:
        Ordered list of questions (a fresh list on every call).
    """
    if status is Status.NORMAL:
        return normal_questionnaire()

    if hint is PhenotypeHint.POTS_LIKE:
        return list(POTS_QUESTIONS)
    if hint is PhenotypeHint.IST_LIKE:
        return list(IST_QUESTIONS)
    if hint is PhenotypeHint.OH_LIKE:
        return list(OH_QUESTIONS) + [OH_BP_PRESENT if bp_data_present else OH_BP_MISSING]
    if hint is PhenotypeHint.VVS_LIKE:
        return list(VVS_QUESTIONS) + [VVS_BP_PRESENT if bp_data_present else VVS_BP_MISSING]
    return list(UNSPECIFIED_QUESTIONS)
