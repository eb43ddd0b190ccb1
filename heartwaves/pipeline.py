"""
HeartWaves Screening Pipeline.

End-to-end entry points tying the screening stages together:

    ImportedWindow
        → BaselineScreener (rules)
        → ClusteringScorer (k-means artifact)
        → merge + quick-check calibration
        → normalization
        = ScreeningResult

    ScreeningResult + answers
        → sanitize against the current questionnaire
        → normalization
        → survey reconciliation
        = SurveySubmission

Usage:
    python -m heartwaves.pipeline window.json
    python -m heartwaves.pipeline window.json --answers answers.json
    python -m heartwaves.pipeline window.json --model data/models/clustering_baseline/model.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from heartwaves.analysis.reconcile import merge_clustering_result, normalize_assessment
from heartwaves.analysis.survey import (
    SurveyAssessment,
    SymptomsRecord,
    apply_survey,
    sanitize_answers,
)
from heartwaves.config import PATHS
from heartwaves.data.records import ImportedWindow, OrthostaticInput, load_imported_window
from heartwaves.models.clustering import score_clustering
from heartwaves.rules.baseline import ScreeningResult, screen_daily_series

logger = logging.getLogger(__name__)


@dataclass
class SurveySubmission:
    """Outcome of one answer submission."""

    symptoms: SymptomsRecord
    screening: ScreeningResult
    survey_assessment: SurveyAssessment

    def to_dict(self) -> dict:
        return {
            "symptoms": self.symptoms.to_dict(),
            "screening": self.screening.to_dict(),
            "survey_assessment": self.survey_assessment.to_dict(),
        }


def run_screening(
    window: ImportedWindow,
    orthostatic_override: Optional[OrthostaticInput] = None,
    model_path: Union[str, Path] = PATHS.DEFAULT_MODEL_PATH,
) -> ScreeningResult:
    """
    Screen an imported window with rules and the clustering model.

    Args:
        window: Imported daily window.
        orthostatic_override: Quick-check vitals entered for this session.
        model_path: Path to the k-means artifact (missing file = rules only).

    Returns:
        Normalized ScreeningResult.

    Raises:
        ScreeningInputError: If the window has no daily rows.

    Example:
        >>> window = load_imported_window("tmp/session.json")
        >>> screening = run_screening(window)
        >>> print(screening.status, screening.phenotype_hint)
    """
    screening = screen_daily_series(window.daily)

    model_result = score_clustering(
        window, orthostatic_override=orthostatic_override, model_path=model_path
    )
    merge_clustering_result(screening, model_result)
    normalize_assessment(screening)

    logger.info(
        f"Screening complete: status={screening.status.value}, "
        f"hint={screening.phenotype_hint.value}, "
        f"confidence={screening.phenotype_confidence.value}"
    )
    return screening


def submit_answers(
    screening: ScreeningResult,
    answers: Mapping[str, Any],
    updated_at: Optional[str] = None,
) -> SurveySubmission:
    """
    Validate survey answers and reconcile them with the screening in place.

    Args:
        screening: Current assessment of the session (mutated).
        answers: Question id -> selected option.
        updated_at: Submission timestamp (defaults to now, UTC).

    Returns:
        SurveySubmission with the validated answers and the updated screening.
    """
    symptoms = sanitize_answers(screening.questionnaire, answers, updated_at=updated_at)

    normalize_assessment(screening)
    assessment = apply_survey(screening, symptoms)

    return SurveySubmission(symptoms=symptoms, screening=screening, survey_assessment=assessment)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Screen an imported wearable window for autonomic follow-up patterns"
    )
    parser.add_argument(
        "window",
        type=str,
        help="JSON file with a 'daily' array (and optional age / orthostatic_input)"
    )
    parser.add_argument(
        "--answers",
        type=str,
        default=None,
        help="JSON object of question_id -> selected option to submit after screening"
    )
    parser.add_argument(
        "--model",
        type=str,
        default=PATHS.DEFAULT_MODEL_PATH,
        help="Path to the clustering model artifact"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        window = load_imported_window(args.window)
        screening = run_screening(window, model_path=args.model)

        if args.answers:
            with open(args.answers, 'r') as f:
                answers = json.load(f)
            if not isinstance(answers, dict):
                logger.error("answers must be an object of question_id => selected_option")
                return 1
            output = submit_answers(screening, answers).to_dict()
        else:
            output = {"screening": screening.to_dict()}
    except Exception as e:
        logger.error(f"Screening failed: {e}")
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
