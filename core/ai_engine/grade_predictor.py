"""Predictive policy backed by an OpenRouter chat model."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from core.ai_engine import llm_client
from core.ai_engine.prompt import GRADE_PREDICTION_TEMPLATE
from core.services.shared.dto import PredictionRequest, PredictionResponse
from core.services.shared.errors import PredictionUnavailableError

logger = logging.getLogger(__name__)

_ANSWER_RE = re.compile(r"\b([ABCDF])\s*:\s*([A-Za-z][A-Za-z /]*)")


def build_prompt(request: PredictionRequest) -> str:
    weekly = request.get("weeklyLabMarks") or []
    weekly_lines = "\n".join(f"- week {w['week']}: {w['labMarks']:g}, {w['attendance']}" for w in weekly) or "-"
    return GRADE_PREDICTION_TEMPLATE.format(
        recorded_weeks=request.get("recordedWeeks", len(weekly)),
        expected_weeks=request.get("expectedWeeks", "-"),
        total_percentage=f"{float(request['totalPercentage']):.2f}",
        total_lab_marks=f"{float(request['actualScores']['totalLabMarks']):g}",
        max_lab=f"{float(request['maxScores']['lab']):g}",
        quiz_score=f"{float(request['actualScores']['quizScore']):g}",
        max_quiz=f"{float(request['maxScores']['quiz']):g}",
        viva_score=f"{float(request['actualScores']['vivaScore']):g}",
        max_viva=f"{float(request['maxScores']['viva']):g}",
        attendance_percentage=request["actualScores"]["attendancePercentage"],
        weighted_lab=request["weightedScores"]["lab"],
        weighted_quiz=request["weightedScores"]["quiz"],
        weighted_viva=request["weightedScores"]["viva"],
        weighted_attendance=request["weightedScores"]["attendance"],
        weekly_lines=weekly_lines,
    )


def extract_final_grade(text: str) -> str:
    """Pull `<LETTER>:<TAG>` out of a model answer such as `Predicted Grade: B:Improving`."""
    cleaned = str(text or "").replace("*", "").replace("`", "").strip()
    for line in reversed(cleaned.splitlines()):
        match = _ANSWER_RE.search(line)
        if match:
            return f"{match.group(1)}:{match.group(2).strip()}"
    return cleaned


class LLMPredictivePolicy:
    def __init__(self, *, cfg: Dict[str, Any] | None = None, primary_model: str | None = None):
        self.cfg = cfg
        self.primary_model = primary_model

    def predict(self, request: PredictionRequest) -> PredictionResponse:
        prompt = build_prompt(request)
        result = llm_client.invoke_with_model_fallback(
            prompt=prompt,
            cfg=self.cfg,
            primary_model=self.primary_model,
        )
        if not result.get("ok"):
            raise PredictionUnavailableError(f"LLM unavailable: {result.get('error') or 'unknown error'}")

        logger.info(
            "[LLM GRADE] model=%s fallback=%s ms=%s",
            result.get("model"),
            result.get("fallback_used"),
            result.get("llm_ms"),
        )
        return {"finalGrade": extract_final_grade(result.get("text", ""))}
