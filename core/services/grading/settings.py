from __future__ import annotations

from dataclasses import dataclass
import os

POLICY_LLM = "llm"
POLICY_HEURISTIC = "heuristic"


def _env_bool(name: str, default: bool = False) -> bool:
    val = str(os.environ.get(name, "1" if default else "0")).strip().lower()
    return val in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except (TypeError, ValueError):
        return int(default)


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, str(default)))
    except (TypeError, ValueError):
        return float(default)


@dataclass(frozen=True)
class GradingSettings:
    total_weeks: int = 12
    default_credit: float = 1.5
    prediction_policy: str = POLICY_LLM
    prediction_timeout_s: int = 20
    prediction_max_models: int = 2
    retry_sleep_ms: int = 300
    strong_week_ratio: float = 0.7
    audit_enabled: bool = True


def get_grading_settings() -> GradingSettings:
    policy = str(os.environ.get("GRADE_PREDICTION_POLICY", POLICY_LLM)).strip().lower()
    if policy not in {POLICY_LLM, POLICY_HEURISTIC}:
        policy = POLICY_LLM
    return GradingSettings(
        total_weeks=max(_env_int("GRADE_TOTAL_WEEKS", 12), 1),
        default_credit=max(_env_float("GRADE_DEFAULT_CREDIT", 1.5), 0.01),
        prediction_policy=policy,
        prediction_timeout_s=max(_env_int("GRADE_PREDICTION_TIMEOUT_S", 20), 1),
        prediction_max_models=max(_env_int("GRADE_PREDICTION_MAX_MODELS", 2), 1),
        retry_sleep_ms=max(_env_int("GRADE_RETRY_SLEEP_MS", 300), 0),
        strong_week_ratio=min(max(_env_float("GRADE_STRONG_WEEK_RATIO", 0.7), 0.0), 1.0),
        audit_enabled=_env_bool("GRADE_AUDIT_ENABLED", default=True),
    )
