from __future__ import annotations

import logging
import time
from typing import Any, Dict, List

from core.ai_engine.llm import build_llm, get_backup_models, get_runtime_openrouter_config, invoke_text
from core.services.grading.settings import get_grading_settings

logger = logging.getLogger(__name__)


def _now() -> float:
    return time.time()


def runtime_config() -> Dict[str, Any]:
    return get_runtime_openrouter_config()


def backup_models(model: str, configured: Any) -> List[str]:
    return get_backup_models(model, configured)


def build(model_name: str, cfg: Dict[str, Any]) -> Any:
    return build_llm(model_name, cfg)


def invoke(llm: Any, text: str) -> str:
    return invoke_text(llm, text)


def get_retry_sleep_seconds() -> float:
    settings = get_grading_settings()
    return max(float(settings.retry_sleep_ms), 0.0) / 1000.0


def invoke_with_model_fallback(
    *,
    prompt: str,
    cfg: Dict[str, Any] | None = None,
    primary_model: str | None = None,
) -> Dict[str, Any]:
    """
    Try the primary model, then backups, within one overall deadline.

    Each model gets a single attempt whose request timeout is what remains
    of the grading prediction timeout; no model is started once it is spent.
    """
    runtime = dict(cfg or runtime_config())
    settings = get_grading_settings()
    deadline_s = float(settings.prediction_timeout_s)
    runtime["timeout"] = min(int(runtime.get("timeout", deadline_s) or deadline_s), int(deadline_s))

    selected_model = str(primary_model or runtime.get("model") or "").strip()
    candidates = backup_models(selected_model, runtime.get("backup_models"))
    candidates = candidates[: max(int(settings.prediction_max_models), 1)]

    started = _now()
    last_error = ""
    for idx, model_name in enumerate(candidates):
        t0 = _now()
        remaining = deadline_s - (t0 - started)
        if remaining <= 0:
            last_error = f"deadline exceeded before {model_name}: {last_error}"
            break
        # One attempt per model, bounded by what is left of the deadline.
        attempt_cfg = {
            **runtime,
            "timeout": max(int(min(runtime["timeout"], remaining)), 1),
            "max_retries": 0,
        }
        try:
            llm = build(model_name, attempt_cfg)
            output = str(invoke(llm, prompt) or "").strip()
            return {
                "ok": True,
                "text": output,
                "model": model_name,
                "fallback_used": idx > 0,
                "llm_ms": int(max((_now() - t0) * 1000, 0)),
            }
        except Exception as exc:
            last_error = str(exc)
            logger.warning("[LLM FAIL] model=%s err=%r", model_name, exc)
            if idx < len(candidates) - 1:
                time.sleep(get_retry_sleep_seconds())
    return {
        "ok": False,
        "text": "",
        "model": "",
        "fallback_used": len(candidates) > 1,
        "llm_ms": 0,
        "error": last_error,
    }
