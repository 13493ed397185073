"""OpenRouter chat model wiring for grade prediction."""

import logging
import os
from typing import Any, Dict, List

from django.db import OperationalError, ProgrammingError
from langchain_openai import ChatOpenAI

logger = logging.getLogger(__name__)

OPENROUTER_API_BASE = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "google/gemini-2.5-flash-lite"
DEFAULT_BACKUP_MODELS = (
    "openai/gpt-5-nano",
    "meta-llama/llama-3.3-70b-instruct:free",
)
# The answer is a single `<LETTER>:<TAG>` line.
GRADE_ANSWER_MAX_TOKENS = 64


def split_model_list(raw: str | None) -> List[str]:
    """Accept one model per line or a comma separated list."""
    names = (raw or "").replace("\r", "\n").replace(",", "\n").split("\n")
    return [n.strip() for n in names if n.strip()]


def _env_openrouter_config() -> Dict[str, Any]:
    return {
        "api_key": os.environ.get("OPENROUTER_API_KEY", "").strip(),
        "model": os.environ.get("OPENROUTER_MODEL", "").strip() or DEFAULT_MODEL,
        "backup_models": split_model_list(os.environ.get("OPENROUTER_BACKUP_MODELS"))
        or list(DEFAULT_BACKUP_MODELS),
        "timeout": int(os.environ.get("OPENROUTER_TIMEOUT", "45")),
        "max_retries": int(os.environ.get("OPENROUTER_MAX_RETRIES", "1")),
        "temperature": float(os.environ.get("OPENROUTER_TEMPERATURE", "0.2")),
    }


def _apply_admin_override(cfg: Dict[str, Any], row: Any) -> Dict[str, Any]:
    key = (row.openrouter_api_key or "").strip()
    model = (row.openrouter_model or "").strip()
    backups = split_model_list(row.openrouter_backup_models)
    return {
        **cfg,
        "api_key": key or cfg["api_key"],
        "model": model or cfg["model"],
        "backup_models": backups or cfg["backup_models"],
        "timeout": int(row.openrouter_timeout),
        "max_retries": int(row.openrouter_max_retries),
        "temperature": float(row.openrouter_temperature),
    }


def get_runtime_openrouter_config() -> Dict[str, Any]:
    """Environment values, overridden by the newest active LLMConfiguration row."""
    cfg = _env_openrouter_config()
    try:
        from core.models import LLMConfiguration

        row = LLMConfiguration.objects.filter(is_active=True).order_by("-updated_at", "-id").first()
    except (OperationalError, ProgrammingError) as exc:
        # Tables missing before the first migrate.
        logger.debug("LLMConfiguration unavailable, using env config: %r", exc)
        return cfg
    if row is None:
        return cfg
    return _apply_admin_override(cfg, row)


def get_backup_models(primary_model: str, configured_backup_models: List[str] | None = None) -> List[str]:
    ordered = [primary_model, *(configured_backup_models or DEFAULT_BACKUP_MODELS)]
    seen: List[str] = []
    for name in ordered:
        name = (name or "").strip()
        if name and name not in seen:
            seen.append(name)
    return seen


def build_llm(model_name: str, cfg: Dict[str, Any]) -> ChatOpenAI:
    return ChatOpenAI(
        openai_api_key=cfg.get("api_key"),
        openai_api_base=OPENROUTER_API_BASE,
        model_name=model_name,
        temperature=float(cfg.get("temperature", 0.2)),
        max_tokens=GRADE_ANSWER_MAX_TOKENS,
        request_timeout=int(cfg.get("timeout", 45)),
        max_retries=int(cfg.get("max_retries", 1)),
        default_headers={
            "HTTP-Referer": "http://localhost:8000",
            "X-Title": "LabGrade",
        },
    )


def invoke_text(llm: ChatOpenAI, prompt: str) -> str:
    message = llm.invoke(prompt)
    content = getattr(message, "content", message)
    if isinstance(content, list):
        # Some providers return content blocks.
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return str(content or "")
