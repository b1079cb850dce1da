"""Configuration loader and merger for paperlens.

``load_settings`` reads the ``[paperlens]`` table of a TOML file, layers
environment variables on top, and coerces every value through the field
table below.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, NamedTuple

try:
    import tomllib
except ImportError:  # pragma: no cover - Python < 3.11
    import tomli as tomllib  # type: ignore


PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.toml"

DEFAULT_MAX_PAGES = 10
DEFAULT_RENDER_DPI = 108  # 1.5x the 72 dpi PDF user space
DEFAULT_JPEG_QUALITY = 80
DEFAULT_ANALYSIS_TEMPERATURE = 0.2
DEFAULT_MAX_OUTPUT_TOKENS = 8192
DEFAULT_CHAT_MODEL = "gpt-4.1-mini"

# Routing keys mirrored into os.environ so the provider router sees them.
ENV_CONFIG_MAP = {
    "LLM_PROVIDER": "llm_provider",
    "ANALYSIS_PROVIDER": "analysis_provider",
    "CHAT_PROVIDER": "chat_provider",
    "LLM_BASE_URL": "llm_base_url",
    "CHAT_MODEL": "chat_model",
    "ANALYSIS_MODEL": "analysis_model",
}


def load_config(path: Path | None) -> Dict[str, Any]:
    """Load a TOML config file and return the paperlens section or top-level dict."""
    if not path or not path.exists():
        return {}
    data = tomllib.loads(path.read_text(encoding="utf-8"))
    section = data.get("paperlens") if isinstance(data, dict) else None
    if isinstance(section, dict):
        return section
    return data or {}


def hash_config_dict(config: Mapping[str, Any]) -> str:
    """Return a stable SHA-256 hash of a config mapping."""
    payload = json.dumps(config, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _text(value: Any, default: Any) -> str:
    return str(value or "").strip() or str(default or "")


def _int_between(low: int, high: int | None = None) -> Callable[[Any, Any], int]:
    def _coerce(value: Any, default: Any) -> int:
        try:
            number = int(value)
        except (TypeError, ValueError):
            number = int(default)
        number = max(low, number)
        return number if high is None else min(high, number)

    return _coerce


def _float(value: Any, default: Any) -> float | None:
    if value is None or str(value).strip() == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class _Field(NamedTuple):
    env_key: str
    coerce: Callable[[Any, Any], Any]
    default: Any


FIELDS: Dict[str, _Field] = {
    "llm_provider": _Field("LLM_PROVIDER", _text, "openai"),
    "analysis_provider": _Field("ANALYSIS_PROVIDER", _text, ""),
    "chat_provider": _Field("CHAT_PROVIDER", _text, ""),
    "analysis_provider_fallback": _Field("ANALYSIS_PROVIDER_FALLBACK", _text, ""),
    "chat_provider_fallback": _Field("CHAT_PROVIDER_FALLBACK", _text, ""),
    "llm_base_url": _Field("LLM_BASE_URL", _text, ""),
    "chat_model": _Field("CHAT_MODEL", _text, DEFAULT_CHAT_MODEL),
    "max_pages": _Field("MAX_PAGES", _int_between(1), DEFAULT_MAX_PAGES),
    "render_dpi": _Field("RENDER_DPI", _int_between(36), DEFAULT_RENDER_DPI),
    "jpeg_quality": _Field("JPEG_QUALITY", _int_between(1, 95), DEFAULT_JPEG_QUALITY),
    "analysis_temperature": _Field("ANALYSIS_TEMPERATURE", _float, DEFAULT_ANALYSIS_TEMPERATURE),
    "max_output_tokens": _Field("MAX_OUTPUT_TOKENS", _int_between(1), DEFAULT_MAX_OUTPUT_TOKENS),
    "openai_api_key": _Field("OPENAI_API_KEY", _text, ""),
    "anthropic_api_key": _Field("ANTHROPIC_API_KEY", _text, ""),
    "llm_api_key": _Field("LLM_API_KEY", _text, ""),
}


def _env_or_config(env: Mapping[str, str], config: Mapping[str, Any], env_key: str, config_key: str, default: Any) -> Any:
    if env.get(env_key, "") != "":
        return env[env_key]
    if config_key in config:
        return config[config_key]
    return default


def build_effective_config(
    config: Mapping[str, Any],
    env: Mapping[str, str],
    *,
    project_root: Path,
) -> Dict[str, Any]:
    """Build the effective config with env overrides applied.

    Environment values win over the file. API keys are included so callers
    deal with one mapping; :func:`redacted` strips them before hashing.
    """
    effective: Dict[str, Any] = {}
    for key, field in FIELDS.items():
        raw = _env_or_config(env, config, field.env_key, key, field.default)
        effective[key] = field.coerce(raw, field.default)

    chat_model = effective["chat_model"]
    effective["analysis_model"] = _text(_env_or_config(env, config, "ANALYSIS_MODEL", "analysis_model", ""), chat_model)

    state_dir = Path(_env_or_config(env, config, "PAPERLENS_STATE_DIR", "state_dir", "sqlite"))
    if not state_dir.is_absolute():
        state_dir = project_root / state_dir
    effective["state_dir"] = str(state_dir)
    return effective


def redacted(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``config`` with API keys removed."""
    return {key: value for key, value in config.items() if not key.endswith("_api_key")}


def apply_config_env_overrides(config: Mapping[str, Any], env: Mapping[str, str]) -> None:
    """Export provider routing keys from the config file into ``os.environ``.

    Keys already set in the environment are left alone. Secrets are never
    exported.
    """
    for env_key, config_key in ENV_CONFIG_MAP.items():
        if env.get(env_key, "") != "":
            continue
        value_str = str(config.get(config_key) or "").strip()
        if value_str:
            os.environ[env_key] = value_str
