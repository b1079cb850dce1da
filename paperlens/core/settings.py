"""Runtime settings for the CLI and session controller."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from paperlens.core.config import (
    DEFAULT_CONFIG_PATH,
    PROJECT_ROOT,
    apply_config_env_overrides,
    build_effective_config,
    hash_config_dict,
    load_config,
    redacted,
)

DOTENV_PATH = PROJECT_ROOT / ".env"
USAGE_DB_NAME = "usage_logs.sqlite3"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for rendering, provider routing, and local state.

    Attributes:
        state_dir: Directory holding the local SQLite quota log.
        llm_provider: Default provider id for every capability.
        analysis_provider: Provider override for document analysis.
        chat_provider: Provider override for follow-up questions.
        chat_model: Model used for follow-up questions.
        analysis_model: Model used for structured document analysis.
        max_pages: Page cap per uploaded PDF.
        render_dpi: Rasterization resolution.
        jpeg_quality: JPEG quality for page images.
        analysis_temperature: Sampling temperature for analysis calls.
        max_output_tokens: Output token cap for analysis calls.
    """

    state_dir: Path
    llm_provider: str
    chat_model: str
    analysis_model: str
    max_pages: int
    render_dpi: int
    jpeg_quality: int
    analysis_temperature: Optional[float]
    max_output_tokens: int
    analysis_provider: str = ""
    chat_provider: str = ""
    analysis_provider_fallback: str = ""
    chat_provider_fallback: str = ""
    llm_base_url: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    llm_api_key: str = ""
    config_path: Path | None = None
    config_hash: str | None = None
    config_effective: Dict[str, Any] | None = None

    @property
    def usage_db_path(self) -> Path:
        return self.state_dir / USAGE_DB_NAME


def load_env(path: Path) -> None:
    """Load environment variables from a .env-style file.

    Args:
        path (Path): Filesystem path value.
    """
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def load_settings(config_path: Path | None = None) -> Settings:
    """Load runtime settings from config file, environment variables, and defaults.

    Args:
        config_path (Path | None): Path to the configuration file.

    Returns:
        Settings: Frozen settings object.
    """
    load_env(DOTENV_PATH)
    cfg_path = config_path or Path(os.getenv("PAPERLENS_CONFIG", DEFAULT_CONFIG_PATH))
    cfg = load_config(cfg_path)
    apply_config_env_overrides(cfg, os.environ)
    effective = build_effective_config(cfg, os.environ, project_root=PROJECT_ROOT)
    public = redacted(effective)
    return Settings(
        state_dir=Path(effective["state_dir"]),
        llm_provider=str(effective["llm_provider"]),
        chat_model=str(effective["chat_model"]),
        analysis_model=str(effective["analysis_model"]),
        max_pages=int(effective["max_pages"]),
        render_dpi=int(effective["render_dpi"]),
        jpeg_quality=int(effective["jpeg_quality"]),
        analysis_temperature=effective["analysis_temperature"],
        max_output_tokens=int(effective["max_output_tokens"]),
        analysis_provider=str(effective["analysis_provider"]),
        chat_provider=str(effective["chat_provider"]),
        analysis_provider_fallback=str(effective["analysis_provider_fallback"]),
        chat_provider_fallback=str(effective["chat_provider_fallback"]),
        llm_base_url=str(effective["llm_base_url"]),
        openai_api_key=str(effective["openai_api_key"]),
        anthropic_api_key=str(effective["anthropic_api_key"]),
        llm_api_key=str(effective["llm_api_key"]),
        config_path=cfg_path if cfg_path.exists() else None,
        config_hash=hash_config_dict(public),
        config_effective=public,
    )
