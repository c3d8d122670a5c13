"""Load settings.yaml and env configuration."""
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from talentdesk.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
DEMO_DATA_PATH: Path = CONFIG_DIR / "demo_data.yaml"
REPORTS_DIR: Path = ROOT_DIR / "reports"

DEFAULTS: dict[str, Any] = {
    "backend": {
        "url": "",
        "anon_key": "",
        "timeout": 15,
    },
    "inference": {
        "base_url": "https://api.groq.com/openai/v1",
        "model": "llama-3.3-70b-versatile",
        "max_resume_chars": 6000,
        "max_tokens": 900,
    },
    "insights": {
        "base_url": "http://localhost:11434",
        "model": "llama3.2:latest",
        "max_resume_chars": 3000,
        "timeout": 120,
    },
    "review": {
        "max_workers": 4,
        "persist_parsed": False,
    },
}

# env var -> (section, key, cast)
_ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "BACKEND_URL": ("backend", "url", str),
    "BACKEND_ANON_KEY": ("backend", "anon_key", str),
    "INFERENCE_BASE_URL": ("inference", "base_url", str),
    "GROQ_LLM_MODEL": ("inference", "model", str),
    "OLLAMA_URL": ("insights", "base_url", str),
    "OLLAMA_MODEL": ("insights", "model", str),
    "REVIEW_MAX_WORKERS": ("review", "max_workers", int),
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_settings(path: Path | None = None) -> dict[str, Any]:
    """Defaults, overlaid by settings.yaml, overlaid by environment variables."""
    path = path or SETTINGS_PATH
    settings = copy.deepcopy(DEFAULTS)
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        settings = _merge(settings, data)
    else:
        log.debug("No settings file at %s, using defaults", path)

    for env_key, (section, key, cast) in _ENV_OVERRIDES.items():
        raw = get_env(env_key)
        if not raw:
            continue
        try:
            settings[section][key] = cast(raw)
        except ValueError:
            log.warning("Ignoring %s=%r (expected %s)", env_key, raw, cast.__name__)
    return settings


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def ensure_dirs() -> None:
    for d in (REPORTS_DIR,):
        d.mkdir(parents=True, exist_ok=True)
