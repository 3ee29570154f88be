"""Runtime configuration read from the environment and ``config/models.yaml``."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

DEFAULT_MERGE_INSTRUCTION = (
    "You are an identity resolution engine. Given a customer record and a support chat transcript, "
    "resolve the customer's final state and return STRICT JSON."
)


@dataclass
class ModelPreset:
    """Tuning for one remote call.

    Attributes:
        model: Model identifier on the Generative Language API
        temperature: Sampling temperature, ``None`` leaves the server default
        thinking_budget: Token budget for model-side thinking, ``None`` disables the setting
        instruction: System instruction sent with the call
    """

    model: str
    temperature: float | None = None
    thinking_budget: int | None = None
    instruction: str | None = None


@dataclass
class ModelPresets:
    fast: ModelPreset
    deep: ModelPreset
    synthesis: ModelPreset
    summary: ModelPreset


@dataclass
class Settings:
    api_key: str | None = None
    api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    state_dir: Path = field(default_factory=lambda: Path.cwd() / "lab_state")
    inter_item_delay: float = 1.5
    path_timeout: float = 180.0
    request_timeout: float = 120.0
    seed_count: int = 5
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])
    presets: ModelPresets = field(default_factory=lambda: load_model_presets())


def _preset(raw: dict | None, *, default_model: str, instruction: str | None = None) -> ModelPreset:
    raw = raw or {}
    if raw.get("instruction"):
        instruction = str(raw["instruction"])
    elif instruction and raw.get("instruction_suffix"):
        instruction = f"{instruction}\n{raw['instruction_suffix']}"
    temperature = raw.get("temperature")
    budget = raw.get("thinking_budget")
    return ModelPreset(
        model=str(raw.get("model") or default_model),
        temperature=float(temperature) if temperature is not None else None,
        thinking_budget=int(budget) if budget is not None else None,
        instruction=instruction,
    )


def load_model_presets(path: Path | None = None) -> ModelPresets:
    path = path or CONFIG_DIR / "models.yaml"
    data: dict = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}

    merge = str(data.get("merge_instruction") or DEFAULT_MERGE_INSTRUCTION).strip()
    return ModelPresets(
        fast=_preset(data.get("fast"), default_model="gemini-3-flash-preview", instruction=merge),
        deep=_preset(data.get("deep"), default_model="gemini-3-pro-preview", instruction=merge),
        synthesis=_preset(data.get("synthesis"), default_model="gemini-3-flash-preview"),
        summary=_preset(data.get("summary"), default_model="gemini-3-flash-lite-latest"),
    )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    """Build :class:`Settings` from environment variables."""

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]

    state_env = os.getenv("RESOLUTION_LAB_STATE_DIR")
    settings = Settings(
        api_key=os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or None,
        api_base=os.getenv("GEMINI_API_BASE") or Settings.api_base,
        inter_item_delay=_env_float("RESOLUTION_LAB_ITEM_DELAY", 1.5),
        path_timeout=_env_float("RESOLUTION_LAB_PATH_TIMEOUT", 180.0),
        seed_count=int(_env_float("RESOLUTION_LAB_SEED_COUNT", 5)),
    )
    if state_env:
        settings.state_dir = Path(state_env).expanduser().resolve()
    if origins:
        settings.cors_origins = origins
    return settings
