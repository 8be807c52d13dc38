"""Configuration loader for LLM tasks (response judging)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .types import JudgeConfigStatus

DEFAULT_TASKS: dict[str, dict[str, Any]] = {
    "response_judging": {
        "model": "",
        "model_env": "JUDGE_MODEL_ID",
        "api_key_env": "HF_API_TOKEN",
        "text_generation_url": "https://router.huggingface.co/hf-inference/models/{model}",
        "chat_base_url": "https://router.huggingface.co/v1",
        "max_new_tokens": 512,
        "temperature": 0.1,
        "top_p": 0.9,
        "timeout_ms": 60000,
    },
}


@dataclass(frozen=True)
class JudgeSettings:
    model_id: str
    api_token: str
    model_env: str = "JUDGE_MODEL_ID"
    api_key_env: str = "HF_API_TOKEN"
    text_generation_url: str = DEFAULT_TASKS["response_judging"]["text_generation_url"]
    chat_base_url: str = DEFAULT_TASKS["response_judging"]["chat_base_url"]
    max_new_tokens: int = 512
    temperature: float = 0.1
    top_p: float = 0.9
    timeout_ms: int = 60000

    def validate(self) -> JudgeConfigStatus:
        missing = []
        if not self.api_token:
            missing.append(self.api_key_env)
        if not self.model_id:
            missing.append(self.model_env)
        return JudgeConfigStatus(is_valid=not missing, missing=tuple(missing))


class LLMTaskConfigLoader:
    """Loads task-specific LLM settings from config/llm_tasks.yaml."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "llm_tasks.yaml"
        self.config_path = config_path
        self._config: dict[str, Any] | None = None

    def _load_config(self) -> None:
        if self._config is not None:
            return
        if not self.config_path.exists():
            self._config = {}
            return
        with self.config_path.open("r", encoding="utf-8") as handle:
            self._config = yaml.safe_load(handle) or {}

    def get_task(self, task_name: str) -> Dict[str, Any]:
        """Return merged task settings with defaults applied."""
        self._load_config()
        base = DEFAULT_TASKS.get(task_name, {})
        user_tasks = (self._config or {}).get("llm_tasks", {})
        user_task = user_tasks.get(task_name, {}) if isinstance(user_tasks, dict) else {}
        merged = dict(base)
        if isinstance(user_task, dict):
            merged.update({k: v for k, v in user_task.items() if v not in (None, "")})
        return merged

    def judge_settings(self, environ: Optional[Mapping[str, str]] = None) -> JudgeSettings:
        """Resolve the judge task against the environment; env wins over the file."""
        env = os.environ if environ is None else environ
        task = self.get_task("response_judging")
        model_env = task["model_env"]
        api_key_env = task["api_key_env"]
        return JudgeSettings(
            model_id=env.get(model_env, "") or task.get("model", ""),
            api_token=env.get(api_key_env, ""),
            model_env=model_env,
            api_key_env=api_key_env,
            text_generation_url=task["text_generation_url"],
            chat_base_url=task["chat_base_url"],
            max_new_tokens=int(task["max_new_tokens"]),
            temperature=float(task["temperature"]),
            top_p=float(task["top_p"]),
            timeout_ms=int(task["timeout_ms"]),
        )
