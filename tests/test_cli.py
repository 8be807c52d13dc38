import json
import logging
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from multi_llm_judge.cli.main import app

runner = CliRunner()
PROVIDER_KEYS = ["GEMINI_API_KEY", "OPENAI_API_KEY", "CLAUDE_API_KEY", "PERPLEXITY_API_KEY"]


@pytest.fixture(autouse=True)
def _detach_log_handlers():
    yield
    package_logger = logging.getLogger("multi_llm_judge")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()


def _clear_keys(monkeypatch):
    for key in PROVIDER_KEYS + ["HF_API_TOKEN", "JUDGE_MODEL_ID"]:
        monkeypatch.delenv(key, raising=False)


def test_providers_status_reflects_environment(monkeypatch):
    _clear_keys(monkeypatch)
    monkeypatch.setenv("MULTI_LLM_JUDGE_ENV", "real")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    result = runner.invoke(app, ["providers", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["openai"]["configured"] is True
    assert data["gemini"]["configured"] is False


def test_generate_without_keys_exits_with_error(monkeypatch):
    _clear_keys(monkeypatch)
    monkeypatch.setenv("MULTI_LLM_JUDGE_ENV", "real")
    result = runner.invoke(app, ["generate", "hi"])
    assert result.exit_code == 1


def test_generate_in_mock_mode(monkeypatch):
    monkeypatch.setenv("MULTI_LLM_JUDGE_ENV", "mock")
    result = runner.invoke(app, ["generate", "hi", "--providers", "claude,gemini", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [r["provider_id"] for r in data] == ["claude", "gemini"]
    assert all(r["success"] for r in data)


def test_judge_command_uses_mock_judgement_offline(monkeypatch):
    monkeypatch.setenv("MULTI_LLM_JUDGE_ENV", "mock")
    result = runner.invoke(
        app, ["--log-level", "ERROR", "judge", "Why is the sky blue?", "Rayleigh scattering.", "Magic", "Because 42!", "Unsure", "--seed", "3", "--json"]
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["is_mock"] is True
    assert sorted(data["ranking"]) == [0, 1, 2, 3]


def test_judge_command_rejects_wrong_response_count(monkeypatch):
    monkeypatch.setenv("MULTI_LLM_JUDGE_ENV", "mock")
    result = runner.invoke(app, ["judge", "Q?", "one", "two", "three"])
    assert result.exit_code == 2


def test_compare_fans_out_then_judges(monkeypatch):
    monkeypatch.setenv("MULTI_LLM_JUDGE_ENV", "mock")
    result = runner.invoke(app, ["--log-level", "ERROR", "compare", "hello", "--seed", "1", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert len(data["results"]) == 4
    assert data["judgement"]["source"] == "mock"


def test_providers_test_in_mock_mode(monkeypatch):
    monkeypatch.setenv("MULTI_LLM_JUDGE_ENV", "mock")
    result = runner.invoke(app, ["providers:test", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["summary"]["connected"] == 4


def test_log_file_option_writes_logs(monkeypatch, tmp_path):
    monkeypatch.setenv("MULTI_LLM_JUDGE_ENV", "mock")
    log_file = tmp_path / "logs" / "judge.log"
    result = runner.invoke(
        app, ["--log-level", "INFO", "--log-file", str(log_file), "generate", "hi", "--providers", "openai"]
    )
    assert result.exit_code == 0, result.output
    assert "Dispatching to 1 provider(s): openai" in log_file.read_text(encoding="utf-8")
