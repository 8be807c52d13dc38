from __future__ import annotations

import asyncio
import json
import os
import random
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from ..adapters.mock_adapter import mock_transport
from ..core.connection_tester import ConnectionTester, summarize
from ..core.dispatcher import Dispatcher
from ..core.errors import InvalidJudgeRequestError, NoProvidersAvailableError
from ..core.judge import JudgeEvaluator
from ..core.judge_backend import HuggingFaceJudgeBackend
from ..core.llm_task_config import JudgeSettings, LLMTaskConfigLoader
from ..core.logging_utils import configure_logging
from ..core.provider_config import ProviderRegistry, load_provider_configs, load_registry

app = typer.Typer()

_options: dict = {"config": None, "tasks": None}


def _use_mocks() -> bool:
    return os.environ.get("MULTI_LLM_JUDGE_ENV", "real").lower() == "mock"


def _registry() -> ProviderRegistry:
    if _use_mocks():
        configs = load_provider_configs(_options["config"])
        return ProviderRegistry(configs, {c.id: "mock-key" for c in configs})
    return load_registry(_options["config"])


def _dispatcher(registry: ProviderRegistry) -> Dispatcher:
    return Dispatcher(registry, transport=mock_transport() if _use_mocks() else None)


def _evaluator(seed: Optional[int]) -> JudgeEvaluator:
    if _use_mocks():
        # No judge credentials in mock mode, so every call lands on the heuristic path
        settings = JudgeSettings(model_id="", api_token="")
    else:
        settings = LLMTaskConfigLoader(_options["tasks"]).judge_settings()
    rng = random.Random(seed) if seed is not None else None
    return JudgeEvaluator(HuggingFaceJudgeBackend(settings), settings=settings, rng=rng)


def _split(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, help="Provider table override (YAML)"),
    tasks: Optional[Path] = typer.Option(None, help="LLM task settings (YAML)"),
    log_level: str = typer.Option("WARNING", help="Package log level"),
    log_file: Optional[Path] = typer.Option(None, help="Also write logs to this file"),
) -> None:
    """Query several LLM providers at once and judge their answers."""
    _options["config"] = config
    _options["tasks"] = tasks
    configure_logging(log_level, log_file)


@app.command("generate")
def generate(
    prompt: str,
    providers: Optional[str] = typer.Option(None, help="Comma-separated provider ids"),
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    timeout_ms: Optional[int] = None,
    as_json: bool = typer.Option(False, "--json", help="Print raw results as JSON"),
) -> None:
    """Send one prompt to several providers concurrently."""
    registry = _registry()
    provider_ids = _split(providers) or registry.provider_ids()
    settings = {"temperature": temperature, "max_tokens": max_tokens, "timeout_ms": timeout_ms}
    try:
        results = asyncio.run(_dispatcher(registry).generate_many(provider_ids, prompt, settings))
    except NoProvidersAvailableError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    if as_json:
        _echo_json([r.to_dict() for r in results])
        return
    for result in results:
        if result.success:
            typer.echo(f"✅ {result.provider_id} ({result.model}, {result.processing_time_ms} ms)")
            typer.echo(result.content)
        else:
            typer.echo(
                f"❌ {result.provider_id} [{result.error_kind.value}] {result.message}"
            )
        typer.echo("")


@app.command("providers")
def providers(as_json: bool = typer.Option(False, "--json")) -> None:
    """Show which providers are configured. Makes no network calls."""
    report = ConnectionTester(_registry()).status_report()
    if as_json:
        _echo_json({pid: asdict(status) for pid, status in report.items()})
        return
    for status in report.values():
        mark = "✅" if status.configured else "❌"
        typer.echo(f"{mark} {status.provider_id} - {status.name} (default: {status.default_model})")


@app.command("providers:test")
def providers_test(as_json: bool = typer.Option(False, "--json")) -> None:
    """Probe every configured provider with a tiny prompt."""
    registry = _registry()
    tester = ConnectionTester(registry, _dispatcher(registry))
    results = asyncio.run(tester.test_all())
    summary = summarize(results.values())
    if as_json:
        _echo_json({"results": {pid: asdict(r) for pid, r in results.items()}, "summary": summary})
        return
    for result in results.values():
        mark = {"connected": "✅", "not_configured": "⚪"}.get(result.status, "❌")
        detail = f" - {result.error}" if result.error else ""
        typer.echo(f"{mark} {result.provider_id}: {result.status}{detail}")
    typer.echo(
        f"📊 {summary['connected']}/{summary['configured']} configured providers connected"
    )


@app.command("judge")
def judge(
    question: str,
    responses: List[str] = typer.Argument(..., help="Exactly four candidate responses"),
    seed: Optional[int] = typer.Option(None, help="Seed for the mock judge"),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Rank four responses to a question with the judge model."""
    try:
        judgement = asyncio.run(_evaluator(seed).judge(question, responses))
    except InvalidJudgeRequestError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(2)
    _print_judgement(judgement, as_json)


@app.command("compare")
def compare(
    prompt: str,
    providers: Optional[str] = typer.Option(None, help="Comma-separated provider ids"),
    seed: Optional[int] = typer.Option(None, help="Seed for the mock judge"),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Fan a prompt out to providers, then judge the answers when there are four."""
    registry = _registry()
    provider_ids = _split(providers) or registry.provider_ids()
    try:
        results = asyncio.run(_dispatcher(registry).generate_many(provider_ids, prompt))
    except NoProvidersAvailableError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    answers = [r for r in results if r.success]
    if len(answers) != 4:
        typer.echo(
            f"⚠️  Judging needs exactly 4 successful answers, got {len(answers)}", err=True
        )
        if as_json:
            _echo_json({"results": [r.to_dict() for r in results], "judgement": None})
        raise typer.Exit(1)

    judgement = asyncio.run(_evaluator(seed).judge(prompt, [r.content for r in answers]))
    if as_json:
        _echo_json(
            {"results": [r.to_dict() for r in results], "judgement": judgement.to_dict()}
        )
        return
    for position, result in enumerate(answers, start=1):
        typer.echo(f"{position}. {result.provider_id}: {result.content[:200]}")
    _print_judgement(judgement, as_json=False)


def _print_judgement(judgement, as_json: bool) -> None:
    if as_json:
        _echo_json(judgement.to_dict())
        return
    if judgement.is_mock:
        typer.echo("⚠️  Judge model unavailable; showing a heuristic mock ranking")
    ranking = ", ".join(
        str(i + 1) if isinstance(i, int) else str(i) for i in judgement.ranking
    )
    typer.echo(f"🏆 RANKING: {ranking}")
    typer.echo(f"📊 SCORES: {', '.join(judgement.scores)}")
    typer.echo(f"💬 REASONING: {judgement.reasoning}")


if __name__ == "__main__":
    app()
