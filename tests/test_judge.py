import asyncio
import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from multi_llm_judge.core.errors import InvalidJudgeRequestError, JudgeInvocationError
from multi_llm_judge.core.judge import (
    JudgeEvaluator,
    JudgeFault,
    classify_fault,
    mock_judgement,
    parse_judgement,
)
from multi_llm_judge.core.llm_task_config import JudgeSettings
from multi_llm_judge.core.prompt import JUDGE_SYSTEM_PROMPT, build_judge_prompt
from multi_llm_judge.core.types import NOT_PROVIDED

QUESTION = "What is the boiling point of water at sea level?"
RESPONSES = [
    "100 degrees Celsius, or 212 Fahrenheit.",
    "It boils when hot",
    "Water boils at 100°C (212°F) at 1 atm; lower pressure lowers the boiling point.",
    "I am not sure",
]
GOOD_OUTPUT = (
    "RANKING: 3, 1, 2, 4\n"
    "SCORES: 9, 8, 4, 2\n"
    "REASONING: Response 3 is precise.\n"
    "Response 4 does not answer."
)

# Literal vendor messages the fallback depends on; if these stop matching the
# chat-completion fallback silently stops firing.
MISMATCH_MESSAGES = [
    "Model meta-llama/Llama-3.1-8B-Instruct is not supported for task text-generation "
    "and provider together. Supported task: conversational.",
    "Supported task: conversational",
    "This model is not supported for task text-generation",
]


class StubBackend:
    def __init__(self, primary=None, fallback=None):
        self.primary = primary
        self.fallback = fallback
        self.primary_calls = []
        self.fallback_calls = []

    async def text_generation(self, prompt):
        self.primary_calls.append(prompt)
        if isinstance(self.primary, Exception):
            raise self.primary
        return self.primary

    async def chat_completion(self, system, user):
        self.fallback_calls.append((system, user))
        if isinstance(self.fallback, Exception):
            raise self.fallback
        return self.fallback


def _judge(backend, seed=7):
    evaluator = JudgeEvaluator(backend, rng=random.Random(seed))
    return asyncio.run(evaluator.judge(QUESTION, RESPONSES))


def test_prompt_embeds_question_responses_rubric_and_contract():
    prompt = build_judge_prompt(QUESTION, RESPONSES)
    assert f'Question: "{QUESTION}"' in prompt
    for i, response in enumerate(RESPONSES, start=1):
        assert f"{i}. {response}" in prompt
    for criterion in ("Accuracy", "Completeness", "Clarity", "Relevance"):
        assert criterion in prompt
    for field in ("RANKING:", "SCORES:", "REASONING:"):
        assert field in prompt


def test_parse_full_output():
    judgement = parse_judgement(GOOD_OUTPUT)
    assert judgement.ranking == [2, 0, 1, 3]
    assert judgement.scores == ["9", "8", "4", "2"]
    assert judgement.reasoning == "Response 3 is precise.\nResponse 4 does not answer."
    assert judgement.raw_text == GOOD_OUTPUT
    assert judgement.is_mock is False


def test_parse_is_case_insensitive_and_tolerates_brackets():
    judgement = parse_judgement("ranking: [2, 1, 4, 3]\nscores: [7.5, 8, 6, 5]\nreasoning: ok")
    assert judgement.ranking == [1, 0, 3, 2]
    assert judgement.scores == ["7.5", "8", "6", "5"]
    assert judgement.reasoning == "ok"


def test_parse_missing_fields_default_field_by_field():
    judgement = parse_judgement("Some preamble\nSCORES: 5, 6, 7, 8")
    assert judgement.ranking == [NOT_PROVIDED] * 4
    assert judgement.scores == ["5", "6", "7", "8"]
    assert judgement.reasoning == NOT_PROVIDED

    empty = parse_judgement("")
    assert len(empty.ranking) == 4
    assert len(empty.scores) == 4
    assert empty.reasoning == NOT_PROVIDED


def test_parse_pads_and_truncates_to_four():
    judgement = parse_judgement("RANKING: 2, 9, 1\nSCORES: 1, 2, 3, 4, 5")
    assert judgement.ranking == [1, NOT_PROVIDED, 0, NOT_PROVIDED]
    assert judgement.scores == ["1", "2", "3", "4"]


@pytest.mark.parametrize("message", MISMATCH_MESSAGES)
def test_task_mismatch_signatures_are_recognised(message):
    assert classify_fault(JudgeInvocationError(message)) is JudgeFault.TASK_MISMATCH


def test_other_fault_classes():
    assert (
        classify_fault(JudgeInvocationError("No Inference Provider available for model x"))
        is JudgeFault.PROVIDER_UNAVAILABLE
    )
    assert (
        classify_fault(JudgeInvocationError("anything", unavailable=True))
        is JudgeFault.PROVIDER_UNAVAILABLE
    )
    assert classify_fault(JudgeInvocationError("Rate limit reached")) is JudgeFault.OTHER


def test_primary_success_skips_fallback():
    backend = StubBackend(primary=GOOD_OUTPUT)
    judgement = _judge(backend)
    assert judgement.source == "primary"
    assert judgement.ranking == [2, 0, 1, 3]
    assert len(backend.primary_calls) == 1
    assert backend.fallback_calls == []


def test_task_mismatch_triggers_exactly_one_fallback():
    backend = StubBackend(
        primary=JudgeInvocationError(MISMATCH_MESSAGES[0]),
        fallback="RANKING: 1, 2, 3, 4\nSCORES: 9, 8, 7, 6\nREASONING: fallback",
    )
    judgement = _judge(backend)
    assert len(backend.fallback_calls) == 1
    system, user = backend.fallback_calls[0]
    assert system == JUDGE_SYSTEM_PROMPT
    assert user == backend.primary_calls[0]
    assert judgement.source == "fallback"
    assert judgement.is_mock is False
    assert judgement.ranking == [0, 1, 2, 3]
    assert judgement.reasoning == "fallback"


def test_fallback_failure_produces_mock():
    backend = StubBackend(
        primary=JudgeInvocationError(MISMATCH_MESSAGES[1]),
        fallback=JudgeInvocationError("503 Service Unavailable"),
    )
    judgement = _judge(backend)
    assert len(backend.fallback_calls) == 1
    assert judgement.is_mock is True
    assert judgement.source == "mock"
    assert sorted(judgement.ranking) == [0, 1, 2, 3]
    assert len(judgement.scores) == 4


@pytest.mark.parametrize(
    "error",
    [
        JudgeInvocationError("No Inference Provider available for model x"),
        JudgeInvocationError("Invalid credentials in Authorization header"),
        RuntimeError("backend exploded"),
    ],
)
def test_non_mismatch_faults_go_straight_to_mock(error):
    backend = StubBackend(primary=error, fallback=GOOD_OUTPUT)
    judgement = _judge(backend)
    assert backend.fallback_calls == []
    assert judgement.is_mock is True


def test_mock_is_seedable_and_well_formed():
    first = mock_judgement(QUESTION, RESPONSES, random.Random(42))
    second = mock_judgement(QUESTION, RESPONSES, random.Random(42))
    assert first == second
    assert sorted(first.ranking) == [0, 1, 2, 3]
    assert all(1 <= int(score) <= 10 for score in first.scores)
    # the long answer with digits and punctuation outranks the short vague one
    assert first.ranking.index(2) < first.ranking.index(3)
    assert first.raw_text.startswith("RANKING: ")
    reparsed = parse_judgement(first.raw_text)
    assert reparsed.ranking == first.ranking
    assert reparsed.scores == first.scores


def test_mock_jitter_only_breaks_ties():
    identical = ["This is a sufficiently long answer with several words in it, really."] * 4
    rankings = {
        tuple(mock_judgement(QUESTION, identical, random.Random(seed)).ranking)
        for seed in range(20)
    }
    assert len(rankings) > 1
    for ranking in rankings:
        assert sorted(ranking) == [0, 1, 2, 3]


@pytest.mark.parametrize(
    "question,responses",
    [
        (QUESTION, RESPONSES[:3]),
        (QUESTION, RESPONSES + ["extra"]),
        (QUESTION, "not a list"),
        ("", RESPONSES),
        (QUESTION, RESPONSES[:3] + [42]),
    ],
)
def test_malformed_requests_raise(question, responses):
    backend = StubBackend(primary=GOOD_OUTPUT)
    evaluator = JudgeEvaluator(backend)
    with pytest.raises(InvalidJudgeRequestError):
        asyncio.run(evaluator.judge(question, responses))
    assert backend.primary_calls == []


def test_validate_config_reports_missing_settings():
    evaluator = JudgeEvaluator(StubBackend(), settings=JudgeSettings(model_id="", api_token=""))
    status = evaluator.validate_config()
    assert status.is_valid is False
    assert set(status.missing) == {"HF_API_TOKEN", "JUDGE_MODEL_ID"}
