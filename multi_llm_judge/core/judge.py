"""Four-way response judging with a judge model and a heuristic fallback.

Flow for one ``judge`` call::

    RECEIVE -> BUILD_PROMPT -> PRIMARY (text generation)
        success        -> PARSE -> DONE
        task mismatch  -> FALLBACK (chat completion)
                              success -> PARSE -> DONE
                              failure -> MOCK  -> DONE
        other failure  -> MOCK -> DONE

Only a malformed request escapes as an exception; every backend fault ends
in a mock judgement tagged with ``is_mock=True``.
"""

from __future__ import annotations

import logging
import random
import re
from enum import Enum
from typing import Optional, Sequence, Union

from .errors import InvalidJudgeRequestError, JudgeInvocationError
from .judge_backend import JudgeBackend
from .llm_task_config import JudgeSettings
from .prompt import JUDGE_SYSTEM_PROMPT, build_judge_prompt
from .types import NOT_PROVIDED, JudgeConfigStatus, Judgement, JudgementRequest

logger = logging.getLogger(__name__)

RESPONSE_COUNT = 4
MOCK_JITTER = 0.5

# Compatibility shim: the only signal that a model accepts chat turns but not
# free-form generation is the vendor's error text. These literals are pinned
# in tests; if the vendor rewords the message the fallback silently stops
# firing and every such judge call degrades to a mock judgement.
TASK_MISMATCH_PATTERNS = (
    re.compile(r"supported\s*for\s*task\s*text-generation[\s\S]*conversational", re.IGNORECASE),
    re.compile(r"Supported task:\s*conversational", re.IGNORECASE),
    re.compile(r"is not supported for task text-generation", re.IGNORECASE),
)
PROVIDER_UNAVAILABLE_MARKERS = (
    "No Inference Provider available",
    "Failed to fetch inference provider",
)

_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_PUNCTUATION = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


class JudgeFault(str, Enum):
    TASK_MISMATCH = "task_mismatch"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    OTHER = "other"


def classify_fault(exc: BaseException) -> JudgeFault:
    message = str(exc)
    if any(pattern.search(message) for pattern in TASK_MISMATCH_PATTERNS):
        return JudgeFault.TASK_MISMATCH
    if getattr(exc, "unavailable", False) or any(
        marker.lower() in message.lower() for marker in PROVIDER_UNAVAILABLE_MARKERS
    ):
        return JudgeFault.PROVIDER_UNAVAILABLE
    return JudgeFault.OTHER


def make_request(question: object, responses: object) -> JudgementRequest:
    if not isinstance(question, str) or not question.strip():
        raise InvalidJudgeRequestError("Question is required and must be a string")
    if isinstance(responses, (str, bytes)) or not isinstance(responses, Sequence):
        raise InvalidJudgeRequestError(f"Exactly {RESPONSE_COUNT} responses are required in an array")
    if len(responses) != RESPONSE_COUNT:
        raise InvalidJudgeRequestError(
            f"Exactly {RESPONSE_COUNT} responses are required, got {len(responses)}"
        )
    for i, response in enumerate(responses, start=1):
        if not isinstance(response, str):
            raise InvalidJudgeRequestError(f"Response {i} must be a string")
    return JudgementRequest(question=question, responses=tuple(responses))


def _fit(values: list, size: int = RESPONSE_COUNT) -> list:
    values = values[:size]
    return values + [NOT_PROVIDED] * (size - len(values))


def _parse_ranking(text: str) -> list[Union[int, str]]:
    ranking: list[Union[int, str]] = []
    for token in re.findall(r"\d+", text):
        position = int(token)
        ranking.append(position - 1 if 1 <= position <= RESPONSE_COUNT else NOT_PROVIDED)
    return _fit(ranking)


def _parse_scores(text: str) -> list[str]:
    return _fit(_NUMBER.findall(text))


def parse_judgement(raw_text: str) -> Judgement:
    """Pull RANKING / SCORES / REASONING out of free model text.

    Never raises; fields the model left out become ``NOT_PROVIDED``.
    """
    ranking_text: Optional[str] = None
    scores_text: Optional[str] = None
    reasoning = ""

    lines = [line.strip() for line in (raw_text or "").split("\n")]
    lines = [line for line in lines if line]
    for i, line in enumerate(lines):
        upper = line.upper()
        if upper.startswith("RANKING:") and ranking_text is None:
            ranking_text = line[len("RANKING:"):].strip()
        elif upper.startswith("SCORES:") and scores_text is None:
            scores_text = line[len("SCORES:"):].strip()
        elif upper.startswith("REASONING:"):
            reasoning = "\n".join(lines[i:])[len("REASONING:"):].strip()
            break

    return Judgement(
        ranking=_parse_ranking(ranking_text) if ranking_text else [NOT_PROVIDED] * RESPONSE_COUNT,
        scores=_parse_scores(scores_text) if scores_text else [NOT_PROVIDED] * RESPONSE_COUNT,
        reasoning=reasoning or NOT_PROVIDED,
        raw_text=raw_text or "",
    )


def mock_judgement(
    question: str, responses: Sequence[str], rng: Optional[random.Random] = None
) -> Judgement:
    """Heuristic stand-in used when no judge model can be reached.

    Scores come from word count, digits and punctuation plus a small random
    jitter that breaks ties. They give the UI a total ordering and say
    nothing about answer quality.
    """
    rng = rng or random.Random()
    scored = []
    for index, response in enumerate(responses):
        words = len(response.split())
        score = (
            words * 0.1
            + (1 if re.search(r"\d", response) else 0)
            + (0.5 if _PUNCTUATION.search(response) else 0)
            + rng.uniform(0, MOCK_JITTER)
        )
        scored.append((index, words, min(10.0, max(1.0, score))))

    ordered = sorted(scored, key=lambda item: (-item[2], item[0]))
    ranking = [index for index, _, _ in ordered]
    scores = [str(round(score)) for _, _, score in scored]
    best_index, best_words, _ = ordered[0]
    reasoning = (
        "Mock evaluation based on response length, content richness, and completeness. "
        f"Response {best_index + 1} appears most comprehensive with {best_words} words. "
        "This is a fallback response due to AI model unavailability."
    )
    raw_text = (
        f"RANKING: {', '.join(str(i + 1) for i in ranking)}\n"
        f"SCORES: {', '.join(scores)}\n"
        f"REASONING: {reasoning}"
    )
    return Judgement(
        ranking=list(ranking),
        scores=scores,
        reasoning=reasoning,
        raw_text=raw_text,
        is_mock=True,
        source="mock",
    )


class JudgeEvaluator:
    def __init__(
        self,
        backend: JudgeBackend,
        settings: Optional[JudgeSettings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.backend = backend
        self.settings = settings
        self.rng = rng or random.Random()

    def validate_config(self) -> JudgeConfigStatus:
        if self.settings is None:
            return JudgeConfigStatus(is_valid=True)
        return self.settings.validate()

    async def judge(self, question: str, responses: Sequence[str]) -> Judgement:
        request = make_request(question, responses)
        prompt = build_judge_prompt(request.question, list(request.responses))

        try:
            raw = await self.backend.text_generation(prompt)
            return self._parsed(raw, source="primary")
        except JudgeInvocationError as e:
            fault = classify_fault(e)
            logger.warning("Judge text generation failed (%s): %s", fault.value, e)
        except Exception as e:
            fault = JudgeFault.OTHER
            logger.exception("Unexpected judge text generation fault: %s", e)

        if fault is JudgeFault.TASK_MISMATCH:
            try:
                raw = await self.backend.chat_completion(JUDGE_SYSTEM_PROMPT, prompt)
                return self._parsed(raw, source="fallback")
            except JudgeInvocationError as e:
                logger.warning("Judge chat completion failed (%s): %s", classify_fault(e).value, e)
            except Exception as e:
                logger.exception("Unexpected judge chat completion fault: %s", e)

        logger.info("Using mock judgement for question %r", request.question[:80])
        return mock_judgement(request.question, request.responses, self.rng)

    def _parsed(self, raw: str, source: str) -> Judgement:
        judgement = parse_judgement(raw)
        judgement.source = source
        return judgement
