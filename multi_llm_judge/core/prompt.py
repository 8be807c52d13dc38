from __future__ import annotations

from dataclasses import dataclass

JUDGE_SYSTEM_PROMPT = "You are an impartial AI judge."

TEMPLATE = (
    "You are an expert AI judge tasked with evaluating responses to questions. "
    "Please analyze the following question and four responses, then provide a detailed evaluation.\n\n"
    'Question: "{question}"\n\n'
    "Responses to evaluate:\n"
    "{responses_text}\n\n"
    "Please evaluate each response based on:\n"
    "- Accuracy and correctness\n"
    "- Completeness and depth\n"
    "- Clarity and coherence\n"
    "- Relevance to the question\n\n"
    "Provide your judgment in the following format:\n"
    'RANKING: [Best to worst, e.g., "3, 1, 4, 2"]\n'
    'SCORES: [Score out of 10 for each response, e.g., "9, 7, 8, 6"]\n'
    "REASONING: [Brief explanation for your ranking]\n\n"
    "Your evaluation:"
)


@dataclass
class JudgePromptContext:
    question: str
    responses: list[str]


def render_judge_prompt(ctx: JudgePromptContext) -> str:
    responses_text = "\n".join(
        f"{i}. {response}" for i, response in enumerate(ctx.responses, start=1)
    )
    return TEMPLATE.format(question=ctx.question, responses_text=responses_text)


def build_judge_prompt(question: str, responses: list[str]) -> str:
    return render_judge_prompt(JudgePromptContext(question=question, responses=list(responses)))
