"""STAR-method answers for behavioral interview questions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import EmptyInput, GenerationFailed
from .providers import Provider, ProviderError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert interview coach specializing in behavioral interview questions. "
    "Provide detailed, professional answers using the STAR method."
)

FALLBACK_ANSWER = "I apologize, but I couldn't generate an answer for this question."


@dataclass
class AnswerResult:
    answer: str
    model: str
    is_fallback: bool = False


def build_star_prompt(question: str) -> str:
    """Interpolate the interviewer's question into the coaching prompt."""
    return (
        "You are an expert interview coach helping someone prepare for behavioral interviews.\n\n"
        f'The interviewer asked: "{question}"\n\n'
        "Please provide a comprehensive, professional answer using the STAR method "
        "(Situation, Task, Action, Result). The answer should:\n"
        "1. Be specific and detailed\n"
        "2. Show leadership, problem-solving, or relevant skills\n"
        "3. Include quantifiable results when possible\n"
        "4. Be authentic and conversational\n"
        "5. Be around 2-3 minutes when spoken (approximately 300-450 words)\n\n"
        'Provide only the answer, without any prefacing text like "Here\'s a good answer:" or similar.'
    )


def generate_behavioral_answer(
    question: str,
    provider: Provider,
    model: Optional[str] = None,
    max_tokens: int = 600,
    temperature: float = 0.7,
) -> AnswerResult:
    """Ask the provider's chat model for a STAR answer to ``question``."""

    if not question.strip():
        raise EmptyInput("Cannot generate an answer for an empty question")

    target_model = model or provider.default_answer_model
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_star_prompt(question)},
    ]
    logger.info("Generating behavioral answer with %s (%s)", target_model, provider.name)
    logger.debug("Prompt:\n%s", messages[1]["content"])

    try:
        content = provider.chat(messages, model=target_model, max_tokens=max_tokens, temperature=temperature)
    except ProviderError as exc:
        raise GenerationFailed(str(exc)) from exc

    answer = (content or "").strip()
    if not answer:
        logger.warning("Model %s returned no answer content; using fallback", target_model)
        return AnswerResult(answer=FALLBACK_ANSWER, model=target_model, is_fallback=True)
    return AnswerResult(answer=answer, model=target_model)
