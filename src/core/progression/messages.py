"""
Parent-facing messages and the text-generation collaborator.

The prompts are here, not in config, because they're core business logic:
changing them changes what parents read. The model client behind them is an
implementation detail hidden behind LanguageModelClient.

Every message has a fixed fallback. Text generation is best-effort: a slow
or failing model never blocks a score commit or a promotion.
"""

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Protocol


logger = logging.getLogger(__name__)


class TextKind(Enum):
    PARENT_FEEDBACK = "parent_feedback"
    PROMOTION = "promotion"
    PARENT_WELCOME = "parent_welcome"
    COACH_WELCOME = "coach_welcome"


class TextGenerationError(Exception):
    """Raised when a message could not be generated."""
    pass


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class LanguageModelClient(Protocol):
    """Anything that can turn a system prompt and a user prompt into text."""

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        ...


class TextGenerator(Protocol):
    """
    The text-generation collaborator as the progression engine sees it.

    Implementations may raise; callers treat every failure as "no message".
    """

    async def generate_text(self, kind: TextKind, context: Mapping[str, Any]) -> str:
        ...


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """You are an experienced martial arts coach who writes short, warm messages to the parents of your students.

- Be encouraging and specific. Parents want to hear what their child did well.
- Never list raw scores. Summarize.
- Keep messages to one or two sentences unless asked otherwise.
- Write in the language you are asked to use."""

SCORE_MEANINGS = {2: "Excellent", 1: "Good", 0: "Needs Improvement"}

PARENT_FEEDBACK_TEMPLATE = """Write a brief, encouraging feedback message to a student's parent.
Student's name: {student_name}
Today's performance: {score_text}
Coach's private note: "{note}"{extras}

Generate a parent-friendly, positive message. If the note is something like "Good energy but talking", the message should be something like "{student_name} brought good energy to class today! We will continue to work on maintaining focus during practice." Do not repeat the scores, summarize the performance.

Write the response in: {language}."""

PROMOTION_TEMPLATE = """A student named "{student_name}" has just passed their test and promoted to "{belt_name}" at "{club_name}".

Write a short, high-energy, congratulatory message to the parents.
Tone: enthusiastic, proud, professional.
Constraints: max 2 sentences. Must use the word "Congratulations" (translated to the target language).

Write the response in: {language}."""

PARENT_WELCOME_TEMPLATE = """Write a brief, friendly welcome email for a parent. Their child, "{student_name}", has just been enrolled in the "{club_name}" martial arts club. Explain that they will soon receive an invitation to the Parent Portal where they can track their child's progress.

Write the response in: {language}."""

COACH_WELCOME_TEMPLATE = """Write a brief, friendly welcome email for a martial arts coach named "{coach_name}". They have just been added to the "{club_name}" club's management software. Mention they'll receive login details separately. Keep it concise.

Write the response in: {language}."""


def fallback_text(kind: TextKind, context: Mapping[str, Any]) -> str:
    """The fixed message used when generation is unavailable."""
    if kind is TextKind.PARENT_FEEDBACK:
        return (
            f"Thank you for your support of {context.get('student_name', 'your child')}'s "
            "training! We appreciate having them in class."
        )
    if kind is TextKind.PROMOTION:
        return (
            f"Big congratulations to {context.get('student_name')}! They have officially "
            f"promoted to {context.get('belt_name')}. We are incredibly proud of their hard "
            f"work and dedication at {context.get('club_name')}."
        )
    if kind is TextKind.PARENT_WELCOME:
        return (
            f"Welcome! Your child, {context.get('student_name')}, is now part of "
            f"{context.get('club_name')}. Look for a Parent Portal invite soon!"
        )
    return f"Welcome, Coach {context.get('coach_name')}! You're now part of {context.get('club_name')}."


def build_prompt(kind: TextKind, context: Mapping[str, Any]) -> str:
    language = context.get("language") or "English"

    if kind is TextKind.PARENT_FEEDBACK:
        return PARENT_FEEDBACK_TEMPLATE.format(
            student_name=context["student_name"],
            score_text=_score_text(context.get("scores", [])),
            note=context.get("note") or "No specific notes today.",
            extras=_feedback_extras(context),
            language=language,
        )
    if kind is TextKind.PROMOTION:
        return PROMOTION_TEMPLATE.format(
            student_name=context["student_name"],
            belt_name=context["belt_name"],
            club_name=context["club_name"],
            language=language,
        )
    if kind is TextKind.PARENT_WELCOME:
        return PARENT_WELCOME_TEMPLATE.format(
            student_name=context["student_name"],
            club_name=context["club_name"],
            language=language,
        )
    return COACH_WELCOME_TEMPLATE.format(
        coach_name=context["coach_name"],
        club_name=context["club_name"],
        language=language,
    )


def _score_text(scores: list[tuple[str, Optional[int]]]) -> str:
    return ", ".join(
        f"{skill_name}: {SCORE_MEANINGS.get(score, 'Not Scored')}"
        for skill_name, score in scores
    )


def _feedback_extras(context: Mapping[str, Any]) -> str:
    lines = []
    homework = context.get("homework", 0)
    bonus = context.get("bonus", 0)
    if homework > 0:
        lines.append(
            f"This student also received {homework} bonus points for completing their "
            "homework. Please mention this good habit!"
        )
    if bonus > 0:
        lines.append(
            f"This student also received {bonus} coach bonus points for exceptional "
            "performance. Mention this achievement positively."
        )
    if context.get("is_ready_for_grading"):
        requirement = context.get("grading_requirement_name") or "Grading Requirement"
        lines.append(
            f'IMPORTANT: The student has mastered the "{requirement}" and is now READY for '
            "their belt promotion test! Please celebrate it in the message."
        )
    return "".join("\n" + line for line in lines)


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------

class MessageWriter:
    """
    TextGenerator implementation backed by a language model.

    Knows which prompt goes with which kind of message; the model client
    knows nothing about martial arts.
    """

    def __init__(self, model_client: LanguageModelClient) -> None:
        self._model_client = model_client

    async def generate_text(self, kind: TextKind, context: Mapping[str, Any]) -> str:
        prompt = build_prompt(kind, context)
        text = (await self._model_client.complete(SYSTEM_PROMPT, prompt)).strip()
        if not text:
            raise TextGenerationError(f"Model returned an empty {kind.value} message")
        return text


async def try_generate(
    generator: Optional[TextGenerator],
    kind: TextKind,
    context: Mapping[str, Any],
) -> Optional[str]:
    """
    Ask for a message, returning None instead of raising.

    Failures are logged. Callers only ever attach the message to a record,
    so a missing message is never an error for them.
    """
    if generator is None:
        return None
    try:
        return await generator.generate_text(kind, context)
    except Exception as e:
        logger.warning(
            "Text generation failed",
            extra={"kind": kind.value, "error": str(e)},
        )
        return None
