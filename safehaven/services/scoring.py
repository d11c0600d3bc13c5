"""Per-answer scoring.

Plain options score by their 0-based position, so an author expresses an
ascending severity scale purely through option order. Weighted options
score their explicit value. Free text never contributes.
"""

from typing import Optional

from safehaven.schemas.response import AnswerValue
from safehaven.schemas.survey import Question, QuestionType

SCORED_TYPES = {
    QuestionType.SINGLE_CHOICE,
    QuestionType.MULTIPLE_CHOICE,
    QuestionType.SCALE,
}


def score_answer(question: Optional[Question], value: AnswerValue) -> int:
    """Compute the score of one answer.

    Never raises; anything unscorable resolves to 0.

    Args:
        question: Question definition
        value: Raw answer value

    Returns:
        Non-negative integer score

    Example:
        >>> q = Question(prompt="Frecuencia", order=1, type="escala",
        ...              options=["Nunca", "A veces", "Siempre"])
        >>> score_answer(q, "Siempre")
        2
    """
    if question is None or value is None:
        return 0

    if question.type not in SCORED_TYPES:
        return 0

    if isinstance(value, list):
        if question.type != QuestionType.MULTIPLE_CHOICE:
            return 0
        # Each selected option counts once
        return sum(_score_label(question, item) for item in dict.fromkeys(value))

    if isinstance(value, str):
        return _score_label(question, value)

    # bool is an int subclass but never a valid answer
    if isinstance(value, int) and not isinstance(value, bool):
        if question.type == QuestionType.SCALE:
            return _score_index(question, value)

    return 0


def _score_label(question: Question, label) -> int:
    """Score an option selected by its exact label."""
    if not isinstance(label, str):
        return 0

    for index, option in enumerate(question.options):
        if option.label == label:
            return option.score if question.is_weighted else index
    return 0


def _score_index(question: Question, index: int) -> int:
    """Score an option selected by its 0-based position."""
    if not 0 <= index < len(question.options):
        return 0

    if question.is_weighted:
        return question.options[index].score
    return index
