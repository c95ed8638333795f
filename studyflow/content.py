"""
Content collaborator contract.
Study material and quizzes come from an external generator; the engine
only calls it once per session and treats the results as opaque.
"""

import math
from typing import List, Optional, Protocol, Sequence

from .models import DEFAULT_DEPTH, Attachment, QuizQuestion


class ContentGenerator(Protocol):
    """Produces study notes (markdown) and a multiple-choice quiz."""

    def generate_study_material(
        self,
        topic: str,
        reference_link: Optional[str] = None,
        attachment: Optional[Attachment] = None,
        instructions: Optional[str] = None,
        depth: str = DEFAULT_DEPTH
    ) -> str:
        ...

    def generate_quiz(self, topic: str, notes: Optional[str] = None) -> List[QuizQuestion]:
        ...


def score_quiz(questions: Sequence[QuizQuestion], answers: Sequence[int]) -> int:
    """Percentage of correct answers, rounded half up. Unanswered is wrong."""
    if not questions:
        return 0
    correct = sum(
        1 for idx, question in enumerate(questions)
        if idx < len(answers) and answers[idx] == question.correct_answer_index
    )
    return int(math.floor(correct * 100 / len(questions) + 0.5))


class OfflineMaterialGenerator:
    """
    Builds notes from what the user brought along: the text of an
    attached file, or an outline of topic, link and instructions.
    Produces no quiz, so sessions go straight to the result.
    """

    def generate_study_material(
        self,
        topic: str,
        reference_link: Optional[str] = None,
        attachment: Optional[Attachment] = None,
        instructions: Optional[str] = None,
        depth: str = DEFAULT_DEPTH
    ) -> str:
        lines = [f"# {topic}", "", f"*Level: {depth}*", ""]
        if reference_link:
            lines += [f"Reference: <{reference_link}>", ""]
        if instructions:
            lines += ["## Focus", "", instructions.strip(), ""]
        if attachment is not None:
            if not attachment.mime_type.startswith("text/"):
                raise ValueError(
                    f"Cannot read {attachment.name} ({attachment.mime_type}) offline"
                )
            lines += [f"## {attachment.name}", "", attachment.data.decode("utf-8", errors="replace")]
        return "\n".join(lines).rstrip() + "\n"

    def generate_quiz(self, topic: str, notes: Optional[str] = None) -> List[QuizQuestion]:
        return []
