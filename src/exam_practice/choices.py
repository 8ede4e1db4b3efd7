"""Stable per-session presentation order for answer choices."""
import random
from typing import Optional, Sequence

from exam_practice.models import IMAGE_PLACEHOLDER, Question, ShuffledChoice
from exam_practice.shuffle import shuffle


def valid_choices(question: Question) -> list[ShuffledChoice]:
    """Non-empty choices of a question, in source order."""
    return [
        ShuffledChoice(label=label, text=text)
        for label, text in question.choices.items()
        if text and text.strip()
    ]


def split_image_text(text: str, images: Sequence[str] = ()) -> list[tuple[str, Optional[str]]]:
    """Split text on image placeholders.

    Returns ("text", part) and ("image", url-or-None) segments; the n-th
    placeholder is bound to ``images[n]`` and is None when no image exists.
    """
    parts = text.split(IMAGE_PLACEHOLDER)
    segments = []
    for index, part in enumerate(parts):
        if part:
            segments.append(("text", part))
        if index < len(parts) - 1:
            url = images[index] if index < len(images) and images[index] else None
            segments.append(("image", url))
    return segments


class ChoicePresentationMap:
    """Binds each question index to one shuffled choice ordering.

    An ordering is generated the first time a question index is seen and is
    then reused for display and scoring until ``clear()``.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng
        self._orderings: dict[int, tuple] = {}

    def ensure(self, index: int, question: Question) -> tuple:
        ordering = self._orderings.get(index)
        if ordering is None:
            ordering = tuple(shuffle(valid_choices(question), self._rng))
            self._orderings[index] = ordering
        return ordering

    def build(self, questions: Sequence[Question], start: int = 0) -> None:
        for offset, question in enumerate(questions):
            self.ensure(start + offset, question)

    def get(self, index: int) -> tuple:
        return self._orderings.get(index, ())

    def label_at(self, index: int, position: int) -> Optional[str]:
        """Map a 0-based display position back to its choice label."""
        ordering = self.get(index)
        if 0 <= position < len(ordering):
            return ordering[position].label
        return None

    def clear(self) -> None:
        self._orderings = {}

    def __contains__(self, index: int) -> bool:
        return index in self._orderings

    def __len__(self) -> int:
        return len(self._orderings)
