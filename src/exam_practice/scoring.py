"""Scoring rule for single- and multiple-answer questions."""
from typing import Iterable


def parse_labels(answer: str) -> frozenset:
    """Split a concatenated answer string like "AC" into its labels."""
    return frozenset(answer.strip())


def is_multiple_answer(correct: Iterable[str] | str) -> bool:
    labels = parse_labels(correct) if isinstance(correct, str) else frozenset(correct)
    return len(labels) > 1


def score(selected: Iterable[str], correct: Iterable[str] | str) -> bool:
    """Exact match: same size and same membership, order ignored."""
    selected = frozenset(selected)
    correct = parse_labels(correct) if isinstance(correct, str) else frozenset(correct)
    return len(selected) == len(correct) and selected == correct


def format_answer(labels: Iterable[str]) -> str:
    return "".join(sorted(labels))
