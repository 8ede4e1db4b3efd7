"""Fisher-Yates shuffle used for question and choice ordering."""
import random
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


def shuffle(sequence: Sequence[T], rng: Optional[random.Random] = None) -> list[T]:
    """Return a uniformly random permutation of ``sequence`` as a new list.

    The input is never modified. Pass ``rng`` for reproducible orderings.
    """
    rng = rng or random
    shuffled = list(sequence)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled
