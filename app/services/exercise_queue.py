"""Display order of a running session.

The queue holds ``order_index`` values. Skipping rearranges what is shown
next; completion is always recorded against ``queue[position]``, so a
reordered queue still marks the right exercise as done. The queue lives only
in memory. Only the completed orders are sent to ``complete``.
"""

from __future__ import annotations

from app.core.errors import QueueExhausted, Unskippable


def initialize(n: int) -> list[int]:
    return list(range(n))


def skip(queue: list[int], position: int) -> list[int]:
    """Move ``queue[position]`` to just after the element that follows it."""
    if len(queue) < 2 or not 0 <= position < len(queue) - 1:
        raise Unskippable()
    result = list(queue)
    item = result.pop(position)
    result.insert(position + 1, item)
    return result


def advance(queue: list[int], position: int) -> int:
    if position + 1 >= len(queue):
        raise QueueExhausted()
    return position + 1


def retreat(queue: list[int], position: int) -> int:
    return max(0, position - 1)


class ExerciseQueue:
    def __init__(self, n: int):
        self.order = initialize(n)
        self.position = 0
        self.completed: set[int] = set()

    def __len__(self) -> int:
        return len(self.order)

    @property
    def current(self) -> int | None:
        if not self.order:
            return None
        return self.order[self.position]

    @property
    def completed_orders(self) -> frozenset[int]:
        return frozenset(self.completed)

    def skip(self) -> None:
        self.order = skip(self.order, self.position)

    def complete_current(self) -> bool:
        """Mark the current exercise done and move on.

        Returns True when nothing is left, which is the caller's cue to
        complete the session.
        """
        if not self.order:
            return True
        self.completed.add(self.order[self.position])
        try:
            self.position = advance(self.order, self.position)
        except QueueExhausted:
            return True
        return False

    def retreat(self) -> None:
        if self.position == 0:
            return
        self.position = retreat(self.order, self.position)
        # Going back re-opens the exercise we land on.
        self.completed.discard(self.order[self.position])
