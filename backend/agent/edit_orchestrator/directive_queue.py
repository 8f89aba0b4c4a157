"""Per-session queue of pending directives.

Directives run in ascending priority. Python's sort is stable, so
directives with equal priority keep their submission order.
"""

from __future__ import annotations

from models.directive_models import Directive


class DirectiveQueue:
    def __init__(self) -> None:
        self._pending: list[Directive] = []
        self.has_received = False

    def __len__(self) -> int:
        return len(self._pending)

    def submit(self, directives: list[Directive]) -> None:
        """Append directives and re-sort the whole queue by priority."""
        self._pending.extend(directives)
        self._pending.sort(key=lambda directive: directive.priority)
        if directives:
            self.has_received = True

    def pop_next(self) -> Directive | None:
        """Remove and return the head of the queue, or None when empty."""
        if not self._pending:
            return None
        return self._pending.pop(0)

    def pending_ids(self) -> list[str]:
        return [directive.directive_id for directive in self._pending]
