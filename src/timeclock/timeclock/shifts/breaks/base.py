from __future__ import annotations

from abc import ABC, abstractmethod


class BreakPolicy(ABC):
    """Break policy interface (Strategy Pattern for automatic deductions)."""

    @abstractmethod
    def auto_break_minutes(self, total_minutes: int) -> int:
        raise NotImplementedError
