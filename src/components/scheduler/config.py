"""
Scheduler configuration.

Built from the ``scheduling`` section of rules.yaml; the defaults match the
values shipped there.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.rules.models import SchedulingRules


@dataclass(frozen=True)
class SchedulerConfig:
    """Scheduler configuration from rules."""

    # Display zone used when the caller does not send one
    default_timezone: str = "America/La_Paz"

    # Batch scheduling
    max_batch_size: int = 500
    max_stagger_minutes: int = 7 * 24 * 60

    # Listing
    default_page_size: int = 10
    max_page_size: int = 100

    # Processor
    max_due_per_run: int = 100
    processor_workers: int = 1

    # None disables the bound on a single Content Store mutation
    execution_timeout_seconds: float | None = 30.0

    @classmethod
    def from_rules(cls, rules: SchedulingRules) -> SchedulerConfig:
        return cls(
            default_timezone=rules.default_timezone,
            max_batch_size=rules.max_batch_size,
            max_stagger_minutes=rules.max_stagger_minutes,
            default_page_size=rules.default_page_size,
            max_page_size=rules.max_page_size,
            max_due_per_run=rules.max_due_per_run,
            processor_workers=rules.processor_workers,
            execution_timeout_seconds=rules.execution_timeout_seconds,
        )


DEFAULT_CONFIG = SchedulerConfig()
