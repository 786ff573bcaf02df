"""Shared domain models for envupgrader."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from envupgrader.constants import (
    DEFAULT_POLL_INITIAL_INTERVAL,
    DEFAULT_POLL_MAX_INTERVAL,
    DEFAULT_POLL_MULTIPLIER,
    DEFAULT_POLL_TIMEOUT,
)


class StackStatus(str, Enum):
    IDLE = "idle"
    BUSY = "busy"
    FAILED = "failed"
    UNKNOWN = "unknown"


class VersionOrder(str, Enum):
    """Position of a deployed version relative to the latest known version."""

    OLDER = "older"
    EQUAL = "equal"
    NEWER = "newer"


class UpgradeDecision(str, Enum):
    UPGRADE = "upgrade"
    SKIP_UP_TO_DATE = "skip_up_to_date"
    SKIP_AHEAD_OF_KNOWN = "skip_ahead_of_known"
    BLOCKED = "blocked"


class RunState(str, Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    ITERATING = "iterating"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class EnvironmentRecord:
    """Environment as registered in the application's directory."""

    app: str
    name: str
    region: Optional[str] = None
    customized_vpc: Optional[bool] = None
    vpc_config_persisted: Optional[bool] = None


@dataclass(frozen=True)
class GuardResult:
    allowed: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class PollPolicy:
    """Backoff parameters for waiting on a busy stack, in seconds."""

    initial_interval: float = DEFAULT_POLL_INITIAL_INTERVAL
    multiplier: float = DEFAULT_POLL_MULTIPLIER
    max_interval: float = DEFAULT_POLL_MAX_INTERVAL
    timeout: float = DEFAULT_POLL_TIMEOUT

    def __post_init__(self):
        if self.initial_interval < 0 or self.max_interval < 0:
            raise ValueError("Poll intervals must not be negative.")
        if self.multiplier < 1:
            raise ValueError("Poll multiplier must be at least 1.")
        if self.timeout < 0:
            raise ValueError("Poll timeout must not be negative.")


@dataclass
class EnvironmentOutcome:
    name: str
    deployed_version: Optional[str] = None
    decision: Optional[UpgradeDecision] = None
    upgraded: bool = False
    error: Optional[str] = None


@dataclass
class RunResult:
    """Outcome of one orchestration run, including partial batches."""

    app: str
    state: RunState = RunState.PENDING
    targets: List[str] = field(default_factory=list)
    outcomes: List[EnvironmentOutcome] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def pending(self) -> List[str]:
        evaluated = {outcome.name for outcome in self.outcomes}
        return [name for name in self.targets if name not in evaluated]

    @property
    def upgraded(self) -> List[str]:
        return [outcome.name for outcome in self.outcomes if outcome.upgraded]

    def outcome_for(self, name: str) -> Optional[EnvironmentOutcome]:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        return None
