"""Payment approval policy."""

from enum import Enum
from typing import Protocol

from orderflow.common.state_machine import OrderStatus


DEFAULT_REJECTION_RATE = 0.3


class RandomSource(Protocol):
    def random(self) -> float: ...


class ApprovalPolicy(str, Enum):
    ALWAYS = "ALWAYS"
    NEVER = "NEVER"
    RANDOM = "RANDOM"

    @classmethod
    def from_setting(cls, value: str | None) -> "ApprovalPolicy":
        """Map a configuration value to a policy; unknown values settle at random."""

        try:
            return cls((value or "").strip().upper())
        except ValueError:
            return cls.RANDOM


def decide(
    policy: ApprovalPolicy,
    rng: RandomSource,
    rejection_rate: float = DEFAULT_REJECTION_RATE,
) -> OrderStatus:
    """Pick the terminal status for one order. Pure apart from `rng`."""

    if policy is ApprovalPolicy.ALWAYS:
        return OrderStatus.APPROVED
    if policy is ApprovalPolicy.NEVER:
        return OrderStatus.REJECTED
    return OrderStatus.REJECTED if rng.random() < rejection_rate else OrderStatus.APPROVED
