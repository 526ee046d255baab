"""Post-decision risk filter.

Runs an ordered list of validators against each produced SignalDecision.
A validator rejects by raising RiskValidationError; the first rejection
short-circuits the remaining validators and the cycle produces no trade.
Rejections are expected outcomes and are never escalated. Any other
exception is a bug in the validator and propagates.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from candlegraph.exceptions import RiskValidationError
from candlegraph.logging import get_logger
from candlegraph.models import SignalDecision

logger = get_logger(__name__)


@dataclass(frozen=True)
class ValidationContext:
    """Ambient context passed to each validator.

    Attributes:
        symbol: Symbol the decision was produced for.
        decision: The decision under review.
        prior_decisions: Earlier accepted decisions for the symbol, oldest first.
    """

    symbol: str
    decision: SignalDecision
    prior_decisions: tuple[SignalDecision, ...] = field(default_factory=tuple)


RiskValidator = Callable[[ValidationContext], Awaitable[None] | None]


def _validator_name(validator: RiskValidator) -> str:
    return getattr(validator, "__name__", type(validator).__name__)


class RiskFilter:
    """Ordered list of independently registered validators.

    Args:
        validators: Sync or async callables taking a ValidationContext.
    """

    def __init__(self, validators: Sequence[RiskValidator] = ()) -> None:
        self._validators = list(validators)

    def __len__(self) -> int:
        return len(self._validators)

    def add(self, validator: RiskValidator) -> None:
        self._validators.append(validator)

    async def check(
        self,
        symbol: str,
        decision: SignalDecision,
        prior_decisions: Sequence[SignalDecision] = (),
    ) -> bool:
        """Return True if every validator accepts the decision.

        Args:
            symbol: Symbol the decision was produced for.
            decision: Decision to validate.
            prior_decisions: Earlier accepted decisions for the symbol.

        Returns:
            False on the first RiskValidationError, True otherwise.
        """
        context = ValidationContext(
            symbol=symbol,
            decision=decision,
            prior_decisions=tuple(prior_decisions),
        )
        for validator in self._validators:
            try:
                result = validator(context)
                if inspect.isawaitable(result):
                    await result
            except RiskValidationError as e:
                logger.info(
                    "signal_rejected_by_risk",
                    symbol=symbol,
                    signal_id=decision.id,
                    validator=e.validator or _validator_name(validator),
                    reason=e.reason,
                )
                return False
        return True
