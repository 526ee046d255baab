"""Stock risk validators.

Each validator is a plain callable taking a ValidationContext and raising
RiskValidationError to veto the decision.
"""

from decimal import Decimal

from candlegraph.exceptions import RiskValidationError
from candlegraph.models import Position
from candlegraph.risk.filter import RiskValidator, ValidationContext


def levels_consistent(context: ValidationContext) -> None:
    """Reject decisions whose TP/SL sit on the wrong side of each other or of entry."""
    d = context.decision
    if d.position is Position.LONG:
        ok = d.price_take_profit > d.price_stop_loss
        if ok and d.price_open is not None:
            ok = d.price_stop_loss < d.price_open < d.price_take_profit
    else:
        ok = d.price_take_profit < d.price_stop_loss
        if ok and d.price_open is not None:
            ok = d.price_take_profit < d.price_open < d.price_stop_loss
    if not ok:
        raise RiskValidationError(
            f"Inconsistent levels for {d.position.value}: "
            f"open={d.price_open} tp={d.price_take_profit} sl={d.price_stop_loss}",
            validator="levels_consistent",
        )


def min_reward_risk(ratio: Decimal) -> RiskValidator:
    """Reject decisions whose reward/risk (TP distance / SL distance) is below ``ratio``.

    Decisions without an entry price are accepted.
    """

    def validate(context: ValidationContext) -> None:
        d = context.decision
        if d.price_open is None:
            return
        reward = abs(d.price_take_profit - d.price_open)
        risk = abs(d.price_open - d.price_stop_loss)
        if risk == 0 or reward / risk < ratio:
            raise RiskValidationError(
                f"Reward/risk below {ratio}: reward={reward} risk={risk}",
                validator="min_reward_risk",
            )

    validate.__name__ = "min_reward_risk"
    return validate


def max_consecutive(count: int) -> RiskValidator:
    """Reject a decision that would extend a run of ``count`` same-direction decisions."""
    if count <= 0:
        raise ValueError(f"count must be positive, got {count}")

    def validate(context: ValidationContext) -> None:
        recent = context.prior_decisions[-count:]
        if len(recent) == count and all(
            p.position is context.decision.position for p in recent
        ):
            raise RiskValidationError(
                f"{count} consecutive {context.decision.position.value} signals",
                validator="max_consecutive",
            )

    validate.__name__ = "max_consecutive"
    return validate
