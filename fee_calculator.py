"""
Fee calculator for the share-class NAV calculator.

Handles the fixed-point fee waterfall:
- Management and admin fees (annual basis-point rate accrued per second)
- Performance fee on gains, and its inverse (gain implied by a fee)
- Gain/loss allocation with loss carryforward and performance-fee offset

Every quantity is a scaled integer; see fixed_point for the arithmetic rules.
"""

from dataclasses import dataclass

from fixed_point import add, sub, mul, div, DivisionByZeroError


SECONDS_PER_YEAR = 31536000  # 365-day year
BPS_DENOMINATOR = 10000


def annual_fee_accrued(share_supply_value: int, elapsed_seconds: int, annual_fee_bps: int) -> int:
    """
    Accrue an annual basis-point fee over an elapsed time.

    Formula: fee = bps * value / 10000 * elapsed / SECONDS_PER_YEAR

    The two divisions truncate separately, in that order. This can lose a
    couple of units of precision versus one combined division, and is kept
    so results match bit-for-bit across runs.

    Args:
        share_supply_value: Scaled value of the share class's shares
        elapsed_seconds: Seconds since the last calculation
        annual_fee_bps: Annual fee rate in basis points (0-10000)

    Returns:
        Scaled fee amount
    """
    annual_fee = div(mul(annual_fee_bps, share_supply_value), BPS_DENOMINATOR)
    return div(mul(annual_fee, elapsed_seconds), SECONDS_PER_YEAR)


def perform_fee(perform_fee_bps: int, usd_gain: int, scale: int) -> int:
    """Performance fee charged on a gain: bps * gain / scale."""
    return div(mul(perform_fee_bps, usd_gain), scale)


def gain_given_perform_fee(fee: int, perform_fee_bps: int, scale: int) -> int:
    """
    Gain that would have produced a given performance fee: fee * scale / bps.

    Truncation means gain_given_perform_fee(perform_fee(bps, g), bps) <= g.
    A zero fee inverts to a zero gain even when bps is zero; any other fee
    with zero bps has no defined inverse.

    Raises:
        DivisionByZeroError: If perform_fee_bps is zero and fee is not
    """
    if perform_fee_bps == 0:
        if fee == 0:
            return 0
        raise DivisionByZeroError(f"cannot invert fee {fee} at zero performance fee bps")
    return div(mul(fee, scale), perform_fee_bps)


@dataclass(frozen=True)
class GainLossAllocation:
    """
    Outcome of allocating one period's gain or loss.

    Attributes:
        net_asset_value: Share-class NAV after the period
        loss_carryforward: Unrecovered losses still carried
        perform_fee: Performance fee charged on the gain (0 on a loss)
        perform_fee_offset: Fee offset against accrued management fees (0 on a gain)
        loss_payback: Part of the gain that paid down carried losses (0 on a loss)
    """
    net_asset_value: int
    loss_carryforward: int
    perform_fee: int
    perform_fee_offset: int
    loss_payback: int


def allocate_gain_loss(
    gain_loss: int,
    prior_net_asset_value: int,
    loss_carryforward: int,
    accumulated_mgmt_fees: int,
    perform_fee_bps: int,
    scale: int
) -> GainLossAllocation:
    """
    Allocate a period's gain or loss between NAV, fees and carried losses.

    Gain (gain_loss >= 0):
    - The gain first pays back carried losses, free of performance fee
    - Performance fee applies to the remainder only

    Loss (gain_loss < 0):
    - The fee that would apply to this loss, capped by the management fees
      accrued so far, is offset back into NAV
    - Carryforward grows by the loss, less the gain equivalent of that offset

    Args:
        gain_loss: Signed period gain/loss after management and admin fees
        prior_net_asset_value: NAV of the share class before the period
        loss_carryforward: Carried losses before the period
        accumulated_mgmt_fees: Management fees accrued before the period
        perform_fee_bps: Performance fee rate in basis points
        scale: Fixed-point scale (10**decimals)

    Returns:
        GainLossAllocation for the period

    Raises:
        ArithmeticUnderflowError: If the loss exceeds the prior NAV
    """
    if gain_loss >= 0:
        loss_payback = min(gain_loss, loss_carryforward)
        new_carryforward = sub(loss_carryforward, loss_payback)
        fee = perform_fee(perform_fee_bps, sub(gain_loss, loss_payback), scale)
        net_asset_value = sub(add(prior_net_asset_value, gain_loss), fee)
        return GainLossAllocation(
            net_asset_value=net_asset_value,
            loss_carryforward=new_carryforward,
            perform_fee=fee,
            perform_fee_offset=0,
            loss_payback=loss_payback,
        )

    loss = -gain_loss
    offset = min(perform_fee(perform_fee_bps, loss, scale), accumulated_mgmt_fees)
    new_carryforward = sub(
        add(loss_carryforward, loss),
        gain_given_perform_fee(offset, perform_fee_bps, scale)
    )
    net_asset_value = add(sub(prior_net_asset_value, loss), offset)
    return GainLossAllocation(
        net_asset_value=net_asset_value,
        loss_carryforward=new_carryforward,
        perform_fee=0,
        perform_fee_offset=offset,
        loss_payback=0,
    )
