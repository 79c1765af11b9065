"""
NAV calculator for a single share class of a pooled fund.

Each calculation runs the same fixed sequence:
1. Read fee parameters and prior state of the share class
2. Value the share supply at the prior NAV per share
3. Prorate the fund's current value (portfolio + cash - accrued fees) to the class
4. Accrue management and admin fees for the elapsed time
5. Allocate the resulting gain or loss (performance fee / loss carryforward)
6. Convert the new NAV to a per-share figure
7. Emit an audit record and return the five updated state fields

The calculator never writes storage itself. The caller persists the
returned NavUpdate, either afterwards or through calculate_and_commit,
which runs the caller's commit under the share-class lock. Any error
aborts the calculation before the audit record is emitted, so a failed
run leaves no trace.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional

from audit import AuditSink, CalculationRecord
from collaborators import FundBalance, FundStorage, NavUpdate, PriceFeed, ValueConversion
from fee_calculator import allocate_gain_loss, annual_fee_accrued
from fixed_point import FixedPointScale, add, div, mul, signed_sub, sub


class UnauthorizedError(PermissionError):
    """Caller is not allowed to perform the operation."""


def nav_per_share(total_value: int, share_count: int, scale: int) -> int:
    """
    Scale a total value down to one share: total_value * scale / share_count.

    Raises:
        DivisionByZeroError: If share_count is zero
    """
    return div(mul(total_value, scale), share_count)


class NavCalculator:
    """
    Orchestrates the NAV calculation of a fund's share classes.

    Only the controller may run calculations. The owner may replace the
    controller and the price feed.

    Attributes:
        storage: Share-class state and fund parameters
        price_feed: Current portfolio value
        conversion: Share and native-balance valuation
        fund_balance: Uncommitted cash held by the fund
        audit_sink: Receives one CalculationRecord per calculation
        owner: Identity allowed to reconfigure the calculator
        controller: Identity allowed to run calculations
    """

    def __init__(
        self,
        storage: FundStorage,
        price_feed: PriceFeed,
        conversion: ValueConversion,
        fund_balance: FundBalance,
        audit_sink: AuditSink,
        owner: str,
        controller: str
    ):
        self.storage = storage
        self.price_feed = price_feed
        self.conversion = conversion
        self.fund_balance = fund_balance
        self.audit_sink = audit_sink
        self.owner = owner
        self.controller = controller
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _require_owner(self, caller: str, action: str) -> None:
        if caller != self.owner:
            logging.warning(f"Rejected {action} by {caller}: not the owner")
            raise UnauthorizedError(f"{caller} is not allowed to {action}")

    def set_controller(self, caller: str, new_controller: str) -> None:
        self._require_owner(caller, 'set the controller')
        logging.info(f"Controller changed from {self.controller} to {new_controller}")
        self.controller = new_controller

    def set_price_feed(self, caller: str, new_price_feed: PriceFeed) -> None:
        self._require_owner(caller, 'set the price feed')
        logging.info(f"Price feed changed to {type(new_price_feed).__name__}")
        self.price_feed = new_price_feed

    def _share_class_lock(self, share_class_id: str) -> threading.Lock:
        with self._locks_guard:
            if share_class_id not in self._locks:
                # raises KeyError for unknown classes before a lock is created
                self.storage.get_share_class(share_class_id)
                self._locks[share_class_id] = threading.Lock()
            return self._locks[share_class_id]

    def calculate_nav(self, caller: str, share_class_id: str, now: Optional[int] = None) -> NavUpdate:
        """
        Recalculate NAV per share, fees and loss carryforward for a share class.

        Args:
            caller: Identity invoking the calculation; must be the controller
            share_class_id: Share class to calculate
            now: Calculation time in epoch seconds (defaults to the current time)

        Returns:
            NavUpdate with the new last_calc_date, nav_per_share,
            loss_carryforward, accumulated_mgmt_fees and accumulated_admin_fees

        Raises:
            UnauthorizedError: If caller is not the controller
            FixedPointError: On overflow, underflow or division by zero
        """
        return self._run(caller, share_class_id, now)

    def calculate_and_commit(
        self,
        caller: str,
        share_class_id: str,
        commit: Callable[[str, NavUpdate], object],
        now: Optional[int] = None
    ) -> NavUpdate:
        """
        Calculate a share class and persist the result under its lock.

        The share-class lock is held from the state read through
        commit(share_class_id, update), so concurrent callers for the same
        class each start from the previous caller's committed state. If
        commit raises, the error propagates and no audit record is emitted.

        Args:
            caller: Identity invoking the calculation; must be the controller
            share_class_id: Share class to calculate
            commit: Persists the update, e.g. InMemoryFundStorage.commit
            now: Calculation time in epoch seconds (defaults to the current time)

        Returns:
            The committed NavUpdate
        """
        return self._run(caller, share_class_id, now, commit)

    def _run(
        self,
        caller: str,
        share_class_id: str,
        now: Optional[int],
        commit: Optional[Callable[[str, NavUpdate], object]] = None
    ) -> NavUpdate:
        if caller != self.controller:
            logging.warning(f"Rejected NAV calculation for {share_class_id} by {caller}: not the controller")
            raise UnauthorizedError(f"{caller} is not allowed to calculate NAV")

        if now is None:
            now = int(time.time())

        with self._share_class_lock(share_class_id):
            record = self._calculate(share_class_id, now)
            update = NavUpdate(
                last_calc_date=record.timestamp,
                nav_per_share=record.nav_per_share,
                loss_carryforward=record.loss_carryforward,
                accumulated_mgmt_fees=record.accumulated_mgmt_fees,
                accumulated_admin_fees=record.accumulated_admin_fees,
            )
            if commit is not None:
                commit(share_class_id, update)
            self.audit_sink.emit(record)

        logging.info(
            f"Calculated NAV for {share_class_id}: nav/share {record.nav_per_share}, "
            f"gain/loss {record.gain_loss} over {record.elapsed_time}s"
        )
        return update

    def _calculate(self, share_class_id: str, now: int) -> CalculationRecord:
        params, state = self.storage.get_share_class(share_class_id)
        scale = FixedPointScale(self.storage.decimals()).scale
        total_share_supply = self.storage.total_share_supply()

        prior_value = self.conversion.shares_to_value(share_class_id, state.share_supply)
        elapsed_time = sub(now, state.last_calc_date)

        cash_value = self.conversion.native_balance_to_value(self.fund_balance.current_cash_balance())
        fund_value = add(self.price_feed.current_portfolio_value(), cash_value)
        fund_value_less_fees = sub(sub(fund_value, state.accumulated_mgmt_fees), state.accumulated_admin_fees)
        gross_asset_value_less_fees = div(mul(fund_value_less_fees, state.share_supply), total_share_supply)

        mgmt_fee = annual_fee_accrued(prior_value, elapsed_time, params.mgmt_fee_bps)
        admin_fee = annual_fee_accrued(prior_value, elapsed_time, params.admin_fee_bps)

        gain_loss = signed_sub(
            signed_sub(signed_sub(gross_asset_value_less_fees, prior_value), mgmt_fee),
            admin_fee
        )

        allocation = allocate_gain_loss(
            gain_loss,
            prior_value,
            state.loss_carryforward,
            state.accumulated_mgmt_fees,
            params.perform_fee_bps,
            scale,
        )

        accumulated_admin_fees = add(state.accumulated_admin_fees, admin_fee)
        accumulated_mgmt_fees = sub(
            add(state.accumulated_mgmt_fees, allocation.perform_fee),
            allocation.perform_fee_offset
        )

        return CalculationRecord(
            share_class_id=share_class_id,
            timestamp=now,
            elapsed_time=elapsed_time,
            prior_value=prior_value,
            gross_asset_value_less_fees=gross_asset_value_less_fees,
            gain_loss=gain_loss,
            net_asset_value=allocation.net_asset_value,
            share_class_supply=state.share_supply,
            admin_fee=admin_fee,
            mgmt_fee=mgmt_fee,
            perform_fee=allocation.perform_fee,
            perform_fee_offset=allocation.perform_fee_offset,
            loss_payback=allocation.loss_payback,
            nav_per_share=nav_per_share(allocation.net_asset_value, state.share_supply, scale),
            loss_carryforward=allocation.loss_carryforward,
            accumulated_mgmt_fees=accumulated_mgmt_fees,
            accumulated_admin_fees=accumulated_admin_fees,
        )
