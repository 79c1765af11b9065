"""
Collaborators of the NAV calculator: storage, prices, conversion, balances.

The calculator only talks to these through the Protocols below, so a
different backend (database, price oracle, custodian feed) can be swapped in
without touching the calculation. The in-memory implementations back the
command line runner and the tests.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, NamedTuple, Protocol, Tuple

from fixed_point import FixedPointScale, add, mul, div, require_uint


@dataclass(frozen=True)
class FundParameters:
    """Fee rates of a share class, in basis points (0-10000)."""
    admin_fee_bps: int
    mgmt_fee_bps: int
    perform_fee_bps: int

    def __post_init__(self):
        for name in ('admin_fee_bps', 'mgmt_fee_bps', 'perform_fee_bps'):
            value = require_uint(getattr(self, name), name)
            if value > 10000:
                raise ValueError(f"{name} must be between 0 and 10000, got {value}")


@dataclass(frozen=True)
class ShareClassState:
    """
    Persisted financial state of one share class.

    Attributes:
        last_calc_date: Epoch seconds of the last completed calculation
        nav_per_share: Scaled NAV per share as of last_calc_date
        loss_carryforward: Unrecovered losses eligible to offset performance fees
        accumulated_mgmt_fees: Management fees owed, net of performance-fee offsets
        accumulated_admin_fees: Admin fees owed
        share_supply: Issued units of the share class
    """
    last_calc_date: int
    nav_per_share: int
    loss_carryforward: int = 0
    accumulated_mgmt_fees: int = 0
    accumulated_admin_fees: int = 0
    share_supply: int = 0

    def __post_init__(self):
        for name in ('last_calc_date', 'nav_per_share', 'loss_carryforward',
                     'accumulated_mgmt_fees', 'accumulated_admin_fees', 'share_supply'):
            require_uint(getattr(self, name), name)


class NavUpdate(NamedTuple):
    """The five state fields rewritten by one calculation."""
    last_calc_date: int
    nav_per_share: int
    loss_carryforward: int
    accumulated_mgmt_fees: int
    accumulated_admin_fees: int


class FundStorage(Protocol):
    def get_share_class(self, share_class_id: str) -> Tuple[FundParameters, ShareClassState]: ...

    def total_share_supply(self) -> int: ...

    def decimals(self) -> int: ...


class PriceFeed(Protocol):
    def current_portfolio_value(self) -> int: ...


class ValueConversion(Protocol):
    def shares_to_value(self, share_class_id: str, share_count: int) -> int: ...

    def native_balance_to_value(self, amount: int) -> int: ...


class FundBalance(Protocol):
    def current_cash_balance(self) -> int: ...


class InMemoryFundStorage:
    """
    Dict-backed storage of share classes for a single fund.

    commit() is the caller-side persistence step: it replaces the five
    calculated fields of a share class in one assignment, so readers never
    see a half-applied update.
    """

    def __init__(self, decimals: int):
        self._scale = FixedPointScale(decimals)
        self._share_classes: Dict[str, Tuple[FundParameters, ShareClassState]] = {}

    def register_share_class(
        self,
        share_class_id: str,
        parameters: FundParameters,
        state: ShareClassState
    ) -> None:
        if share_class_id in self._share_classes:
            raise ValueError(f"Share class {share_class_id} already registered")
        self._share_classes[share_class_id] = (parameters, state)
        logging.info(f"Registered share class {share_class_id} with supply {state.share_supply}")

    def share_class_ids(self) -> List[str]:
        return list(self._share_classes)

    def get_share_class(self, share_class_id: str) -> Tuple[FundParameters, ShareClassState]:
        try:
            return self._share_classes[share_class_id]
        except KeyError:
            raise KeyError(f"Unknown share class: {share_class_id}") from None

    def total_share_supply(self) -> int:
        total = 0
        for _, state in self._share_classes.values():
            total = add(total, state.share_supply)
        return total

    def decimals(self) -> int:
        return self._scale.decimals

    def commit(self, share_class_id: str, update: NavUpdate) -> ShareClassState:
        """Persist a calculation result and return the new state."""
        parameters, state = self.get_share_class(share_class_id)
        new_state = replace(state, **update._asdict())
        self._share_classes[share_class_id] = (parameters, new_state)
        return new_state


class StaticPriceFeed:
    """Price feed returning a fixed, externally set portfolio value."""

    def __init__(self, portfolio_value: int = 0):
        self._value = require_uint(portfolio_value, 'portfolio_value')

    def set_value(self, portfolio_value: int) -> None:
        self._value = require_uint(portfolio_value, 'portfolio_value')

    def current_portfolio_value(self) -> int:
        return self._value


class StaticFundBalance:
    """Uncommitted cash held outside the managed portfolio, in native units."""

    def __init__(self, cash_balance: int = 0):
        self._balance = require_uint(cash_balance, 'cash_balance')

    def set_balance(self, cash_balance: int) -> None:
        self._balance = require_uint(cash_balance, 'cash_balance')

    def current_cash_balance(self) -> int:
        return self._balance


class NavConversion:
    """
    Converts share counts and native balances into settlement-currency value.

    Shares are valued at the share class's last stored NAV per share. Native
    balances are valued at a fixed price per whole native unit.

    Attributes:
        storage: Storage holding share-class NAV per share
        native_price: Scaled settlement value of one whole native unit
        native_decimals: Decimals of the native balance
    """

    def __init__(self, storage: FundStorage, native_price: int = 0, native_decimals: int = 18):
        self.storage = storage
        self.native_price = require_uint(native_price, 'native_price')
        self.native_scale = FixedPointScale(native_decimals)

    def shares_to_value(self, share_class_id: str, share_count: int) -> int:
        _, state = self.storage.get_share_class(share_class_id)
        scale = FixedPointScale(self.storage.decimals()).scale
        return div(mul(share_count, state.nav_per_share), scale)

    def native_balance_to_value(self, amount: int) -> int:
        return div(mul(amount, self.native_price), self.native_scale.scale)
