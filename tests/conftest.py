import os
import sys

import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
sys.path.insert(0, PROJECT_ROOT)

from audit import AuditLog
from collaborators import (
    FundParameters,
    InMemoryFundStorage,
    NavConversion,
    ShareClassState,
    StaticFundBalance,
    StaticPriceFeed,
)
from nav_calculator import NavCalculator


DECIMALS = 6
SCALE = 10 ** DECIMALS
START = 1_704_067_200  # 2024-01-01T00:00:00Z
ONE = SCALE


@pytest.fixture
def fund_parameters():
    return FundParameters(admin_fee_bps=50, mgmt_fee_bps=200, perform_fee_bps=2000)


@pytest.fixture
def initial_state():
    return ShareClassState(last_calc_date=START, nav_per_share=ONE, share_supply=ONE)


@pytest.fixture
def make_calculator(fund_parameters, initial_state):
    """Factory wiring a NavCalculator to fresh in-memory collaborators."""
    def _make(
        portfolio_value=1_100_000,
        state=None,
        parameters=None,
        extra_classes=None,
        cash_balance=0,
        native_price=0,
        conversion=None,
    ):
        storage = InMemoryFundStorage(DECIMALS)
        storage.register_share_class('A', parameters or fund_parameters, state or initial_state)
        for share_class_id, extra_state in (extra_classes or {}).items():
            storage.register_share_class(share_class_id, fund_parameters, extra_state)
        audit_log = AuditLog()
        calculator = NavCalculator(
            storage=storage,
            price_feed=StaticPriceFeed(portfolio_value),
            conversion=conversion or NavConversion(storage, native_price=native_price, native_decimals=18),
            fund_balance=StaticFundBalance(cash_balance),
            audit_sink=audit_log,
            owner='owner',
            controller='controller',
        )
        return calculator, storage, audit_log
    return _make


@pytest.fixture
def calculator_setup(make_calculator):
    return make_calculator()
