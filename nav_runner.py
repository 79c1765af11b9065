"""
Command line runner for the share-class NAV calculator.

Builds an in-memory fund from a YAML configuration, runs one NAV
calculation per share class as the configured controller, commits each
result and optionally exports the audit trail.
"""

import argparse
import logging
import os
import time
from typing import Dict, List, Optional, Tuple

import utils
from audit import AuditLog, save_audit_trail
from collaborators import (
    InMemoryFundStorage,
    NavConversion,
    NavUpdate,
    StaticFundBalance,
    StaticPriceFeed,
)
from config_loader import Config, load_config, to_scaled, validate_config
from nav_calculator import NavCalculator


def build_fund(config: Config) -> Tuple[NavCalculator, InMemoryFundStorage, AuditLog]:
    """
    Wire a NavCalculator to in-memory collaborators described by config.

    Returns:
        Tuple of (calculator, storage, audit_log)
    """
    scale = config.fund.scale
    storage = InMemoryFundStorage(config.fund.decimals)
    for share_class in config.share_classes:
        storage.register_share_class(share_class.id, share_class.parameters(), share_class.state(scale))

    audit_log = AuditLog()
    calculator = NavCalculator(
        storage=storage,
        price_feed=StaticPriceFeed(to_scaled(config.fund.portfolio_value, scale)),
        conversion=NavConversion(
            storage,
            native_price=to_scaled(config.fund.native_price, scale),
            native_decimals=config.fund.native_decimals,
        ),
        fund_balance=StaticFundBalance(to_scaled(config.fund.cash_balance, config.fund.native_scale)),
        audit_sink=audit_log,
        owner=config.fund.owner,
        controller=config.fund.controller,
    )
    return calculator, storage, audit_log


def run_calculations(
    config: Config,
    share_class_ids: Optional[List[str]] = None,
    now: Optional[int] = None
) -> Tuple[Dict[str, NavUpdate], InMemoryFundStorage, AuditLog]:
    """
    Run and commit one calculation per share class.

    All classes are valued at the same timestamp.

    Returns:
        Tuple of (updates by share class id, storage, audit_log)
    """
    calculator, storage, audit_log = build_fund(config)
    if share_class_ids is None:
        share_class_ids = storage.share_class_ids()
    if now is None:
        now = int(time.time())

    updates = {}
    for share_class_id in share_class_ids:
        update = calculator.calculate_and_commit(config.fund.controller, share_class_id, storage.commit, now)
        updates[share_class_id] = update

    return updates, storage, audit_log


def print_summary(updates: Dict[str, NavUpdate], config: Config) -> None:
    scale = config.fund.scale
    for share_class_id, update in updates.items():
        print(f"Share class {share_class_id}")
        print(f"  NAV per share:          {scale.to_decimal(update.nav_per_share)}")
        print(f"  Loss carryforward:      {scale.to_decimal(update.loss_carryforward)}")
        print(f"  Accumulated mgmt fees:  {scale.to_decimal(update.accumulated_mgmt_fees)}")
        print(f"  Accumulated admin fees: {scale.to_decimal(update.accumulated_admin_fees)}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Calculate NAV per share, fees and loss carryforward for fund share classes.')
    parser.add_argument('-c', '--config', default='config.yaml', help='Path to the fund configuration file')
    parser.add_argument('-s', '--share-class', action='append', dest='share_classes',
                        help='Share class to calculate (repeatable, defaults to all)')
    parser.add_argument('--now', type=int, default=None, help='Calculation time in epoch seconds (defaults to now)')
    parser.add_argument('-o', '--audit-output', default=None, help='Write the audit trail to this .xlsx or .csv file')
    args = parser.parse_args(argv)

    config = load_config(args.config)
    utils.setup_logging(config.logging.file_prefix, config.logging.log_dir, config.logging.level)

    issues = validate_config(config)
    if issues:
        for issue in issues:
            logging.error(f"Config issue: {issue}")
            print(f"Config issue: {issue}")
        return 2

    if not config.share_classes:
        print("No share classes configured")
        return 1

    updates, _, audit_log = run_calculations(config, args.share_classes, args.now)
    print_summary(updates, config)

    audit_output = args.audit_output
    if audit_output is None and config.paths.audit_file:
        audit_output = os.path.join(config.paths.output_dir, config.paths.audit_file)
    if audit_output:
        save_audit_trail(audit_log, audit_output)

    print("NAV calculation completed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
