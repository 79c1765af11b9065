"""
Configuration loader for the share-class NAV calculator.

Loads and validates fund configuration from a config.yaml file.

Monetary amounts may be written either as decimal strings in whole units
(e.g. '1.05') or as integers already scaled by 10**decimals (e.g. 1050000).
Strings are converted exactly; floats are rejected so no binary rounding
leaks into the fixed-point state.
"""

import os
import yaml
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Union

from fixed_point import FixedPointScale
from collaborators import FundParameters, ShareClassState


Amount = Union[int, str]


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = 'INFO'
    log_dir: str = 'logs'
    file_prefix: str = 'NAV'


@dataclass
class PathsConfig:
    """Path configuration."""
    output_dir: str = 'results'
    audit_file: str = 'audit_trail.xlsx'


@dataclass
class FundConfig:
    """Fund-wide configuration."""
    decimals: int = 6
    owner: str = 'owner'
    controller: str = 'controller'
    portfolio_value: Amount = 0
    cash_balance: Amount = 0          # native units, scaled by native_decimals
    native_price: Amount = 0          # settlement value of one whole native unit
    native_decimals: int = 18

    @property
    def scale(self) -> FixedPointScale:
        return FixedPointScale(self.decimals)

    @property
    def native_scale(self) -> FixedPointScale:
        return FixedPointScale(self.native_decimals)


@dataclass
class ShareClassConfig:
    """Fee rates and starting state of one share class."""
    id: str
    admin_fee_bps: int = 0
    mgmt_fee_bps: int = 0
    perform_fee_bps: int = 0
    share_supply: Amount = 0
    nav_per_share: Amount = 0
    last_calc_date: int = 0
    loss_carryforward: Amount = 0
    accumulated_mgmt_fees: Amount = 0
    accumulated_admin_fees: Amount = 0

    def parameters(self) -> FundParameters:
        return FundParameters(
            admin_fee_bps=self.admin_fee_bps,
            mgmt_fee_bps=self.mgmt_fee_bps,
            perform_fee_bps=self.perform_fee_bps,
        )

    def state(self, scale: FixedPointScale) -> ShareClassState:
        return ShareClassState(
            last_calc_date=self.last_calc_date,
            nav_per_share=to_scaled(self.nav_per_share, scale),
            loss_carryforward=to_scaled(self.loss_carryforward, scale),
            accumulated_mgmt_fees=to_scaled(self.accumulated_mgmt_fees, scale),
            accumulated_admin_fees=to_scaled(self.accumulated_admin_fees, scale),
            share_supply=to_scaled(self.share_supply, scale),
        )


@dataclass
class Config:
    """Main configuration class."""
    fund: FundConfig
    share_classes: List[ShareClassConfig] = field(default_factory=list)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)

    def get_share_class_ids(self) -> List[str]:
        """Return share class ids in configuration order."""
        return [s.id for s in self.share_classes]


def to_scaled(amount: Amount, scale: FixedPointScale) -> int:
    """
    Convert a configured amount to a scaled integer.

    Integers are taken as already scaled; strings are whole units.
    """
    if isinstance(amount, bool):
        raise TypeError(f"Amount must be an integer or decimal string, got {amount!r}")
    if isinstance(amount, int):
        return amount
    if isinstance(amount, str):
        return scale.from_units(amount)
    raise TypeError(f"Amount must be an integer or decimal string, got {amount!r}")


def load_config(config_path: str = 'config.yaml') -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Config object with parsed configuration

    Raises:
        ValueError: If configuration is malformed
    """
    if not os.path.exists(config_path):
        logging.warning(f"Config file {config_path} not found, using defaults")
        return _get_default_config()

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping at the top level")

    return _parse_config(raw_config)


def _get_default_config() -> Config:
    """Return default configuration: one empty fund with no share classes."""
    return Config(fund=FundConfig())


def _parse_config(raw: dict) -> Config:
    """Parse raw YAML dict into Config object."""
    # Parse fund
    fund_raw = raw.get('fund', {}) or {}
    fund = FundConfig(
        decimals=fund_raw.get('decimals', 6),
        owner=str(fund_raw.get('owner', 'owner')),
        controller=str(fund_raw.get('controller', 'controller')),
        portfolio_value=fund_raw.get('portfolio_value', 0),
        cash_balance=fund_raw.get('cash_balance', 0),
        native_price=fund_raw.get('native_price', 0),
        native_decimals=fund_raw.get('native_decimals', 18),
    )

    # Parse share classes
    share_classes = []
    for s in raw.get('share_classes', []) or []:
        if 'id' not in s:
            raise ValueError(f"Share class entry missing id: {s}")
        share_classes.append(ShareClassConfig(
            id=str(s['id']),
            admin_fee_bps=s.get('admin_fee_bps', 0),
            mgmt_fee_bps=s.get('mgmt_fee_bps', 0),
            perform_fee_bps=s.get('perform_fee_bps', 0),
            share_supply=s.get('share_supply', 0),
            nav_per_share=s.get('nav_per_share', 0),
            last_calc_date=s.get('last_calc_date', 0),
            loss_carryforward=s.get('loss_carryforward', 0),
            accumulated_mgmt_fees=s.get('accumulated_mgmt_fees', 0),
            accumulated_admin_fees=s.get('accumulated_admin_fees', 0),
        ))

    # Parse logging
    logging_raw = raw.get('logging', {}) or {}
    logging_config = LoggingConfig(
        level=str(logging_raw.get('level', 'INFO')).upper(),
        log_dir=logging_raw.get('log_dir', 'logs'),
        file_prefix=logging_raw.get('file_prefix', 'NAV'),
    )

    # Parse paths
    paths_raw = raw.get('paths', {}) or {}
    paths = PathsConfig(
        output_dir=paths_raw.get('output_dir', 'results'),
        audit_file=paths_raw.get('audit_file', 'audit_trail.xlsx'),
    )

    return Config(
        fund=fund,
        share_classes=share_classes,
        logging=logging_config,
        paths=paths,
    )


def validate_config(config: Config) -> List[str]:
    """
    Validate configuration and return list of warnings/errors.

    Args:
        config: Configuration to validate

    Returns:
        List of warning/error messages (empty if valid)
    """
    issues = []

    # Validate fund
    try:
        scale = config.fund.scale
    except (TypeError, ValueError) as e:
        issues.append(f"Invalid fund decimals: {e}")
        return issues

    try:
        config.fund.native_scale
    except (TypeError, ValueError) as e:
        issues.append(f"Invalid native decimals: {e}")

    for name in ('portfolio_value', 'native_price'):
        try:
            to_scaled(getattr(config.fund, name), scale)
        except (TypeError, ValueError, ArithmeticError) as e:
            issues.append(f"Invalid fund {name}: {e}")

    try:
        to_scaled(config.fund.cash_balance, config.fund.native_scale)
    except (TypeError, ValueError, ArithmeticError) as e:
        issues.append(f"Invalid fund cash_balance: {e}")

    if not config.fund.owner:
        issues.append("Fund missing owner")
    if not config.fund.controller:
        issues.append("Fund missing controller")

    if config.logging.level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        issues.append(f"Unknown logging level: {config.logging.level}")

    # Validate share classes
    seen: Dict[str, int] = {}
    for s in config.share_classes:
        if not s.id:
            issues.append("Share class missing id")
        seen[s.id] = seen.get(s.id, 0) + 1

        try:
            parameters = s.parameters()
        except (TypeError, ValueError, ArithmeticError) as e:
            issues.append(f"Share class {s.id} has invalid fee rates: {e}")
            parameters = None

        try:
            state = s.state(scale)
        except (TypeError, ValueError, ArithmeticError) as e:
            issues.append(f"Share class {s.id} has invalid state: {e}")
            continue

        if state.share_supply == 0:
            issues.append(f"Share class {s.id} has zero share supply (NAV per share undefined)")
        if parameters is not None and parameters.perform_fee_bps > 5000:
            logging.warning(f"Share class {s.id} performance fee {parameters.perform_fee_bps} bps seems unusual (expected 0-5000)")

    for share_class_id, count in seen.items():
        if count > 1:
            issues.append(f"Share class {share_class_id} defined {count} times")

    return issues
