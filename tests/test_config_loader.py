"""Tests for the configuration loader module."""

import logging
import os
import sys

import pytest
import yaml

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
sys.path.insert(0, PROJECT_ROOT)

from config_loader import (
    load_config,
    Config,
    FundConfig,
    ShareClassConfig,
    LoggingConfig,
    PathsConfig,
    to_scaled,
    validate_config,
    _get_default_config,
    _parse_config,
)
from fixed_point import FixedPointScale


SAMPLE = {
    'fund': {
        'decimals': 6,
        'owner': 'owner',
        'controller': 'controller',
        'portfolio_value': '1.1',
        'cash_balance': 0,
        'native_price': '2',
    },
    'share_classes': [
        {
            'id': 'A',
            'admin_fee_bps': 50,
            'mgmt_fee_bps': 200,
            'perform_fee_bps': 2000,
            'share_supply': '1',
            'nav_per_share': '1',
            'last_calc_date': 1704067200,
        },
    ],
    'logging': {'level': 'debug', 'log_dir': 'my_logs'},
    'paths': {'output_dir': 'out', 'audit_file': 'audit.csv'},
}


class TestToScaled:
    """Tests for amount conversion."""

    def test_integer_is_already_scaled(self):
        assert to_scaled(1_074_850, FixedPointScale(6)) == 1_074_850

    def test_string_is_whole_units(self):
        assert to_scaled('1.07485', FixedPointScale(6)) == 1_074_850

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            to_scaled(1.1, FixedPointScale(6))

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            to_scaled(True, FixedPointScale(6))


class TestParseConfig:
    """Tests for parsing a raw configuration dict."""

    def test_fund(self):
        config = _parse_config(SAMPLE)
        assert config.fund.decimals == 6
        assert config.fund.controller == 'controller'
        assert config.fund.portfolio_value == '1.1'
        assert config.fund.native_decimals == 18

    def test_share_classes(self):
        config = _parse_config(SAMPLE)
        assert config.get_share_class_ids() == ['A']
        share_class = config.share_classes[0]
        assert share_class.parameters().perform_fee_bps == 2000
        state = share_class.state(config.fund.scale)
        assert state.share_supply == 1_000_000
        assert state.nav_per_share == 1_000_000
        assert state.last_calc_date == 1704067200
        assert state.loss_carryforward == 0

    def test_logging_and_paths(self):
        config = _parse_config(SAMPLE)
        assert config.logging.level == 'DEBUG'
        assert config.logging.log_dir == 'my_logs'
        assert config.logging.file_prefix == 'NAV'
        assert config.paths == PathsConfig(output_dir='out', audit_file='audit.csv')

    def test_empty(self):
        config = _parse_config({})
        assert config.fund == FundConfig()
        assert config.share_classes == []
        assert config.logging == LoggingConfig()

    def test_share_class_without_id(self):
        with pytest.raises(ValueError):
            _parse_config({'share_classes': [{'mgmt_fee_bps': 200}]})


class TestLoadConfig:
    """Tests for loading config files."""

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / 'missing.yaml'))
        assert config == _get_default_config()

    def test_load_yaml(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump(SAMPLE))
        config = load_config(str(path))
        assert isinstance(config, Config)
        assert config.share_classes[0].id == 'A'

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text('')
        assert load_config(str(path)).share_classes == []

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text('- just\n- a list\n')
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_example_config_is_valid(self):
        config = load_config(os.path.join(PROJECT_ROOT, 'config.example.yaml'))
        assert validate_config(config) == []
        assert config.get_share_class_ids() == ['A']


class TestValidateConfig:
    """Tests for configuration validation."""

    def test_valid(self):
        assert validate_config(_parse_config(SAMPLE)) == []

    def test_float_amount(self):
        config = _parse_config(SAMPLE)
        config.fund.portfolio_value = 1.1
        issues = validate_config(config)
        assert any('portfolio_value' in issue for issue in issues)

    def test_too_precise_amount(self):
        config = _parse_config(SAMPLE)
        config.share_classes[0].nav_per_share = '1.0000001'
        issues = validate_config(config)
        assert any('invalid state' in issue for issue in issues)

    def test_fee_out_of_range(self):
        config = _parse_config(SAMPLE)
        config.share_classes[0].mgmt_fee_bps = 20000
        issues = validate_config(config)
        assert any('invalid fee rates' in issue for issue in issues)

    def test_unusual_performance_fee_is_only_a_warning(self, caplog):
        config = _parse_config(SAMPLE)
        config.share_classes[0].perform_fee_bps = 6000
        with caplog.at_level(logging.WARNING):
            assert validate_config(config) == []
        assert 'seems unusual' in caplog.text

    def test_zero_share_supply(self):
        config = _parse_config(SAMPLE)
        config.share_classes[0].share_supply = 0
        issues = validate_config(config)
        assert any('zero share supply' in issue for issue in issues)

    def test_duplicate_share_class(self):
        config = _parse_config(SAMPLE)
        config.share_classes.append(ShareClassConfig(id='A', share_supply=1))
        issues = validate_config(config)
        assert any('defined 2 times' in issue for issue in issues)

    def test_bad_decimals(self):
        config = _parse_config(SAMPLE)
        config.fund.decimals = -2
        issues = validate_config(config)
        assert len(issues) == 1
        assert 'decimals' in issues[0]

    def test_unknown_logging_level(self):
        config = _parse_config(SAMPLE)
        config.logging.level = 'LOUD'
        assert validate_config(config) == ['Unknown logging level: LOUD']
