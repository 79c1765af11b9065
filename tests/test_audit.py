"""Tests for the audit trail."""

import dataclasses
import os
import sys

import pandas as pd
import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
sys.path.insert(0, PROJECT_ROOT)

from audit import RECORD_COLUMNS, AuditLog, CalculationRecord, save_audit_trail
from fixed_point import UINT256_MAX


def make_record(share_class_id='A', timestamp=1_735_603_200, **overrides):
    values = dict(
        share_class_id=share_class_id,
        timestamp=timestamp,
        elapsed_time=31_536_000,
        prior_value=1_000_000,
        gross_asset_value_less_fees=1_100_000,
        gain_loss=75_000,
        net_asset_value=1_074_850,
        share_class_supply=1_000_000,
        admin_fee=5_000,
        mgmt_fee=20_000,
        perform_fee=150,
        perform_fee_offset=0,
        loss_payback=0,
        nav_per_share=1_074_850,
        loss_carryforward=0,
        accumulated_mgmt_fees=150,
        accumulated_admin_fees=5_000,
    )
    values.update(overrides)
    return CalculationRecord(**values)


class TestCalculationRecord:
    """Tests for CalculationRecord."""

    def test_is_immutable(self):
        record = make_record()
        with pytest.raises(dataclasses.FrozenInstanceError):
            record.net_asset_value = 0

    def test_columns_follow_fields(self):
        assert RECORD_COLUMNS[0] == 'share_class_id'
        assert 'perform_fee_offset' in RECORD_COLUMNS
        assert len(RECORD_COLUMNS) == 17


class TestAuditLog:
    """Tests for the append-only audit log."""

    def test_emit_appends_in_order(self):
        log = AuditLog()
        log.emit(make_record(timestamp=100))
        log.emit(make_record(timestamp=100))
        log.emit(make_record(timestamp=200))
        assert [r.timestamp for r in log.records] == [100, 100, 200]

    def test_rejects_out_of_order_record(self):
        log = AuditLog()
        log.emit(make_record(timestamp=200))
        with pytest.raises(ValueError):
            log.emit(make_record(timestamp=100))
        assert len(log) == 1

    def test_records_is_a_copy(self):
        log = AuditLog()
        log.emit(make_record())
        log.records.clear()
        assert len(log) == 1

    def test_for_share_class(self):
        log = AuditLog()
        log.emit(make_record('A', 100))
        log.emit(make_record('B', 100))
        log.emit(make_record('A', 200))
        assert [r.timestamp for r in log.for_share_class('A')] == [100, 200]

    def test_empty_dataframe_has_columns(self):
        df = AuditLog().to_dataframe()
        assert df.empty
        assert list(df.columns) == RECORD_COLUMNS

    def test_dataframe(self):
        log = AuditLog()
        log.emit(make_record())
        df = log.to_dataframe()
        assert len(df) == 1
        assert df.iloc[0]['net_asset_value'] == 1_074_850
        assert df.iloc[0]['gain_loss'] == 75_000

    def test_dataframe_keeps_large_values_exact(self):
        log = AuditLog()
        log.emit(make_record(net_asset_value=UINT256_MAX))
        assert log.to_dataframe().iloc[0]['net_asset_value'] == UINT256_MAX


class TestSaveAuditTrail:
    """Tests for exporting the audit trail."""

    def test_csv(self, tmp_path):
        log = AuditLog()
        log.emit(make_record(gain_loss=-125_000))
        path = tmp_path / 'out' / 'audit.csv'
        save_audit_trail(log, str(path))
        df = pd.read_csv(path)
        assert list(df.columns) == RECORD_COLUMNS
        assert df.iloc[0]['gain_loss'] == -125_000

    def test_excel(self, tmp_path):
        log = AuditLog()
        log.emit(make_record())
        path = tmp_path / 'audit.xlsx'
        save_audit_trail(log, str(path))
        df = pd.read_excel(path, sheet_name='Audit', dtype=str)
        assert list(df.columns) == RECORD_COLUMNS
        assert int(df.iloc[0]['nav_per_share']) == 1_074_850

    def test_empty_excel(self, tmp_path):
        path = tmp_path / 'empty.xlsx'
        save_audit_trail(AuditLog(), str(path))
        assert path.exists()

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(ValueError):
            save_audit_trail(AuditLog(), str(tmp_path / 'audit.json'))
