"""
Audit trail for NAV calculations.

One CalculationRecord is emitted per completed calculation. Records are
frozen and the log only ever appends, in timestamp order.
"""

import logging
import os
from dataclasses import asdict, dataclass, fields
from typing import List, Protocol

import openpyxl
import pandas as pd


@dataclass(frozen=True)
class CalculationRecord:
    """
    Every quantity computed by one NAV calculation.

    Attributes:
        share_class_id: Share class the calculation ran for
        timestamp: Calculation time (epoch seconds); becomes last_calc_date
        elapsed_time: Seconds since the previous calculation
        prior_value: Value of the share supply at the previous NAV per share
        gross_asset_value_less_fees: Share class's prorated fund value net of accrued fees
        gain_loss: Signed period gain/loss after management and admin fees
        net_asset_value: Share-class NAV after the fee waterfall
        share_class_supply: Issued units of the share class
        admin_fee: Admin fee accrued in the period
        mgmt_fee: Management fee accrued in the period
        perform_fee: Performance fee charged in the period
        perform_fee_offset: Performance fee offset against management fees
        loss_payback: Gain used to pay back carried losses
        nav_per_share: Resulting NAV per share
        loss_carryforward: Resulting loss carryforward
        accumulated_mgmt_fees: Resulting accumulated management fees
        accumulated_admin_fees: Resulting accumulated admin fees
    """
    share_class_id: str
    timestamp: int
    elapsed_time: int
    prior_value: int
    gross_asset_value_less_fees: int
    gain_loss: int
    net_asset_value: int
    share_class_supply: int
    admin_fee: int
    mgmt_fee: int
    perform_fee: int
    perform_fee_offset: int
    loss_payback: int
    nav_per_share: int
    loss_carryforward: int
    accumulated_mgmt_fees: int
    accumulated_admin_fees: int


RECORD_COLUMNS = [f.name for f in fields(CalculationRecord)]


class AuditSink(Protocol):
    def emit(self, record: CalculationRecord) -> None: ...


class AuditLog:
    """Append-only, timestamp-ordered list of calculation records."""

    def __init__(self):
        self._records: List[CalculationRecord] = []

    def emit(self, record: CalculationRecord) -> None:
        if self._records and record.timestamp < self._records[-1].timestamp:
            raise ValueError(
                f"Audit record at {record.timestamp} is older than the last "
                f"record at {self._records[-1].timestamp}"
            )
        self._records.append(record)
        logging.info(
            f"Audit: class {record.share_class_id} at {record.timestamp} "
            f"NAV {record.net_asset_value} (perf fee {record.perform_fee}, "
            f"offset {record.perform_fee_offset}, payback {record.loss_payback})"
        )

    @property
    def records(self) -> List[CalculationRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def for_share_class(self, share_class_id: str) -> List[CalculationRecord]:
        return [r for r in self._records if r.share_class_id == share_class_id]

    def to_dataframe(self) -> pd.DataFrame:
        """Get the audit trail as a DataFrame, one row per calculation."""
        if not self._records:
            return pd.DataFrame(columns=RECORD_COLUMNS)
        # object dtype keeps amounts beyond int64 exact
        return pd.DataFrame([asdict(r) for r in self._records], columns=RECORD_COLUMNS, dtype=object)


def save_audit_trail(audit_log: AuditLog, output_path: str) -> None:
    """
    Write the audit trail to an Excel (.xlsx) or CSV file.

    Amounts are written as strings in Excel, which cannot hold integers
    beyond 15 significant digits.

    Raises:
        ValueError: If the file extension is not .xlsx or .csv
    """
    df = audit_log.to_dataframe()
    _, ext = os.path.splitext(output_path)
    ext = ext.lower()
    if ext not in ('.xlsx', '.csv'):
        raise ValueError(f"Unsupported audit output format: {output_path}")

    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    if ext == '.csv':
        df.to_csv(output_path, index=False)
    else:
        amount_columns = [c for c in RECORD_COLUMNS if c != 'share_class_id']
        df[amount_columns] = df[amount_columns].astype(str)
        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name='Audit')
            worksheet = writer.sheets['Audit']
            for column_cells in worksheet.columns:
                letter = column_cells[0].column_letter
                worksheet.column_dimensions[letter].width = max(
                    len(str(cell.value)) for cell in column_cells
                ) + 2
            for cell in worksheet[1]:
                cell.font = openpyxl.styles.Font(bold=True)

    logging.info(f"Saved audit trail with {len(df)} records to {output_path}")
