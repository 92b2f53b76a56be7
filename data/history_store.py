"""
Calculation history storage.

Keeps saved calculations in a JSON file and exposes them as a pandas
DataFrame for display and Excel export. Each record is tagged with the
account that saved it, and reads can be restricted to one owner.
"""

import json
import logging
import os
import tempfile
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from models.data_models import CalculationMode, CalculationRecord

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


HISTORY_COLUMNS = [
    'record_id', 'owner', 'calculation_time', 'mode', 'brand_name', 'budget', 'campaign_goal',
    'brand_awareness', 'market_saturation', 'campaign_goal_param', 'target_audience',
    'product_complexity', 'message_complexity', 'calculated_frequency'
]

# Streamlit sessions share one process and one history file
_write_lock = threading.Lock()


class HistoryCorruptedError(OSError):
    """The history file exists but does not hold a JSON list of records."""


class CalculationHistoryStore:
    """
    JSON-file backed calculation history.

    Records are appended in insertion order. Writes go through a temporary
    file that replaces the history file, so an interrupted write leaves the
    previous history in place. An unreadable history file is never
    overwritten; inserts fail with HistoryCorruptedError until it is fixed.
    """

    def __init__(self, history_file: str = "calculation_history.json", max_records: int = 500):
        """
        Initialize the store.

        Args:
            history_file: Path of the JSON file holding the history
            max_records: Number of most recent records kept
        """
        self.history_file = Path(history_file)
        self.max_records = max_records

    def insert(self, record: CalculationRecord) -> CalculationRecord:
        """
        Append a record and persist the history.

        Raises:
            HistoryCorruptedError: If the existing history file cannot be parsed
            OSError: If the history file cannot be written
        """
        if not record.record_id:
            record.record_id = uuid.uuid4().hex

        with _write_lock:
            records = self._load_raw()
            records.append(self._to_dict(record))
            if len(records) > self.max_records:
                records = records[-self.max_records:]

            self._save_raw(records)

        logger.info(f"Saved calculation {record.record_id} to history")
        return record

    def list_records(self, limit: Optional[int] = None, owner: Optional[str] = None) -> List[CalculationRecord]:
        """
        Return stored records, newest first.

        Args:
            limit: Maximum number of records returned
            owner: Only records saved by this account; all records when None
        """
        records = []
        for raw in reversed(self._load_raw()):
            if owner is not None and (not isinstance(raw, dict) or raw.get('owner') != owner):
                continue

            try:
                records.append(self._from_dict(raw))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping invalid history record: {str(e)}")
                continue

            if limit is not None and len(records) >= limit:
                break

        return records

    def to_dataframe(self, limit: Optional[int] = None, owner: Optional[str] = None) -> pd.DataFrame:
        """History as a DataFrame with one row per calculation, newest first."""
        rows = [self._to_dict(record) for record in self.list_records(limit, owner)]
        df = pd.DataFrame(rows, columns=HISTORY_COLUMNS)
        if not df.empty:
            df['calculation_time'] = pd.to_datetime(df['calculation_time'])
        return df

    def export_to_excel(self, output_path: Any, owner: Optional[str] = None) -> Any:
        """
        Write the history to an Excel workbook.

        Args:
            output_path: Destination .xlsx path or binary buffer
            owner: Only export records saved by this account

        Returns:
            The path or buffer written
        """
        df = self.to_dataframe(owner=owner)
        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            df.to_excel(writer, sheet_name='Calculation History', index=False)

        logger.info(f"Exported {len(df)} history records to {output_path}")
        return output_path

    def clear(self, confirmed: bool = False) -> bool:
        """Delete the stored history. Requires explicit confirmation."""
        if not confirmed:
            logger.warning("History clear requested without confirmation")
            return False

        with _write_lock:
            if self.history_file.exists():
                os.remove(self.history_file)

        logger.info("Calculation history cleared")
        return True

    def _load_raw(self) -> List[Dict[str, Any]]:
        if not self.history_file.exists():
            return []

        try:
            with open(self.history_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"History file {self.history_file} is corrupted: {str(e)}")
            raise HistoryCorruptedError(f"History file {self.history_file} is corrupted: {str(e)}") from e

        if not isinstance(data, list):
            logger.error(f"History file {self.history_file} does not contain a list of records")
            raise HistoryCorruptedError(f"History file {self.history_file} does not contain a list of records")

        return data

    def _save_raw(self, records: List[Dict[str, Any]]):
        """Atomic write: temporary file in the same directory, then os.replace."""
        directory = self.history_file.parent
        if directory and not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=self.history_file.stem, suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as tmp_f:
                json.dump(records, tmp_f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.history_file)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _to_dict(self, record: CalculationRecord) -> Dict[str, Any]:
        return {
            'record_id': record.record_id,
            'owner': record.owner,
            'calculation_time': record.calculation_time.isoformat(),
            'mode': record.mode.value,
            'brand_name': record.brand_name,
            'budget': record.budget,
            'campaign_goal': record.campaign_goal,
            'brand_awareness': record.brand_awareness,
            'market_saturation': record.market_saturation,
            'campaign_goal_param': record.campaign_goal_param,
            'target_audience': record.target_audience,
            'product_complexity': record.product_complexity,
            'message_complexity': record.message_complexity,
            'calculated_frequency': record.calculated_frequency
        }

    def _from_dict(self, data: Dict[str, Any]) -> CalculationRecord:
        return CalculationRecord(
            record_id=data.get('record_id', ''),
            owner=data.get('owner'),
            calculation_time=datetime.fromisoformat(data['calculation_time']),
            mode=CalculationMode(data['mode']),
            brand_name=data.get('brand_name'),
            budget=data.get('budget'),
            campaign_goal=data.get('campaign_goal'),
            brand_awareness=float(data['brand_awareness']),
            market_saturation=float(data['market_saturation']),
            campaign_goal_param=float(data['campaign_goal_param']),
            target_audience=float(data['target_audience']),
            product_complexity=float(data['product_complexity']),
            message_complexity=float(data['message_complexity']),
            calculated_frequency=float(data['calculated_frequency'])
        )
