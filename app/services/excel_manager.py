"""
Excel Sales Ledger with Concurrency Control

Thread-safe Excel operations for the bill ledger:
- One row appended per created bill (from a Celery worker)
- Ledger read-back and integrity verification
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from filelock import FileLock, Timeout

from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class LedgerExportError(Exception):
    """A bill could not be written to the ledger; the export task retries on it."""


class ExcelManager:
    """Thread-safe Excel ledger manager."""

    DATA_DIR = Path(settings.data_directory)
    LEDGER_FILENAME = settings.excel_filename
    LOCK_TIMEOUT = settings.excel_lock_timeout

    BILL_COLUMNS = [
        "bill_id",
        "date_time",
        "items",
        "item_count",
        "total_grams",
        "subtotal",
        "discount",
        "total_amount",
        "payment_method",
        "notes",
        "status",
        "exported_at",
    ]

    @classmethod
    def ledger_file(cls) -> Path:
        return cls.DATA_DIR / cls.LEDGER_FILENAME

    @classmethod
    def lock_file(cls) -> Path:
        return cls.DATA_DIR / f"{cls.LEDGER_FILENAME}.lock"

    @classmethod
    def _ensure_data_dir(cls) -> None:
        """Create data directory if needed."""
        if not cls.DATA_DIR.exists():
            cls.DATA_DIR.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {cls.DATA_DIR}")

    @classmethod
    def _load_or_create_df(cls, file_path: Path, columns: list) -> pd.DataFrame:
        """Load existing file or create new DataFrame."""
        if file_path.exists():
            try:
                return pd.read_excel(file_path, engine="openpyxl")
            except Exception as e:
                logger.warning(f"Error reading {file_path}: {e}")
                return pd.DataFrame(columns=columns)
        return pd.DataFrame(columns=columns)

    @classmethod
    def export_bill(cls, bill_data: dict[str, Any]) -> dict[str, Any]:
        """
        Append one bill to the ledger with file locking.

        Args:
            bill_data: Bill as serialized on the wire (camelCase keys)

        Returns:
            dict: success, message, bill_id, exported_at
        """
        cls._ensure_data_dir()

        bill_id = bill_data.get("id", "unknown")
        result = {
            "success": False,
            "message": "",
            "bill_id": bill_id,
            "exported_at": None,
        }

        try:
            lock = FileLock(str(cls.lock_file()), timeout=cls.LOCK_TIMEOUT)

            with lock:
                logger.debug(f"Lock acquired for Bill {bill_id}")

                df = cls._load_or_create_df(cls.ledger_file(), cls.BILL_COLUMNS)

                export_time = datetime.now().isoformat()
                items = bill_data.get("items") or []
                new_row = {
                    "bill_id": bill_id,
                    "date_time": bill_data.get("timestamp", export_time),
                    "items": json.dumps(items, ensure_ascii=False),
                    "item_count": len(items),
                    "total_grams": sum(i.get("quantityInGrams", 0) for i in items),
                    "subtotal": bill_data.get("subtotal"),
                    "discount": bill_data.get("discount", 0),
                    "total_amount": bill_data.get("totalAmount"),
                    "payment_method": bill_data.get("paymentMethod"),
                    "notes": bill_data.get("notes", ""),
                    "status": bill_data.get("status"),
                    "exported_at": export_time,
                }

                new_df = pd.DataFrame([new_row], columns=cls.BILL_COLUMNS)
                df = new_df if df.empty else pd.concat([df, new_df], ignore_index=True)
                df.to_excel(str(cls.ledger_file()), index=False, engine="openpyxl")

                logger.info(f"Bill {bill_id} exported to Excel")

                result["success"] = True
                result["message"] = f"Bill {bill_id} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for Bill {bill_id}")

        except Timeout:
            result["message"] = f"Lock timeout ({cls.LOCK_TIMEOUT}s)"
            logger.error(f"Lock timeout for Bill {bill_id}")

        except Exception as e:
            result["message"] = str(e)
            logger.exception(f"Error exporting Bill {bill_id}")

        return result

    @classmethod
    def get_all_bills(cls) -> list[dict[str, Any]]:
        """Get all ledger rows."""
        cls._ensure_data_dir()

        if not cls.ledger_file().exists():
            return []

        try:
            df = pd.read_excel(cls.ledger_file(), engine="openpyxl")
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading bills: {e}")
            return []

    @classmethod
    def verify_ledger(cls) -> dict[str, Any]:
        """
        Check ledger integrity.

        Returns:
            dict: exists, total_bills, duplicate_ids, inconsistent_totals
                (bill ids where total_amount != subtotal - discount),
                missing_columns, total_revenue
        """
        report = {
            "exists": cls.ledger_file().exists(),
            "total_bills": 0,
            "duplicate_ids": [],
            "inconsistent_totals": [],
            "missing_columns": [],
            "total_revenue": 0.0,
        }
        if not report["exists"]:
            return report

        df = pd.read_excel(cls.ledger_file(), engine="openpyxl")
        report["total_bills"] = len(df)
        report["missing_columns"] = [c for c in cls.BILL_COLUMNS if c not in df.columns]
        if report["missing_columns"]:
            return report

        report["duplicate_ids"] = sorted(
            df.loc[df["bill_id"].duplicated(), "bill_id"].astype(str).unique().tolist()
        )
        drift = (df["total_amount"] - (df["subtotal"] - df["discount"])).abs()
        report["inconsistent_totals"] = df.loc[drift > 1e-6, "bill_id"].astype(str).tolist()
        report["total_revenue"] = float(df["total_amount"].sum())
        return report

    @classmethod
    def clear_all(cls) -> bool:
        """Delete the ledger and its lock file."""
        try:
            for f in [cls.ledger_file(), cls.lock_file()]:
                if f.exists():
                    f.unlink()
            logger.info("Excel ledger cleared")
            return True
        except Exception as e:
            logger.error(f"Error clearing files: {e}")
            return False
