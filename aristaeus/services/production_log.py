"""
Production Log Spreadsheet with Concurrency Control

One row per finished order (completed, failed or cancelled), written by
the Celery worker. A file lock serializes writers across processes; a
later export for the same order replaces its row.

Version: 1.0.0
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from aristaeus.core.config import Settings, get_settings
from aristaeus.models import Order

logger = logging.getLogger(__name__)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def build_log_row(order: Order) -> dict[str, Any]:
    """
    JSON-serializable snapshot of a finished order.

    The order must be loaded with its customer and items.
    """
    return {
        "order_id": order.id,
        "bowl_size": order.bowl_size,
        "order_status": order.status.value,
        "robot_id": order.assigned_robot_id,
        "customer_name": order.customer.name,
        "customer_phone": order.customer.phone,
        "items": ", ".join(
            f"{item.quantity_grams:g}g {item.ingredient.name}" for item in order.items
        ),
        "total_weight_g": order.total_weight_g,
        "total_calories": order.total_calories,
        "total_price": order.total_price,
        "created_at": _isoformat(order.created_at),
        "assigned_at": _isoformat(order.assigned_at),
        "started_at": _isoformat(order.started_at),
        "completed_at": _isoformat(order.completed_at),
    }


class ProductionLogManager:
    """Process-safe production log writer."""

    COLUMNS = [
        "order_id",
        "bowl_size",
        "order_status",
        "robot_id",
        "customer_name",
        "customer_phone",
        "items",
        "total_weight_g",
        "total_calories",
        "total_price",
        "created_at",
        "assigned_at",
        "started_at",
        "completed_at",
        "exported_at",
    ]

    def __init__(
        self,
        data_dir: Path,
        filename: str = "production_log.xlsx",
        lock_timeout: int = 30,
    ):
        self.data_dir = Path(data_dir)
        self.log_file = self.data_dir / filename
        self.lock_file = self.data_dir / f"{filename}.lock"
        self.lock_timeout = lock_timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ProductionLogManager":
        settings = settings or get_settings()
        return cls(
            Path(settings.data_directory),
            filename=settings.production_log_filename,
            lock_timeout=settings.excel_lock_timeout,
        )

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _load_or_create_df(self) -> pd.DataFrame:
        """Load existing file or create new DataFrame."""
        if self.log_file.exists():
            try:
                return pd.read_excel(self.log_file, engine="openpyxl")
            except Exception as e:
                logger.warning(f"Error reading {self.log_file}: {e}")
        return pd.DataFrame(columns=self.COLUMNS)

    def export_order(self, row: dict[str, Any]) -> dict[str, Any]:
        """Write one order row under the file lock."""
        self._ensure_data_dir()

        order_id = row.get("order_id", 0)
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "exported_at": None,
        }

        try:
            lock = FileLock(str(self.lock_file), timeout=self.lock_timeout)

            with lock:
                logger.debug(f"Lock acquired for Order #{order_id}")

                df = self._load_or_create_df()

                export_time = datetime.now().isoformat()
                new_row = {column: row.get(column) for column in self.COLUMNS}
                new_row["exported_at"] = export_time

                if not df.empty:
                    df = df[df["order_id"] != order_id]

                if df.empty:
                    df = pd.DataFrame([new_row], columns=self.COLUMNS)
                else:
                    df = pd.concat(
                        [df, pd.DataFrame([new_row], columns=self.COLUMNS)],
                        ignore_index=True,
                    )

                df.to_excel(str(self.log_file), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} written to production log")

                result["success"] = True
                result["message"] = f"Order #{order_id} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for Order #{order_id}")

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for Order #{order_id}")

        return result

    def get_all_rows(self) -> list[dict[str, Any]]:
        """Every row in the production log."""
        if not self.log_file.exists():
            return []

        df = pd.read_excel(self.log_file, engine="openpyxl")
        return df.to_dict("records")

    def clear_all(self) -> bool:
        """Delete the log and its lock file."""
        for f in [self.log_file, self.lock_file]:
            if f.exists():
                f.unlink()
        logger.info("Production log cleared")
        return True
