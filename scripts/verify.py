"""
Production Log Verification Script

Verifies data integrity of the production log spreadsheet.
Run from project root: python scripts/verify.py

Version: 1.0.0
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from aristaeus.core.config import get_settings

settings = get_settings()
LOG_FILE = os.path.join(settings.data_directory, settings.production_log_filename)


def verify_production_log() -> bool:
    """Verify production log integrity after a simulation."""

    print("=" * 60)
    print("PRODUCTION LOG VERIFICATION REPORT")
    print("=" * 60)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"File: {LOG_FILE}")
    print("=" * 60)

    # Check if file exists
    if not os.path.exists(LOG_FILE):
        print("\nProduction log not found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    # Load spreadsheet
    try:
        df = pd.read_excel(LOG_FILE, engine="openpyxl")
        print("\nFile loaded successfully!")
    except Exception as e:
        print(f"\nCould not read production log: {e}")
        return False

    ok = True

    # Statistics
    print("\nSTATISTICS:")
    print(f"   Total Orders: {len(df)}")
    print(f"   Columns: {len(df.columns)}")

    # Check required columns
    required = ["order_id", "order_status", "robot_id", "total_price", "completed_at"]
    missing = [col for col in required if col not in df.columns]

    if missing:
        print(f"\nMissing Columns: {missing}")
        return False
    print("\nAll required columns present")

    # Check duplicates
    duplicates = df["order_id"].duplicated().sum()
    if duplicates > 0:
        print(f"\n{duplicates} duplicate order IDs found!")
        ok = False
    else:
        print("No duplicate order IDs")

    # Only finished orders belong here
    unexpected = df[~df["order_status"].isin(["completed", "failed", "cancelled"])]
    if len(unexpected) > 0:
        print(f"\n{len(unexpected)} rows with a non-terminal status!")
        ok = False

    # Status breakdown
    print("\nBY STATUS:")
    for status, count in df["order_status"].value_counts().items():
        print(f"   {status}: {count}")

    # Robot breakdown
    print("\nBY ROBOT:")
    by_robot = df.dropna(subset=["robot_id"]).groupby("robot_id")["order_id"].count()
    for robot_id, count in by_robot.items():
        print(f"   Robot #{int(robot_id)}: {count}")

    # Revenue
    completed = df[df["order_status"] == "completed"]
    if len(completed) > 0:
        print("\nREVENUE (completed orders):")
        print(f"   Total: ${completed['total_price'].sum():,.0f}")
        print(f"   Average: ${completed['total_price'].mean():,.0f}")

    # Sample data
    print("\nRECENT ORDERS:")
    print("-" * 60)
    if len(df) > 0:
        cols = ["order_id", "robot_id", "bowl_size", "total_price", "order_status"]
        cols = [c for c in cols if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("VERIFICATION COMPLETE" if ok else "VERIFICATION FOUND PROBLEMS")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_production_log() else 1)
