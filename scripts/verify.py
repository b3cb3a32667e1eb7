"""
Ledger Verification Script

Verifies data integrity of the Excel bill ledger.
Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from app.services.excel_manager import ExcelManager


def verify_ledger() -> bool:
    """Print an integrity report for the ledger; False if anything is off."""

    print("=" * 60)
    print("🔍 LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {ExcelManager.ledger_file()}")
    print("=" * 60)

    report = ExcelManager.verify_ledger()

    if not report["exists"]:
        print("\n❌ Ledger file not found!")
        print("   Create some bills first: python scripts/simulate.py")
        return False

    print(f"\n📊 STATISTICS:")
    print(f"   Total Bills: {report['total_bills']}")

    healthy = True
    if report["missing_columns"]:
        print(f"\n⚠️ Missing Columns: {report['missing_columns']}")
        return False
    print(f"\n✅ All required columns present")

    if report["duplicate_ids"]:
        healthy = False
        print(f"\n⚠️ {len(report['duplicate_ids'])} duplicate bill IDs found!")
        for bill_id in report["duplicate_ids"][:5]:
            print(f"   {bill_id}")
    else:
        print(f"✅ No duplicate bill IDs")

    if report["inconsistent_totals"]:
        healthy = False
        print(f"\n⚠️ {len(report['inconsistent_totals'])} bills where total != subtotal - discount")
        for bill_id in report["inconsistent_totals"][:5]:
            print(f"   {bill_id}")
    else:
        print(f"✅ All totals consistent")

    print(f"\n💰 REVENUE:")
    print(f"   Total: {report['total_revenue']:.2f}")
    if report["total_bills"]:
        print(f"   Average: {report['total_revenue'] / report['total_bills']:.2f}")

    rows = ExcelManager.get_all_bills()
    print(f"\n📋 RECENT BILLS:")
    print("-" * 60)
    if rows:
        cols = ["bill_id", "date_time", "total_grams", "total_amount", "payment_method"]
        print(pd.DataFrame(rows)[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if healthy else "⚠️ VERIFICATION FOUND PROBLEMS")
    print("=" * 60)

    return healthy


if __name__ == "__main__":
    sys.exit(0 if verify_ledger() else 1)
