"""
Workbook Verification Script

Verifies data integrity of the development store workbook.
Run from project root: python scripts/verify.py

Version: 1.0.0
"""

import sys
from datetime import datetime
from pathlib import Path

import pandas as pd

from cafe_orders.core.config import get_settings
from cafe_orders.schemas import OrderStatus, normalize_items, parse_money
from cafe_orders.services.gateway.workbook import ORDER_COLUMNS, ORDERS_SHEET, ZONES_SHEET


def verify_workbook(path: Path) -> bool:
    """Check the Pedidos sheet for ids, statuses, items and totals."""

    print("=" * 60)
    print("🔍 WORKBOOK VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {path}")
    print("=" * 60)

    if not path.exists():
        print("\n❌ Workbook not found!")
        print("   Start the gateway in development mode and run: python scripts/simulate.py")
        return False

    try:
        sheets = pd.read_excel(path, sheet_name=None, engine="openpyxl", dtype=object)
    except (OSError, ValueError) as e:
        print(f"\n❌ Could not read workbook: {e}")
        return False

    ok = True
    df = sheets.get(ORDERS_SHEET, pd.DataFrame(columns=ORDER_COLUMNS))
    zones = sheets.get(ZONES_SHEET)

    print(f"\n📊 STATISTICS:")
    print(f"   Orders: {len(df)}")
    print(f"   Zones: {0 if zones is None else len(zones)}")

    missing = [col for col in ORDER_COLUMNS if col not in df.columns]
    if missing:
        ok = False
        print(f"\n⚠️ Missing Columns: {missing}")
    else:
        print(f"\n✅ All order columns present")

    if "pedido_id" in df.columns:
        duplicates = df["pedido_id"].duplicated().sum()
        if duplicates > 0:
            ok = False
            print(f"⚠️ {duplicates} duplicate order IDs found!")
        else:
            print(f"✅ No duplicate order IDs")

    if "status" in df.columns:
        valid = {status.value for status in OrderStatus}
        unknown = df[~df["status"].isin(valid)]
        if len(unknown):
            ok = False
            print(f"⚠️ {len(unknown)} order(s) with unknown status")
        print("   " + " • ".join(
            f"{status.value}: {(df['status'] == status.value).sum()}" for status in OrderStatus
        ))

    if {"itens", "subtotal", "desconto", "taxa_entrega", "total"} <= set(df.columns):
        mismatched = 0
        for row in df.to_dict("records"):
            items = normalize_items(row["itens"])
            if not items:
                mismatched += 1
                continue
            subtotal = round(sum(item.line_total for item in items), 2)
            expected = round(
                subtotal - parse_money(row["desconto"]) + parse_money(row["taxa_entrega"]), 2
            )
            if abs(subtotal - parse_money(row["subtotal"])) > 0.005 or abs(expected - parse_money(row["total"])) > 0.005:
                mismatched += 1
        if mismatched:
            ok = False
            print(f"⚠️ {mismatched} order(s) with empty items or inconsistent totals")
        else:
            print(f"✅ Totals match item lines")

        revenue = sum(parse_money(v) for v in df["total"])
        print(f"\n💰 REVENUE:")
        print(f"   Total: R$ {revenue:.2f}")

    print(f"\n📋 RECENT ORDERS:")
    print("-" * 60)
    if len(df) > 0:
        cols = [c for c in ["pedido_id", "cliente", "tipo", "total", "status"] if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "⚠️ VERIFICATION FOUND ISSUES")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    settings = get_settings()
    workbook = Path(settings.data_directory) / settings.workbook_filename
    sys.exit(0 if verify_workbook(workbook) else 1)
