#!/usr/bin/env python3
"""
Compare stored account and fund balances with the history behind them.
Exits non-zero when any balance has drifted.
Usage: python scripts/check_balances.py [--account ACCOUNT_ID] [--as-of YYYY-MM-DD]
"""
import argparse
import sys
import uuid
from datetime import date

from ledger.core.db import db_manager
from ledger.core.money import format_currency
from ledger.services.reconcile import BalanceReconciler


def main() -> int:
    parser = argparse.ArgumentParser(description="Check ledger balances against transaction history")
    parser.add_argument("--account", type=uuid.UUID, help="Check a single account")
    parser.add_argument("--as-of", type=date.fromisoformat, help="Print the rebuilt balance at the end of this day")
    args = parser.parse_args()

    print("Ledger Balance Check")
    print("=" * 40)

    with db_manager.transaction() as db:
        reconciler = BalanceReconciler(db)

        if args.account and args.as_of:
            balance = reconciler.balance_as_of(args.account, args.as_of)
            print(f"Balance of {args.account} at end of {args.as_of}: {format_currency(balance)}")
            return 0

        drifts = [reconciler.check_account(args.account)] if args.account else reconciler.check_all()
        drifts = [d for d in drifts if not d.balanced]

        if not drifts:
            print("✅ All balances match their history")
            return 0

        print(f"❌ {len(drifts)} balance(s) drifted:")
        for drift in drifts:
            print(
                f"  - {drift.target} {drift.label}: stored {format_currency(drift.stored)}, "
                f"expected {format_currency(drift.expected)} (off by {format_currency(drift.difference)})"
            )
        return 1


if __name__ == "__main__":
    sys.exit(main())
