"""Vouchers and manual journal entries over the single ledger-entry model."""

from stockbook_modules.vouchers.service import VoucherService

__all__ = ["VoucherService"]
