"""
Stockbook kernel.

Chart of accounts, the canonical ledger-entry record and its posting
service, the parts catalog with canonical-part resolution, and the
append-only stock movement ledger.
"""

__version__ = "0.1.0"
