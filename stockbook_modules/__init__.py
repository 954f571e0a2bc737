"""
Stockbook document modules.

Each package is thin orchestration over the kernel and the engines:
frozen DTOs (``models``), tables (``orm``), state machines
(``workflows``) and a service that owns the transaction boundary.

- ``catalog``     chart of accounts, suppliers, parts
- ``purchasing``  purchase orders, direct purchase orders, returns
- ``sales``       sales invoices and COGS
- ``inventory``   adjustments, reservations, stock status
- ``vouchers``    manual journal entries and vouchers
- ``reporting``   trial balance, balance sheet, income statement, ledgers
"""
