"""
Business Manager - Source Package

Bookkeeping for a small business and household: customer ledgers,
chit funds (rotating savings groups) with lottery draws, household
income/expenses and loans.

DESIGN PRINCIPLES:
1. Derived totals are always recomputed from the ledger, never cached
2. A lottery win is recorded exactly once per member
3. Storage errors are reported to the operator, never swallowed
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Business Manager Team"
