"""Domain layer for shopledger application.

Services live in their own modules (``ledger``, ``balances``, ``engine``,
``report``, ``commerce``) and are imported from there.
"""
