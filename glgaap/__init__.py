"""
GLGAAP – General Ledger GAAP Reporting Engine

A Python-based library and command-line tool that turns a company's chart of
accounts and its posted journal entries into account balances and GAAP-style
financial statements with strict accounting identity enforcement.
"""

__version__ = "0.3.0"
__author__ = "Conrad"
