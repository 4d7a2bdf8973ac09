"""
Reporting module for GLGAAP.

Provides GAAP-style financial statements generated from a company's chart
of accounts and posted journal entries: Balance Sheet, Income Statement,
Trial Balance, Cash Flow Statement (indirect method) and Statement of
Changes in Equity.
"""
