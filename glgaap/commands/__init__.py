"""
Command groups for the glgaap CLI.

Each module defines one Click group registered on the main entry point:
report (financial statements), db (validation) and journal (entry
numbering and reversal).
"""
