"""
Audit app.

Append-only record of who changed what, per estate.
"""
