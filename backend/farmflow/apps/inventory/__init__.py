"""
Inventory module.

Handles the stock movement history, per-location current stock at moving
average cost, and the on-demand FIFO valuation.
"""
