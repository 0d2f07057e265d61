"""
Capital ledger for backtesting.

Cash, positions, trade log and funds/profit curves, with a simple cost model
(slippage, fees) applied to every fill.
"""
