"""
Portfolio backtest driver.

Runs a prepared portfolio over a date range and packages the funds curve,
profit curve, master trade log and summary metrics.
"""
