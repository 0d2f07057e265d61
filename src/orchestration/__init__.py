"""
Portfolio orchestration.

Drives a fleet of trading systems through a trading calendar on one capital
base: selection, fund allocation, running-set maintenance and execution.
"""
