"""
Generic utilities shared across modules.

Includes clock abstractions and date normalization, series math helpers
(returns, moving averages) and logging setup for entry points.
"""
