"""
Configuration management.

Environment-backed settings for the master ledger, the portfolio orchestrator
and logging, validated at load time.
"""
