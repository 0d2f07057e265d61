"""
Strategies and trading systems.

Target-weight strategy protocol with simple implementations, and the
single-tradable system that turns weights into trades on its own ledger.
"""
