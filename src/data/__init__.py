"""
Market data plumbing for the simulation.

Price frame schema and validation, the in-memory price table, CSV loaders,
query ranges and trading calendars.
"""
