"""
Fund allocation between the portfolio's shadow capital pool and its systems.
"""
