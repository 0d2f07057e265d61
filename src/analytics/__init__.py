"""
Performance metrics and synthetic price generators.

Metrics summarize portfolio funds curves (total return, drawdown, CAGR);
generators produce reproducible GBM price frames for demos and tests.
"""
