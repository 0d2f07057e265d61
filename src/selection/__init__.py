"""
System selection: the prototype universe and the per-date eligible subset.
"""
