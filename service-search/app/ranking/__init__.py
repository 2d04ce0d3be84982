"""Search ranking components.

Contents
- ``normalize``: per-branch min-max score normalization
- ``fusion``: weighted fusion of normalized branch scores
- ``budget``: context budgeting over ranked results
"""
