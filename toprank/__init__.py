"""Toprank – weekly AI-rated top-N portfolio pipeline.

The package turns oracle-scored index constituents into an equal-weight
top-N portfolio, tracks its forward-only performance against benchmarks
net of turnover cost, and audits the ranking signal with quintile and
cross-sectional diagnostics.
"""

__version__ = "1.0.0"
