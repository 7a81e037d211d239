"""
Analytics Package
=================
Chart-facing analyses that sit beside the correlation engine.  Each is a
pure function of a record snapshot.

Modules:
  composition  - per-day lifestyle composition (stacked-area proportions)
  distribution - fixed-bin factor histograms and 1-10 rating histograms
  daily_series - same-day aggregation for time-series display
"""
