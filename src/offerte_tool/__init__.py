"""
Offerte Tool Package

Quote calculation engine for landscaping businesses.
Prices scope selections using Norm hours → Correction factors → Hourly rate,
plus catalogue materials, and aggregates margin and VAT totals.
"""

__version__ = "1.0.0"
