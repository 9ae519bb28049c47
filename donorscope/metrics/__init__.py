"""
donorscope.metrics
==================
Donor-file KPI calculators.
"""

from ._growth import donation_growth_summary, monthly_donation_totals
from ._retention import (
    donor_retention_rate,
    donor_retention_summary,
    monthly_retention_trend,
)

__all__ = [
    "donation_growth_summary",
    "donor_retention_rate",
    "donor_retention_summary",
    "monthly_donation_totals",
    "monthly_retention_trend",
]
