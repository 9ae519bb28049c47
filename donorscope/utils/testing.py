"""
donorscope.utils.testing
========================
"""

from typing import Optional

from ..datasets import generate_synthetic_donors
from ..records import InMemoryDonorRepository


def make_donor_repository(
    n_donors: int = 60,
    random_state: Optional[int] = 42,
    reference_date="2024-06-30",
) -> InMemoryDonorRepository:
    donors = generate_synthetic_donors(
        n_donors=n_donors,
        random_state=random_state,
        reference_date=reference_date,
    )
    return InMemoryDonorRepository(donors)
