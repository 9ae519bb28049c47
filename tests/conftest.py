"""
Shared pytest fixtures.
"""

import matplotlib

matplotlib.use("Agg")

import pytest

from donorscope import DonorPredictionEngine
from donorscope.records import Communication, Donation, DonorRecord, InMemoryDonorRepository
from donorscope.utils.testing import make_donor_repository

REFERENCE_DATE = "2024-06-30"


@pytest.fixture(scope="session")
def reference_date():
    return REFERENCE_DATE


@pytest.fixture(scope="session")
def donor_repo():
    return make_donor_repository(n_donors=40, random_state=0, reference_date=REFERENCE_DATE)


@pytest.fixture(scope="session")
def donors(donor_repo):
    return donor_repo.get_all_donors()


@pytest.fixture(scope="session")
def trained_engine(donor_repo):
    engine = DonorPredictionEngine(
        donor_repo, reference_date=REFERENCE_DATE, n_jobs=1, random_state=0
    )
    engine.train_models()
    return engine


@pytest.fixture
def scenario_donor():
    # Two gifts 30 days apart and one unanswered mailing.
    return DonorRecord(
        "A",
        donations=[Donation(100, "2024-01-01"), Donation(200, "2024-01-31")],
        communications=[Communication("2024-01-06", response=False)],
    )


@pytest.fixture
def empty_repo():
    return InMemoryDonorRepository()
