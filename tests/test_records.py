"""
tests/test_records.py
"""

from decimal import Decimal

import pandas as pd
import pytest

from donorscope.records import (
    Communication,
    Donation,
    DonorRecord,
    EventParticipation,
    InMemoryDonorRepository,
)


def test_donation_rejects_negative_amount():
    with pytest.raises(ValueError, match="non-negative"):
        Donation(-1, "2024-01-01")


def test_donation_accepts_decimal_and_zero():
    assert Donation(Decimal("12.50"), "2024-01-01").amount == Decimal("12.50")
    assert Donation(0, "2024-01-01").amount == 0


def test_timestamps_are_coerced():
    d = Donation(10, "2024-03-05T14:00:00")
    assert isinstance(d.occurred_at, pd.Timestamp)
    assert d.occurred_at.hour == 14


def test_tz_aware_timestamps_become_naive_utc():
    c = Communication(pd.Timestamp("2024-03-05 10:00", tz="US/Eastern"))
    assert c.occurred_at.tzinfo is None
    assert c.occurred_at.hour == 15


def test_missing_timestamp_raises():
    with pytest.raises(ValueError):
        EventParticipation("gala", None)


def test_donor_record_sorts_donations():
    donor = DonorRecord(
        "D1", donations=[Donation(2, "2024-05-01"), Donation(1, "2023-01-01")]
    )
    assert [d.amount for d in donor.donations] == [1, 2]
    assert isinstance(donor.communications, tuple)


def test_donor_record_is_frozen():
    donor = DonorRecord("D1")
    with pytest.raises(AttributeError):
        donor.id = "D2"


def test_repository_lookup():
    repo = InMemoryDonorRepository([DonorRecord("D1"), DonorRecord("D2")])
    assert len(repo) == 2
    assert repo.get_donor_by_id("D2").id == "D2"
    assert repo.get_donor_by_id("nope") is None


def test_repository_later_record_replaces_earlier():
    repo = InMemoryDonorRepository()
    repo.add(DonorRecord("D1"))
    repo.add(DonorRecord("D1", donations=[Donation(5, "2024-01-01")]))
    assert len(repo) == 1
    assert len(repo.get_donor_by_id("D1").donations) == 1
