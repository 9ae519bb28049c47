"""
tests/test_features.py
"""

import math

import numpy as np
import pytest

from donorscope.preprocessing import (
    FEATURE_NAMES,
    DonorFeatureExtractor,
    DonorTimeSeriesExtractor,
    best_communication_hour,
    extract_features,
    extract_time_series,
    interest_topics,
)
from donorscope.records import Communication, Donation, DonorRecord, EventParticipation


class TestExtractFeatures:
    def test_two_gifts_one_unanswered_mailing(self, scenario_donor):
        features = dict(zip(FEATURE_NAMES, extract_features(scenario_donor, "2024-03-01")))
        assert features["donation_count"] == 2
        assert features["average_amount"] == pytest.approx(150.0)
        assert features["donation_frequency"] == pytest.approx(2 / 30)
        assert features["engagement_score"] == pytest.approx(2 * 2 + 1)
        assert features["response_rate"] == 0.0
        assert features["retention_score"] == pytest.approx(math.exp(-30 / 365))

    def test_zero_activity_donor_is_all_zeros(self):
        features = extract_features(DonorRecord("empty"), "2024-06-30")
        assert features.shape == (len(FEATURE_NAMES),)
        np.testing.assert_array_equal(features, np.zeros(len(FEATURE_NAMES)))

    def test_single_gift_has_zero_frequency_and_retention(self):
        donor = DonorRecord("one", donations=[Donation(50, "2024-06-01")])
        features = dict(zip(FEATURE_NAMES, extract_features(donor, "2024-06-30")))
        assert features["donation_frequency"] == 0.0
        assert features["retention_score"] == 0.0
        assert features["average_amount"] == 50.0

    def test_same_day_gifts_use_one_day_span(self):
        donor = DonorRecord(
            "burst", donations=[Donation(10, "2024-06-01"), Donation(10, "2024-06-01")]
        )
        assert extract_features(donor, "2024-06-30")[2] == pytest.approx(2.0)

    def test_future_gift_caps_retention_at_one(self):
        donor = DonorRecord(
            "future", donations=[Donation(10, "2024-01-01"), Donation(10, "2024-09-01")]
        )
        assert extract_features(donor, "2024-06-30")[5] == pytest.approx(1.0)

    def test_engagement_counts_events(self):
        donor = DonorRecord(
            "e",
            event_participations=[
                EventParticipation("gala", "2024-01-01"),
                EventParticipation("webinar", "2024-02-01"),
            ],
        )
        assert extract_features(donor, "2024-06-30")[3] == pytest.approx(3.0)

    def test_does_not_mutate_record(self, scenario_donor):
        before = repr(scenario_donor)
        extract_features(scenario_donor, "2024-03-01")
        assert repr(scenario_donor) == before


class TestExtractTimeSeries:
    def test_gifts_land_in_their_month(self, scenario_donor):
        series = extract_time_series(scenario_donor, "2024-03-15", n_months=12)
        assert series.shape == (12,)
        # March is index 11, so January is index 9.
        assert series[9] == pytest.approx(300.0)
        assert series.sum() == pytest.approx(300.0)

    def test_gifts_outside_window_are_ignored(self):
        donor = DonorRecord(
            "old",
            donations=[Donation(99, "2020-01-01"), Donation(5, "2024-06-10"), Donation(7, "2024-08-01")],
        )
        series = extract_time_series(donor, "2024-06-30", n_months=6)
        assert series.tolist() == [0, 0, 0, 0, 0, 5]

    def test_invalid_window_raises(self, scenario_donor):
        with pytest.raises(ValueError):
            extract_time_series(scenario_donor, "2024-03-15", n_months=0)


class TestDescriptiveStatistics:
    def test_best_hour_is_most_common_answered_hour(self):
        donor = DonorRecord(
            "h",
            communications=[
                Communication("2024-01-01 18:00", response=True),
                Communication("2024-01-02 18:30", response=True),
                Communication("2024-01-03 10:00", response=True),
                Communication("2024-01-04 07:00", response=False),
                Communication("2024-01-05 07:00", response=False),
            ],
        )
        assert best_communication_hour(donor) == 18

    def test_best_hour_defaults_to_nine(self, scenario_donor):
        assert best_communication_hour(scenario_donor) == 9
        assert best_communication_hour(DonorRecord("x")) == 9

    def test_interest_topics_are_sorted_and_distinct(self):
        donor = DonorRecord(
            "t",
            donations=[
                Donation(1, "2024-01-01", project_category="health"),
                Donation(1, "2024-02-01", project_category="arts"),
                Donation(1, "2024-03-01"),
            ],
            event_participations=[EventParticipation("health", "2024-01-05")],
        )
        assert interest_topics(donor) == ["arts", "health"]


class TestTransformers:
    def test_feature_extractor_matches_function(self, donors, reference_date):
        X = DonorFeatureExtractor(reference_date=reference_date).fit_transform(donors)
        assert X.shape == (len(donors), len(FEATURE_NAMES))
        np.testing.assert_allclose(X[0], extract_features(donors[0], reference_date))

    def test_feature_names_out(self, donors):
        extractor = DonorFeatureExtractor(reference_date="2024-06-30").fit(donors)
        assert list(extractor.get_feature_names_out()) == list(FEATURE_NAMES)

    def test_reference_date_is_frozen_at_fit(self, donors):
        extractor = DonorFeatureExtractor().fit(donors)
        first = extractor.transform(donors)
        np.testing.assert_array_equal(first, extractor.transform(donors))
        assert extractor.reference_date_ is not None

    def test_empty_population(self):
        assert DonorFeatureExtractor().fit_transform([]).shape == (0, len(FEATURE_NAMES))
        assert DonorTimeSeriesExtractor(n_months=8).fit_transform([]).shape == (0, 8)

    def test_rejects_non_records(self):
        with pytest.raises(TypeError):
            DonorFeatureExtractor().fit([{"id": "D1"}])
        with pytest.raises(TypeError):
            DonorFeatureExtractor().fit(DonorRecord("D1"))

    def test_time_series_extractor(self, donors, reference_date):
        S = DonorTimeSeriesExtractor(reference_date=reference_date, n_months=9).fit_transform(donors)
        assert S.shape == (len(donors), 9)
        assert (S >= 0).all()
