"""
=======================
Predicting for a Donor
=======================

This example trains every DonorScope model on a synthetic donor file, then
prints the prediction for one donor and plots their giving forecast and the
segment mix of the whole file.
"""

import matplotlib.pyplot as plt

from donorscope import DonorPredictionEngine
from donorscope.preprocessing import extract_time_series
from donorscope.utils.testing import make_donor_repository
from donorscope.visualisation import plot_donation_forecast, plot_segment_distribution

# Build an in-memory repository of 150 synthetic donors
repo = make_donor_repository(n_donors=150, random_state=7, reference_date="2024-06-30")

# Train on the whole file, pinned to the same "today" as the data
engine = DonorPredictionEngine(repo, reference_date="2024-06-30", random_state=7)
state = engine.train_models()
print(f"Trained on {state.n_donors} donors")

result = engine.predict_for_donor("D00001")
for key in ("segment", "lifecycle_stage", "lifetime_value", "campaign_response",
            "recommended_amount", "risk_score", "predicted_amount", "confidence_score"):
    print(f"{key:>20}: {getattr(result, key)}")

# Forecast for this donor, continuing their last 12 months of giving
history = extract_time_series(repo.get_donor_by_id("D00001"), state.reference_date)
plot_donation_forecast(result, history=history)

# Segment mix across the file
predictions = engine.predict_all()
plot_segment_distribution(predictions["segment"])
plt.show()
