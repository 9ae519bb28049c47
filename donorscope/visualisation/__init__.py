from ._plots import plot_donation_forecast, plot_segment_distribution

__all__ = ["plot_donation_forecast", "plot_segment_distribution"]
