"""SQLAlchemy models for StockPicker."""

from stockpicker.models.intraday import IntradayRecommendationRow
from stockpicker.models.swing import SwingRecommendationRow

__all__ = ["IntradayRecommendationRow", "SwingRecommendationRow"]
