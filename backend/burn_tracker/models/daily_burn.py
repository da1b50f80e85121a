"""Daily burn rollup model.

Derived data: every row is recomputed from the full transaction history on
each sync, so nothing here is authoritative.
"""

from sqlalchemy import Column, String, Float

from .database import Base


class DailyBurn(Base):
    """Aggregated burns for one UTC calendar date."""
    __tablename__ = "daily_burns"

    date = Column(String(10), primary_key=True)  # YYYY-MM-DD

    cumulative_uni = Column(Float, nullable=False)
    daily_uni = Column(Float, nullable=False)

    uni_price_usd = Column(Float, nullable=True)
    daily_usd_value = Column(Float, nullable=True)
    cumulative_usd_value = Column(Float, nullable=True)

    updated_at = Column(String(40), nullable=False)

    def __repr__(self):
        return f"<DailyBurn(date={self.date}, daily={self.daily_uni}, cumulative={self.cumulative_uni})>"

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "date": self.date,
            "cumulative_uni": self.cumulative_uni,
            "daily_uni": self.daily_uni,
            "uni_price_usd": self.uni_price_usd,
            "daily_usd_value": self.daily_usd_value,
            "cumulative_usd_value": self.cumulative_usd_value,
            "updated_at": self.updated_at,
        }
