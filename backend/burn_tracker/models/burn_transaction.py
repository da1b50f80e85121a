"""Burn transaction model.

One row per UNI transfer into the dead address. APPEND-ONLY: rows are
written once when first observed and never updated or deleted. Price fields
stay null forever when no price was available at ingestion time.
"""

from sqlalchemy import Column, Integer, String, Float

from .database import Base


class BurnTransaction(Base):
    """A single on-chain burn transfer."""
    __tablename__ = "burn_transactions"

    tx_hash = Column(String(66), primary_key=True)
    block_number = Column(Integer, nullable=False, index=True)
    timestamp = Column(String(32), nullable=False, index=True)  # ISO-8601 UTC, "...Z"

    uni_amount = Column(Float, nullable=False)
    uni_price_usd = Column(Float, nullable=True)
    usd_value = Column(Float, nullable=True)

    from_address = Column(String(42), nullable=False)

    @property
    def date(self) -> str:
        """UTC calendar date (YYYY-MM-DD) of the transfer."""
        return self.timestamp[:10]

    def __repr__(self):
        return (
            f"<BurnTransaction(tx_hash={self.tx_hash}, "
            f"block={self.block_number}, amount={self.uni_amount})>"
        )
