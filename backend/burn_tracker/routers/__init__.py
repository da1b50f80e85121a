# API Routers

from . import burns, health

__all__ = ["burns", "health"]
