from .cache_manager import CacheManager
from .metrics import CacheMetrics
from .single_flight import SingleFlight

__all__ = ["CacheManager", "CacheMetrics", "SingleFlight"]
