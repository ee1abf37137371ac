"""Query pooling."""

from app.services.pooling.analyzer import PoolAnalyzer

__all__ = ["PoolAnalyzer"]
