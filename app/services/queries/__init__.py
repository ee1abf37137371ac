from .builder import DaxQueryBuilder, measure_ref, text_literal, wrap

__all__ = ["DaxQueryBuilder", "measure_ref", "text_literal", "wrap"]
