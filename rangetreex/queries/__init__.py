from .range import range_search, validate_range

__all__ = ["range_search", "validate_range"]
