from .float import FloatPrecisionProcessor

__all__ = [
  "FloatPrecisionProcessor",
]
