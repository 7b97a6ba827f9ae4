from typing import Any

import numpy as np
from structlog.typing import EventDict, WrappedLogger


class FloatPrecisionProcessor:
  """
  A structlog processor that rounds floats, whether bare values or nested inside lists, dicts
  or numpy arrays, so that timings and sample statistics stay readable in the console.
  """

  def __init__(
    self,
    digits: int = 3,
    only_fields: frozenset[str] = frozenset(),
    not_fields: frozenset[str] = frozenset(),
    np_array_to_list: bool = True,
  ):
    """
    :param digits: The number of digits to round to
    :param only_fields: If non-empty, only these fields are rounded
    :param not_fields: Fields that are never rounded
    :param np_array_to_list: Whether numpy arrays are converted to lists before rounding
    """
    self.digits = digits
    self.only_fields = only_fields
    self.not_fields = not_fields
    self.np_array_to_list = np_array_to_list

  def _round(self, value: Any) -> Any:
    if isinstance(value, float):
      return round(value, self.digits)
    if self.np_array_to_list and isinstance(value, np.ndarray):
      return self._round(value.tolist())
    if isinstance(value, list):
      return [self._round(item) for item in value]
    if isinstance(value, dict):
      return {k: self._round(v) for k, v in value.items()}
    return value

  def __call__(self, _: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for key, value in event_dict.items():
      if self.only_fields and key not in self.only_fields:
        continue
      if key in self.not_fields or isinstance(value, bool):
        continue
      event_dict[key] = self._round(value)
    return event_dict
