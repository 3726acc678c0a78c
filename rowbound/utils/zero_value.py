"""Zero values: what a NULL becomes in a destination that cannot hold None."""

import decimal
import inspect
from typing import Any

from pydantic import BaseModel

_ZEROS: dict[type, Any] = {
    int: 0,
    float: 0.0,
    bool: False,
    str: "",
    bytes: b"",
    decimal.Decimal: decimal.Decimal(0),
}


def zero_value(base_type) -> Any:
    """Return the zero value for a base type (``0``, ``""``, ``{}``, an empty model...).

    Types without a natural zero (datetime, Any...) give None.
    """
    if base_type in _ZEROS:
        return _ZEROS[base_type]
    if base_type in (dict, list, set, tuple):
        return base_type()
    if inspect.isclass(base_type) and issubclass(base_type, BaseModel):
        return base_type.model_construct()
    return None
