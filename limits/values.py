"""
Tagged limit values.

Configuration payloads are loosely typed; every value read from a ConfigMap
is wrapped in a LimitValue (number, text, duration or bool). Numeric access
goes through to_float(), which raises TypeCoercionError instead of guessing.
A key that is not configured at all is represented by ABSENT.
"""
import math
from dataclasses import dataclass
from typing import Any, Optional, Union

from normalize.series import parse_duration

NUMBER = "number"
TEXT = "text"
DURATION = "duration"
BOOL = "bool"
MISSING = "absent"


class TypeCoercionError(Exception):
    """A limit value cannot be interpreted as a number"""
    pass


@dataclass(frozen=True)
class LimitValue:
    kind: str
    value: Union[float, str, bool, None]
    # Duration values keep the text they were written as
    text: Optional[str] = None

    @classmethod
    def number(cls, value: float) -> "LimitValue":
        return cls(NUMBER, float(value))

    @classmethod
    def string(cls, value: str) -> "LimitValue":
        return cls(TEXT, value)

    @classmethod
    def duration(cls, seconds: float, text: str) -> "LimitValue":
        return cls(DURATION, float(seconds), text)

    @classmethod
    def boolean(cls, value: bool) -> "LimitValue":
        return cls(BOOL, bool(value))

    @property
    def is_absent(self) -> bool:
        return self.kind == MISSING

    @property
    def is_numeric(self) -> bool:
        try:
            self.to_float()
        except TypeCoercionError:
            return False
        return True

    def to_float(self) -> float:
        """Numeric view of the value.

        Durations convert to seconds and booleans to 1.0 / 0.0.

        Raises:
            TypeCoercionError: value is absent or non-numeric text
        """
        if self.kind in (NUMBER, DURATION):
            return float(self.value)
        if self.kind == BOOL:
            return 1.0 if self.value else 0.0
        if self.kind == TEXT:
            try:
                number = float(str(self.value).strip())
            except ValueError:
                raise TypeCoercionError(f"not a number: {self.value!r}")
            if math.isnan(number) or math.isinf(number):
                raise TypeCoercionError(f"not a finite number: {self.value!r}")
            return number
        raise TypeCoercionError("value is not set")

    def to_json(self) -> Any:
        if self.kind == NUMBER:
            v = float(self.value)
            return int(v) if v.is_integer() else v
        if self.kind == DURATION:
            return self.text
        return self.value


ABSENT = LimitValue(MISSING, None)


def coerce_text(raw: str) -> LimitValue:
    """Interpret a flat ConfigMap string: int, then float, then duration, else text."""
    text = raw.strip()
    try:
        return LimitValue.number(int(text))
    except ValueError:
        pass
    try:
        number = float(text)
        if not (math.isnan(number) or math.isinf(number)):
            return LimitValue.number(number)
    except ValueError:
        pass
    seconds = parse_duration(text)
    if seconds is not None:
        return LimitValue.duration(seconds, text)
    return LimitValue.string(raw)


def from_raw(raw: Any) -> LimitValue:
    """Wrap a value decoded from YAML."""
    if raw is None:
        return ABSENT
    if isinstance(raw, LimitValue):
        return raw
    # bool is an int subclass
    if isinstance(raw, bool):
        return LimitValue.boolean(raw)
    if isinstance(raw, (int, float)):
        return LimitValue.number(raw)
    if isinstance(raw, str):
        return coerce_text(raw)
    return LimitValue.string(str(raw))
