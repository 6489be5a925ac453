# hotspot_sync/base_utils.py


import json
import random
import string
import time
from datetime import datetime, timezone

from hotspot_sync.settings import logger


_BASE36 = string.digits + string.ascii_lowercase


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("to_base36 expects a non-negative integer")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id(prefix: str = "") -> str:
    """
    prefix_<base36 ms timestamp>_<6 random base36 chars>.
    Unique enough for interactive editing, not cryptographically.
    """
    timestamp = to_base36(int(time.time() * 1000))
    rand = "".join(random.choice(_BASE36) for _ in range(6))
    return f"{prefix}_{timestamp}_{rand}"


def chunk_list(items: list, size: int) -> list[list]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [items[i:i + size] for i in range(0, len(items), size)]


class BaseUtils():

    # -----------------------
    # General Utils
    # -----------------------

    def color_print(self, text, color=None, end_value=None):
        COLOR_CODES = {
            'black': '30', 'red': '31', 'green': '32', 'yellow': '33', 'blue': '34', 'magenta': '35',
            'cyan': '36', 'white': '37', 'bright_black': '90', 'bright_red': '91', 'bright_green': '92',
            'bright_yellow': '93', 'bright_blue': '94', 'bright_magenta': '95', 'bright_cyan': '96', 'bright_white': '97'
        }
        if color and color.lower() in COLOR_CODES:
            color_code = COLOR_CODES[color.lower()]
            start = f"\033[{color_code}m"
            end = "\033[0m"
            text = f"{start}{text}{end}"
        logger.info(str(text))
        return False

    # -----------------------
    # Cell coercion
    # -----------------------
    # Row-store cells are schemaless text/number values; every reader falls
    # back to a default instead of failing.

    def _coerce_field_to_str(self, value, default: str = "", strip: bool = False) -> str:
        if value is None:
            return default
        if not isinstance(value, str):
            try:
                value = json.dumps(value)
            except TypeError:
                value = str(value)
        return value.strip() if strip else value

    def _coerce_int(self, value, default: int = 0) -> int:
        if value is None or value == "" or isinstance(value, bool):
            return default
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default

    def _coerce_float(self, value, default: float = 0.0) -> float:
        if value is None or value == "" or isinstance(value, bool):
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def _coerce_optional_float(self, value):
        if value is None or value == "":
            return None
        return self._coerce_float(value, default=None)

    def _coerce_bool(self, value, default: bool = True) -> bool:
        if value is None or value == "":
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        s = str(value).strip().lower()
        if s in ("true", "1", "yes"):
            return True
        if s in ("false", "0", "no"):
            return False
        return default

    def _parse_json_cell(self, value, default_factory=dict):
        if isinstance(value, (dict, list)):
            return value
        if not value or not isinstance(value, str):
            return default_factory()
        try:
            parsed = json.loads(value)
        except ValueError:
            logger.warning(f"Failed to parse JSON cell: {value!r}")
            return default_factory()
        if not isinstance(parsed, type(default_factory())):
            return default_factory()
        return parsed

    def _dump_json_cell(self, value) -> str:
        return json.dumps(value if value is not None else {}, sort_keys=True)

    def _format_timestamp(self, value) -> str:
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value.isoformat()
        return self._coerce_field_to_str(value, strip=True)

    def _parse_timestamp(self, value) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str) and value:
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                logger.warning(f"Unparseable timestamp cell: {value!r}")
            else:
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        return datetime.fromtimestamp(0, tz=timezone.utc)
