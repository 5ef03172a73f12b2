import time
from datetime import datetime
import pytz


class TimeHelper:
    """A static helper class for standardized time operations."""
    EST = pytz.timezone('US/Eastern')

    @staticmethod
    def get_current_timestamp_ms() -> int:
        """Returns the current Unix timestamp in milliseconds."""
        return int(time.time() * 1000)

    @staticmethod
    def seconds_to_ms(seconds: int) -> int:
        return int(seconds) * 1000

    @staticmethod
    def format_remaining(remaining_ms: int) -> str:
        """Formats a countdown as m:ss."""
        remaining_ms = max(0, remaining_ms)
        minutes = remaining_ms // 60000
        seconds = (remaining_ms % 60000) // 1000
        return f"{minutes}:{seconds:02d}"

    @staticmethod
    def format_est(timestamp_ms: int) -> str:
        return datetime.fromtimestamp(timestamp_ms / 1000, TimeHelper.EST).strftime('%Y-%m-%d %H:%M:%S %Z')
