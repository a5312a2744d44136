"""display — Title / OBS / inspector fan-out for a context's value."""
from .notifier import UNKNOWN_INDICATOR, DisplayNotifier, DisplayState

__all__ = ["UNKNOWN_INDICATOR", "DisplayNotifier", "DisplayState"]
