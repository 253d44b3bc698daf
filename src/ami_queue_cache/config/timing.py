import os

from .loader import section


def _positive(name: str, raw) -> float:
    value = float(raw)
    if value <= 0:
        raise ValueError(f"{name} must be > 0 (got {raw!r})")
    return value


class Timing:
    """Timer settings, all in seconds."""

    def __init__(self, config: dict | None = None) -> None:
        timing_cfg = section(config, "timing")
        self.RECONNECT_INTERVAL: float = _positive(
            "reconnect_interval",
            timing_cfg.get("reconnect_interval", os.getenv("RECONNECT_INTERVAL", "5")),
        )
        self.CONNECT_TIMEOUT: float = _positive(
            "connect_timeout",
            timing_cfg.get("connect_timeout", os.getenv("CONNECT_TIMEOUT", "10")),
        )
        self.EVENT_DEBOUNCE: float = _positive(
            "event_debounce",
            timing_cfg.get("event_debounce", os.getenv("EVENT_DEBOUNCE", "0.5")),
        )
        self.COMMAND_TIMEOUT: float = _positive(
            "command_timeout",
            timing_cfg.get("command_timeout", os.getenv("COMMAND_TIMEOUT", "5")),
        )

        # Unset (the default) lets a steady event stream defer an update forever.
        max_deferral = timing_cfg.get("max_event_deferral", os.getenv("MAX_EVENT_DEFERRAL", ""))
        self.MAX_EVENT_DEFERRAL: float | None = (
            _positive("max_event_deferral", max_deferral) if str(max_deferral).strip() else None
        )
