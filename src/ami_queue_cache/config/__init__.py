"""Application configuration"""

import logging
from pathlib import Path

from dotenv import load_dotenv

from .loader import load_raw_config
from .ami import Ami
from .timing import Timing

load_dotenv()

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT, level=logging.INFO)
logging.getLogger("asyncio").setLevel(logging.WARNING)

_RAW_CONFIG = load_raw_config()

ami = Ami(_RAW_CONFIG)
timing = Timing(_RAW_CONFIG)


class Config:
    """One ``Ami`` and one ``Timing`` section, handed to a ``QueueCache``."""

    def __init__(self, ami: Ami | None = None, timing: Timing | None = None) -> None:
        self.ami = ami or Ami()
        self.timing = timing or Timing()

    @classmethod
    def load(cls, path: str | Path | None = None) -> "Config":
        raw = load_raw_config(path)
        return cls(Ami(raw), Timing(raw))


config = Config(ami, timing)


__all__ = ["ami", "timing", "config", "Config", "Ami", "Timing", "LOG_FORMAT", "DATE_FORMAT"]
