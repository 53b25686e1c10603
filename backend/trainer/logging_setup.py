from __future__ import annotations
import logging
import sys
from typing import IO, Optional

from .settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None, *, stream: Optional[IO[str]] = None) -> None:
	"""Configure root logging once. The sidecar passes stderr to keep stdout for protocol traffic."""
	logging.basicConfig(
		level=(level or settings.log_level).upper(),
		format=LOG_FORMAT,
		stream=stream or sys.stderr,
	)
	logging.getLogger("httpx").setLevel(logging.WARNING)
