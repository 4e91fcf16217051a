from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator

logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """Correlation data for one snapshot request.

    The context is handed explicitly to every fetch and to the assembler so log
    lines from concurrent tile requests can be tied back to the request that
    issued them. ``span`` measures a phase and stores its duration in ``timings``.
    """

    source: str | None = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timings: Dict[str, float] = field(default_factory=dict)

    def log_extra(self) -> Dict[str, str]:
        extra = {"request_id": self.request_id}
        if self.source:
            extra["tile_source"] = self.source
        return extra

    @contextmanager
    def span(self, name: str) -> Iterator["RequestContext"]:
        logger.debug("[%s] %s started", self.request_id, name, extra=self.log_extra())
        start = time.perf_counter()
        try:
            yield self
        except BaseException as exc:
            elapsed = time.perf_counter() - start
            self.timings[name] = elapsed
            logger.info(
                "[%s] %s failed after %.1f ms: %s",
                self.request_id,
                name,
                elapsed * 1000,
                str(exc) or type(exc).__name__,
                extra=self.log_extra(),
            )
            raise
        elapsed = time.perf_counter() - start
        self.timings[name] = elapsed
        logger.info(
            "[%s] %s ok in %.1f ms",
            self.request_id,
            name,
            elapsed * 1000,
            extra=self.log_extra(),
        )
