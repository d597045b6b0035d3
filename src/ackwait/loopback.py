from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from typing import Sequence

from .checksum import ChecksumFault
from .net import StreamConnection
from .sender import StopAndWaitSender
from .server import Listener

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoopbackResult:
    messages: int
    attempts: int
    naks: int
    faults_injected: int
    duration_s: float


def run_loopback(
    messages: Sequence[str],
    *,
    fault_rate: float = 0.0,
    seed: int | None = None,
    first_attempt_only: bool = False,
    max_retries: int | None = None,
    log: logging.Logger = logger,
) -> LoopbackResult:
    """Deliver messages to a receiver listening on 127.0.0.1 in this process."""
    fault = ChecksumFault(rate=fault_rate, rng=random.Random(seed), on_retries=not first_attempt_only)

    listener = Listener.bind("127.0.0.1", 0, log=log)
    host, port = listener.address
    t = threading.Thread(target=listener.serve_forever, name="loopback-listener", daemon=True)
    t.start()

    try:
        with StreamConnection.connect(host, port, timeout=10.0) as conn:
            metrics = StopAndWaitSender(conn, messages, fault=fault, max_retries=max_retries, log=log).run()
    finally:
        listener.close()
        t.join(timeout=10.0)
        listener.join_handlers(timeout=10.0)

    return LoopbackResult(
        messages=metrics.messages,
        attempts=metrics.attempts,
        naks=metrics.naks,
        faults_injected=metrics.faults_injected,
        duration_s=metrics.duration_s,
    )
