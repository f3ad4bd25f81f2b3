from __future__ import annotations

import asyncio

from arq.worker import run_worker

from app.core.logging import configure_logging
from app.workers.arq_worker import WorkerSettings


def main() -> None:
    configure_logging()
    # Newer interpreters no longer create a main-thread loop implicitly and
    # arq still calls asyncio.get_event_loop() while building the worker.
    asyncio.set_event_loop(asyncio.new_event_loop())
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
