"""Running several stoppable functions side by side."""

from __future__ import annotations

import threading
from typing import Callable

StoppableFunc = Callable[[threading.Event], None]


def run_concurrently_until(stop: threading.Event, *args: StoppableFunc) -> None:
    """Run every function in its own thread with ``stop`` as its argument.

    Blocks until ``stop`` is set and then until every function has returned.
    """
    threads = [
        threading.Thread(target=func, args=(stop,), daemon=True) for func in args
    ]
    for thread in threads:
        thread.start()

    stop.wait()

    for thread in threads:
        thread.join()