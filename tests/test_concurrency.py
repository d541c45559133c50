import threading
import time

from kubesd.exporter.concurrency import run_concurrently_until


def _set_when(condition, stop, timeout=5):
    def waiter():
        condition.wait(timeout)
        stop.set()

    thread = threading.Thread(target=waiter, daemon=True)
    thread.start()
    return thread


def test_every_function_receives_the_stop_event():
    stop = threading.Event()
    all_started = threading.Event()
    received = []
    lock = threading.Lock()

    def func(arg):
        with lock:
            received.append(arg)
            if len(received) == 3:
                all_started.set()
        arg.wait()

    _set_when(all_started, stop)
    result = run_concurrently_until(stop, func, func, func)

    assert result is None
    assert len(received) == 3
    assert all(item is stop for item in received)


def test_blocks_until_stop_is_set():
    stop = threading.Event()
    finished = threading.Event()

    def func(_):
        finished.set()

    timer = threading.Timer(0.2, stop.set)
    timer.start()
    started = time.monotonic()
    result = run_concurrently_until(stop, func)
    elapsed = time.monotonic() - started
    timer.join(timeout=5)

    assert result is None
    assert finished.is_set()
    assert elapsed >= 0.15


def test_waits_for_functions_to_finish_after_stop():
    stop = threading.Event()
    done = []

    def slow(arg):
        arg.wait()
        time.sleep(0.1)
        done.append(True)

    stop.set()
    result = run_concurrently_until(stop, slow, slow)
    assert result is None
    assert done == [True, True]


def test_no_functions_returns_once_stopped():
    stop = threading.Event()
    stop.set()
    result = run_concurrently_until(stop)
    assert result is None
    assert stop.is_set()