"""
Brief: Tests for the asyncio-backed single-shot Timer.

Inputs:
  - None

Outputs:
  - None
"""

import asyncio

from mdnsresponder.scheduler import Timer


def test_restart_cancels_pending_call(fake_loop) -> None:
    fired = []
    timer = Timer(fake_loop, lambda: fired.append(1), name="probe")
    timer.start(2.0)
    first = fake_loop.handles[0]
    timer.start(2.0)

    assert first.cancelled
    assert len(fake_loop.pending()) == 1
    fake_loop.run_pending(2.0)
    assert fired == [1]
    assert not timer.active


def test_cancel_is_idempotent(fake_loop) -> None:
    timer = Timer(fake_loop, lambda: None)
    timer.cancel()
    timer.start(1.0)
    timer.cancel()
    timer.cancel()
    assert fake_loop.pending() == []


def test_timer_fires_once_on_real_loop() -> None:
    """
    Brief: On a real event loop only the latest schedule fires.

    Inputs:
      - None

    Outputs:
      - None: Asserts a single callback after a restart
    """
    loop = asyncio.new_event_loop()
    try:
        fired = []
        timer = Timer(loop, lambda: fired.append(loop.time()))
        timer.start(0.01)
        timer.start(0.02)
        loop.call_later(0.1, loop.stop)
        loop.run_forever()
        assert len(fired) == 1
    finally:
        loop.close()
