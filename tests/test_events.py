import logging

from scanner.events import PROGRESS_THROTTLE_SEC, Emitter, Throttle


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_throttle_limits_to_one_emission_per_interval():
    clock = _Clock()
    throttle = Throttle(clock=clock)
    assert PROGRESS_THROTTLE_SEC == 0.1

    assert throttle.ready()
    clock.now = 0.05
    assert not throttle.ready()
    clock.now = 0.1
    assert throttle.ready()
    clock.now = 0.15
    assert not throttle.ready()


def test_throttle_force_always_emits_and_resets_window():
    clock = _Clock()
    throttle = Throttle(clock=clock)
    assert throttle.ready()
    clock.now = 0.25
    assert throttle.ready(force=True)
    clock.now = 0.3
    assert not throttle.ready()
    clock.now = 0.5
    assert throttle.ready()


def test_emitter_isolates_failing_listener(caplog):
    emitter = Emitter()
    seen = []

    def _boom(_value):
        raise ValueError("listener broke")

    emitter.on("item", _boom)
    emitter.on("item", seen.append)
    with caplog.at_level(logging.WARNING, logger="curatarr"):
        emitter.emit("item", 1)

    assert seen == [1]
    assert "listener broke" in caplog.text
