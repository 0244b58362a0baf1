"""
test_stability.py — File stability gate.

The window is never actually slept: a fake sleep mutates the file (or not)
to simulate a writer still busy during the observation window.
"""
from __future__ import annotations

import os

import pytest

from smartfill.errors import AppError, BAD_CONFIG
from smartfill.stability import StabilityGate


def _file(tmp_path, content="abc"):
    p = tmp_path / "in.txt"
    p.write_text(content, encoding="utf-8")
    return str(p)


class _Growing:
    """Fake sleep that appends to the file for the first `times` calls."""

    def __init__(self, path, times):
        self.path = path
        self.times = times
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)
        if len(self.calls) <= self.times:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write("more")


@pytest.mark.parametrize("window", [0, -1, 31])
def test_window_bounds(window):
    with pytest.raises(AppError) as ei:
        StabilityGate(window, sleep=lambda s: None)
    assert ei.value.code == BAD_CONFIG


def test_unchanged_file_is_stable(tmp_path):
    path = _file(tmp_path)
    calls = []
    gate = StabilityGate(2, sleep=calls.append)
    assert gate.is_stable(path)
    assert calls == [2]


def test_growing_file_is_not_stable(tmp_path):
    path = _file(tmp_path)
    gate = StabilityGate(1, sleep=_Growing(path, times=1))
    assert not gate.is_stable(path)


def test_missing_file_is_not_stable_and_does_not_wait(tmp_path):
    calls = []
    gate = StabilityGate(1, sleep=calls.append)
    assert not gate.is_stable(str(tmp_path / "nope.txt"))
    assert calls == []


def test_file_deleted_during_window(tmp_path):
    path = _file(tmp_path)
    gate = StabilityGate(1, sleep=lambda s: os.remove(path))
    assert not gate.is_stable(path)


def test_wait_for_stability_retries_until_settled(tmp_path):
    path = _file(tmp_path)
    sleep = _Growing(path, times=2)
    gate = StabilityGate(1, sleep=sleep)
    assert gate.wait_for_stability(path, max_retries=5)
    assert len(sleep.calls) == 3


def test_wait_for_stability_gives_up(tmp_path):
    path = _file(tmp_path)
    sleep = _Growing(path, times=10)
    gate = StabilityGate(1, sleep=sleep)
    assert not gate.wait_for_stability(path, max_retries=3)
    assert len(sleep.calls) == 3


def test_wait_for_stability_stops_when_file_vanishes(tmp_path):
    path = _file(tmp_path)
    calls = []

    def sleep(seconds):
        calls.append(seconds)
        os.remove(path)

    gate = StabilityGate(1, sleep=sleep)
    assert not gate.wait_for_stability(path, max_retries=5)
    assert len(calls) == 1


def test_is_readable(tmp_path):
    assert StabilityGate.is_readable(_file(tmp_path))
    assert not StabilityGate.is_readable(str(tmp_path / "missing.txt"))
