"""Tests for network throttling through the throttle command."""

import subprocess

from telescope import connectivity


class TestThrottle:
    def test_no_profile_is_a_no_op(self, monkeypatch):
        def unexpected(*args, **kwargs):
            raise AssertionError("throttle should not run")

        monkeypatch.setattr(connectivity.subprocess, "run", unexpected)
        assert connectivity.start_throttle(None) is False

    def test_profile_arguments(self, monkeypatch):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            return subprocess.CompletedProcess(cmd, 0, "ok\n", "")

        monkeypatch.setattr(connectivity.subprocess, "run", fake_run)
        assert connectivity.start_throttle("3g") is True
        assert connectivity.stop_throttle() is True
        assert calls == [
            ["throttle", "--up", "768", "--down", "1600", "--rtt", "150"],
            ["throttle", "--stop"],
        ]

    def test_missing_binary_is_logged(self, monkeypatch):
        def missing(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(connectivity.subprocess, "run", missing)
        assert connectivity.start_throttle("cable") is False
