"""Tests for lock-contention retries"""

import pytest

from diffnotes.domain.config.retry import RetryConfig
from diffnotes.infrastructure.git.client import GitError
from diffnotes.infrastructure.retry import call_with_lock_retry, create_retry_decorator, is_lock_contention

NO_WAIT = RetryConfig(max_attempts=3, initial_delay=0, backoff_multiplier=2, jitter=0)


def _locked() -> GitError:
    return GitError(
        "git notes failed",
        stderr="fatal: cannot lock ref 'refs/notes/git-review/main': reference already exists",
    )


class TestIsLockContention:
    """Tests for is_lock_contention"""

    def test_lock_markers(self):
        """Test stderr messages that indicate a held lock"""
        assert is_lock_contention(_locked())
        assert is_lock_contention(GitError("x", stderr="Unable to create '/repo/.git/refs/notes/x.lock': File exists."))
        assert is_lock_contention(GitError("x", stderr="Another git process seems to be running"))

    def test_other_failures(self):
        """Test unrelated failures are not retried"""
        assert not is_lock_contention(GitError("x", stderr="fatal: bad object HEAD"))
        assert not is_lock_contention(ValueError("nope"))

    def test_falls_back_to_message(self):
        """Test exceptions without stderr use their message"""
        assert is_lock_contention(RuntimeError("cannot lock ref 'refs/notes/x'"))


class TestCallWithLockRetry:
    """Tests for call_with_lock_retry"""

    def test_retries_until_success(self, monkeypatch):
        """Test lock contention is retried"""
        monkeypatch.setattr("tenacity.nap.sleep", lambda *_: None)
        calls = {"n": 0}

        def flaky(value):
            calls["n"] += 1
            if calls["n"] < 3:
                raise _locked()
            return value

        assert call_with_lock_retry(NO_WAIT, flaky, "ok") == "ok"
        assert calls["n"] == 3

    def test_gives_up_after_max_attempts(self, monkeypatch):
        """Test the last lock error is re-raised"""
        monkeypatch.setattr("tenacity.nap.sleep", lambda *_: None)
        calls = {"n": 0}

        def always_locked():
            calls["n"] += 1
            raise _locked()

        with pytest.raises(GitError, match="git notes failed"):
            call_with_lock_retry(NO_WAIT, always_locked)
        assert calls["n"] == 3

    def test_other_errors_not_retried(self):
        """Test non-lock failures propagate immediately"""
        calls = {"n": 0}

        def broken():
            calls["n"] += 1
            raise GitError("bad", stderr="fatal: bad object")

        with pytest.raises(GitError):
            call_with_lock_retry(NO_WAIT, broken)
        assert calls["n"] == 1

    def test_kwargs_passed_through(self):
        """Test keyword arguments reach the wrapped call"""
        assert call_with_lock_retry(None, lambda a, b=0: a + b, 1, b=2) == 3


class TestBackoffWithJitter:
    """Tests for the exponential wait with random jitter"""

    def test_jitter_added_to_exponential_wait(self, monkeypatch):
        """Test each delay is the exponential step plus at most the jitter amount"""
        delays = []
        monkeypatch.setattr("time.sleep", delays.append)
        config = RetryConfig(max_attempts=3, initial_delay=0.1, backoff_multiplier=2.0, jitter=0.5)
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] < 3:
                raise _locked()
            return "done"

        assert call_with_lock_retry(config, flaky) == "done"

        assert len(delays) == 2
        assert 0.1 - 1e-9 <= delays[0] <= 0.15 + 1e-9
        assert 0.2 - 1e-9 <= delays[1] <= 0.25 + 1e-9

    def test_decorator_without_jitter(self):
        """Test a zero jitter configuration builds a plain exponential wait"""
        decorator = create_retry_decorator(NO_WAIT, is_lock_contention)
        assert decorator(lambda: 7)() == 7
