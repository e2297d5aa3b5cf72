# pylint: disable=missing-module-docstring,missing-function-docstring

from constants import AudioFormat
from orchestrator.commit_scheduler import (
    CommitAction,
    CommitPolicy,
    decide,
    decide_on_stop,
)


# 2000 ms interval, 200 ms flush floor (9600 B), 100 ms commit floor (4800 B)
POLICY = CommitPolicy.from_ms(
    AudioFormat(),
    commit_interval_ms=2000,
    flush_floor_ms=200,
    commit_floor_ms=100,
)


def test_policy_from_ms_converts_to_bytes():
    assert POLICY.flush_floor_bytes == 9600
    assert POLICY.commit_floor_bytes == 4800
    assert POLICY.commit_interval_ms == 2000


def test_nothing_before_interval_elapses():
    d = decide(
        POLICY,
        remainder_bytes=20_000,
        bytes_since_commit=48_000,
        elapsed_ms=2000,
        response_busy=False,
    )
    assert d.action is CommitAction.NONE
    assert not d.flush


def test_small_remainder_waits_for_more_audio():
    d = decide(
        POLICY,
        remainder_bytes=9599,
        bytes_since_commit=48_000,
        elapsed_ms=2500,
        response_busy=False,
    )
    assert d.action is CommitAction.NONE


def test_commit_and_respond_when_idle():
    d = decide(
        POLICY,
        remainder_bytes=10_000,
        bytes_since_commit=48_000,
        elapsed_ms=2001,
        response_busy=False,
    )
    assert d.action is CommitAction.COMMIT_AND_RESPOND
    assert d.flush and d.commit and d.respond


def test_busy_response_commits_without_requesting_another():
    d = decide(
        POLICY,
        remainder_bytes=10_000,
        bytes_since_commit=48_000,
        elapsed_ms=3000,
        response_busy=True,
    )
    assert d.action is CommitAction.COMMIT
    assert d.commit
    assert not d.respond


def test_flush_without_commit_when_below_commit_floor():
    policy = CommitPolicy(
        commit_interval_ms=2000, flush_floor_bytes=100, commit_floor_bytes=4800
    )
    d = decide(
        policy,
        remainder_bytes=200,
        bytes_since_commit=0,
        elapsed_ms=2500,
        response_busy=False,
    )
    assert d.action is CommitAction.FLUSH
    assert d.flush
    assert not d.commit


def test_stop_below_floor_only_flushes():
    # 3000 bytes (62.5 ms) total, below the 4800 byte commit floor
    d = decide_on_stop(POLICY, remainder_bytes=3000, bytes_since_commit=0)
    assert d.action is CommitAction.FLUSH
    assert not d.commit


def test_stop_commits_when_floor_met():
    d = decide_on_stop(POLICY, remainder_bytes=1000, bytes_since_commit=24_000)
    assert d.action is CommitAction.COMMIT
    assert not d.respond


def test_stop_with_nothing_pending():
    d = decide_on_stop(POLICY, remainder_bytes=0, bytes_since_commit=0)
    assert d.action is CommitAction.NONE
