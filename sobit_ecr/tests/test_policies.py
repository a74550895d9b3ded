import pytest

from sobit_ecr.network.backoff import BackoffPolicy
from sobit_ecr.network.errors import (
    ErrorKind,
    MalformedMessage,
    PeerSilent,
    RemoteError,
    SessionError,
)
from sobit_ecr.network.session_state import SessionState, SessionTracker


def test_fixed_backoff_uses_same_delay():
    policy = BackoffPolicy(interval=10.0)
    assert [policy.delay(attempt) for attempt in (1, 2, 5)] == [10.0, 10.0, 10.0]
    assert not policy.exhausted(1000)


def test_exponential_backoff_is_capped():
    policy = BackoffPolicy(interval=1.0, multiplier=2.0, max_interval=5.0)
    assert [policy.delay(attempt) for attempt in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


def test_backoff_exhaustion_and_jitter_bounds():
    policy = BackoffPolicy(interval=2.0, max_attempts=3, jitter=0.5)
    assert not policy.exhausted(3)
    assert policy.exhausted(4)
    for attempt in range(1, 4):
        assert 1.0 <= policy.delay(attempt) <= 3.0


def test_backoff_from_settings(make_settings):
    settings = make_settings(
        reconnect_delay_seconds=3.0,
        reconnect_max_attempts=4,
        reconnect_multiplier=1.5,
        reconnect_max_delay_seconds=30.0,
    )
    assert BackoffPolicy.from_settings(settings) == BackoffPolicy(3.0, 4, 1.5, 30.0, 0.0)


def test_session_tracker_walks_the_lifecycle():
    tracker = SessionTracker()
    for state in (
        SessionState.CONNECTING,
        SessionState.AUTHENTICATING,
        SessionState.ACTIVE,
        SessionState.RECONNECTING,
        SessionState.CONNECTING,
        SessionState.AUTHENTICATING,
        SessionState.ACTIVE,
        SessionState.CLOSING,
        SessionState.CLOSED,
        SessionState.CONNECTING,
    ):
        tracker.transition(state)
    assert tracker.state is SessionState.CONNECTING


@pytest.mark.parametrize(
    "current, nxt",
    [
        (SessionState.IDLE, SessionState.ACTIVE),
        (SessionState.CONNECTING, SessionState.ACTIVE),
        (SessionState.CLOSING, SessionState.ACTIVE),
        (SessionState.CLOSED, SessionState.ACTIVE),
    ],
)
def test_session_tracker_rejects_invalid_transitions(current, nxt):
    tracker = SessionTracker(state=current)
    with pytest.raises(ValueError):
        tracker.transition(nxt)
    assert tracker.state is current


def test_error_kinds_map_to_subclasses():
    remote = SessionError.for_kind(ErrorKind.REMOTE_ERROR, 4, "bad credentials")
    assert isinstance(remote, RemoteError)
    assert (remote.code, remote.message, str(remote)) == (4, "bad credentials", "bad credentials")

    assert isinstance(SessionError.for_kind(ErrorKind.MALFORMED_MESSAGE, -1, "x"), MalformedMessage)
    silent = SessionError.for_kind(ErrorKind.PEER_SILENT, -1, "quiet")
    assert isinstance(silent, PeerSilent)
    assert silent.kind is ErrorKind.PEER_SILENT
