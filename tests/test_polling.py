import logging

import pytest

from autovideo.errors import EmptyResult, PollTimeout, RemoteTaskFailed, TransientPollError
from autovideo.models import PollPolicy, TaskSnapshot, TaskStatus
from autovideo.pipeline import AsyncTaskPoller, RunEvents


def scripted(*answers):
    """Poll function returning the given answers in order."""
    queue = list(answers)
    calls = []

    def poll(task_id):
        calls.append(task_id)
        answer = queue.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    poll.calls = calls
    return poll


def snap(status, *urls, message=None):
    return TaskSnapshot(
        task_id="t-1",
        status=TaskStatus.from_provider(status),
        result_urls=list(urls),
        raw_status=status,
        message=message,
    )


def test_returns_url_after_exactly_three_polls(sleeper):
    poller = AsyncTaskPoller(PollPolicy(interval=5.0, max_attempts=10), sleep=sleeper)
    poll = scripted(snap("RUNNING"), snap("RUNNING"), snap("SUCCEEDED", "https://x/img.png"))

    assert poller.await_completion("t-1", poll) == "https://x/img.png"
    assert len(poll.calls) == 3


def test_sleeps_before_every_poll_including_the_first(sleeper):
    poller = AsyncTaskPoller(PollPolicy(interval=5.0, max_attempts=10), sleep=sleeper)
    poll = scripted(snap("PENDING"), snap("SUCCEEDED", "u"))

    poller.await_completion("t-1", poll)

    assert sleeper.calls == [5.0, 5.0]


def test_times_out_when_never_terminal(sleeper):
    poller = AsyncTaskPoller(PollPolicy(interval=1.0, max_attempts=3), sleep=sleeper)
    poll = scripted(snap("RUNNING"), snap("RUNNING"), snap("RUNNING"), snap("SUCCEEDED", "late"))

    with pytest.raises(PollTimeout) as excinfo:
        poller.await_completion("t-1", poll)

    assert excinfo.value.attempts == 3
    assert len(poll.calls) == 3


def test_failure_stops_polling_immediately(sleeper):
    poller = AsyncTaskPoller(PollPolicy(interval=1.0, max_attempts=10), sleep=sleeper)
    poll = scripted(snap("RUNNING"), snap("FAILED", message="content policy"), snap("SUCCEEDED", "never"))

    with pytest.raises(RemoteTaskFailed, match="content policy"):
        poller.await_completion("t-1", poll)

    assert len(poll.calls) == 2


def test_transient_errors_are_retried_within_budget(sleeper, caplog):
    events = RunEvents(run_id="poll")
    poller = AsyncTaskPoller(PollPolicy(interval=1.0, max_attempts=5), sleep=sleeper, events=events)
    poll = scripted(
        TransientPollError("HTTP 502"),
        TransientPollError("HTTP 503"),
        snap("SUCCEEDED", "https://x/ok.png"),
    )

    with caplog.at_level(logging.WARNING):
        assert poller.await_completion("t-1", poll) == "https://x/ok.png"

    assert len(events.named("poll_error")) == 2
    assert "HTTP 502" in caplog.text


def test_transient_errors_count_against_budget(sleeper):
    poller = AsyncTaskPoller(PollPolicy(interval=1.0, max_attempts=2), sleep=sleeper)
    poll = scripted(TransientPollError("down"), TransientPollError("down"))

    with pytest.raises(PollTimeout):
        poller.await_completion("t-1", poll)


def test_success_without_results_is_empty_result(sleeper):
    poller = AsyncTaskPoller(PollPolicy(interval=1.0, max_attempts=3), sleep=sleeper)

    with pytest.raises(EmptyResult):
        poller.await_completion("t-1", scripted(snap("SUCCEEDED")))


def test_first_of_several_results_is_used(sleeper):
    poller = AsyncTaskPoller(PollPolicy(interval=1.0, max_attempts=3), sleep=sleeper)

    assert poller.await_completion("t-1", scripted(snap("SUCCEEDED", "a", "b"))) == "a"


def test_synchronous_result_resolves_without_sleeping(sleeper):
    poller = AsyncTaskPoller(PollPolicy(interval=5.0, max_attempts=3), sleep=sleeper)

    url = poller.resolve(TaskSnapshot.completed("tts-1", "https://x/a.wav"))

    assert url == "https://x/a.wav"
    assert sleeper.calls == []


def test_resolve_polls_pending_submission(sleeper):
    poller = AsyncTaskPoller(PollPolicy(interval=2.0, max_attempts=3), sleep=sleeper)
    submitted = TaskSnapshot(task_id="t-1", status=TaskStatus.QUEUED)

    assert poller.resolve(submitted, scripted(snap("SUCCEEDED", "u"))) == "u"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("PENDING", TaskStatus.QUEUED),
        ("RUNNING", TaskStatus.RUNNING),
        ("SUCCEEDED", TaskStatus.SUCCEEDED),
        ("FAILED", TaskStatus.FAILED),
        ("CANCELED", TaskStatus.FAILED),
        ("UNKNOWN", TaskStatus.FAILED),
        ("succeeded", TaskStatus.SUCCEEDED),
        ("SOMETHING_NEW", TaskStatus.RUNNING),
        (None, TaskStatus.RUNNING),
    ],
)
def test_provider_status_normalization(raw, expected):
    assert TaskStatus.from_provider(raw) is expected
