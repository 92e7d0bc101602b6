import json
import logging
import threading

import pytest
import requests

from conftest import FakeResponse, FakeSession, status
from credits_task import TASK_PARAMETERS, TASK_TYPE, CreditsTaskClient, validate_and_clean
from errors import (
    ConfigurationError,
    RemoteTaskError,
    RemoteTaskTimeout,
    SchemaError,
    SubmissionError,
    TaskCancelled,
)
from models import ChartEntry

CHART = [
    ChartEntry(rank=1, artist="Sabrina Carpenter", title="Espresso"),
    ChartEntry(rank=2, artist="Billie Eilish", title="Birds of a Feather"),
]


def make_client(config, session):
    return CreditsTaskClient(config, session=session)


def test_submit_sends_one_bulk_request(config):
    session = FakeSession(post_response=FakeResponse(payload={"task_id": "t-1"}))
    client = make_client(config, session)

    assert client.submit(CHART) == "t-1"
    assert len(session.posts) == 1
    url, body = session.posts[0]
    assert url == "https://agent.test/v1/tasks"
    assert body["type"] == TASK_TYPE
    assert body["parameters"] == TASK_PARAMETERS
    assert "1. Sabrina Carpenter - Espresso" in body["prompt"]
    assert "2. Billie Eilish - Birds of a Feather" in body["prompt"]
    assert session.headers["Authorization"] == "Bearer secret-token"


def test_client_requires_credentials(config):
    with pytest.raises(ConfigurationError):
        CreditsTaskClient(config.with_overrides(manus_api_key=""), session=FakeSession())


@pytest.mark.parametrize(
    "post_response",
    [
        requests.ConnectionError("unreachable"),
        FakeResponse(status_code=401, payload={"error": "bad token"}, text="bad token"),
        FakeResponse(payload={"id": "no task id here"}),
        FakeResponse(payload=ValueError("not json")),
    ],
)
def test_submit_failures_are_fatal(config, post_response):
    session = FakeSession(post_response=post_response)
    with pytest.raises(SubmissionError):
        make_client(config, session).submit(CHART)
    assert len(session.posts) == 1


def test_submit_rejects_empty_chart(config):
    session = FakeSession()
    with pytest.raises(SchemaError):
        make_client(config, session).submit([])
    assert session.posts == []


def test_await_returns_result_on_completion_without_extra_polls(config):
    result = [{"rank": 1, "artist": "A", "title": "B"}]
    session = FakeSession(
        get_responses=[status("pending"), status("pending"), status("completed", result=result)]
    )
    client = make_client(config, session)

    assert client.await_completion("t-1", max_attempts=5) == result
    assert len(session.gets) == 3
    assert session.gets[0] == "https://agent.test/v1/tasks/t-1"


def test_await_keeps_polling_while_running(config):
    session = FakeSession(get_responses=[status("running"), status("completed", result=[])])
    assert make_client(config, session).await_completion("t-1") == []
    assert len(session.gets) == 2


def test_await_times_out_after_attempt_budget(config):
    session = FakeSession(get_responses=[status("pending")] * 10)
    client = make_client(config, session)

    with pytest.raises(RemoteTaskTimeout) as excinfo:
        client.await_completion("t-1", max_attempts=3)
    assert len(session.gets) == 3
    assert excinfo.value.task_id == "t-1"
    assert excinfo.value.attempts == 3


def test_await_failed_task_raises_remote_error(config):
    session = FakeSession(
        get_responses=[status("pending"), status("failed", error="TIDAL login expired")]
    )
    with pytest.raises(RemoteTaskError, match="TIDAL login expired"):
        make_client(config, session).await_completion("t-1")
    assert len(session.gets) == 2


def test_failed_poll_call_is_not_retried(config):
    session = FakeSession(
        get_responses=[requests.Timeout("read timed out"), status("completed", result=[])]
    )
    with pytest.raises(RemoteTaskError, match="status check failed"):
        make_client(config, session).await_completion("t-1")
    assert len(session.gets) == 1


def test_unknown_status_is_a_schema_error(config):
    session = FakeSession(get_responses=[status("exploded")])
    with pytest.raises(SchemaError):
        make_client(config, session).await_completion("t-1")


def test_cancel_before_first_poll(config):
    session = FakeSession(get_responses=[status("completed", result=[])])
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(TaskCancelled) as excinfo:
        make_client(config, session).await_completion("t-1", cancel_event=cancel)
    assert excinfo.value.task_id == "t-1"
    assert session.gets == []


class _CancelDuringWait(threading.Event):
    def wait(self, timeout=None):
        self.set()
        return True


class _InterruptDuringWait(threading.Event):
    def wait(self, timeout=None):
        raise KeyboardInterrupt


@pytest.mark.parametrize("event_cls", [_CancelDuringWait, _InterruptDuringWait])
def test_cancel_while_waiting_stops_polling(config, event_cls):
    session = FakeSession(get_responses=[status("pending"), status("completed", result=[])])
    with pytest.raises(TaskCancelled):
        make_client(config, session).await_completion("t-9", cancel_event=event_cls())
    assert len(session.gets) == 1


def test_interrupt_during_status_check_is_cancellation(config):
    session = FakeSession(get_responses=[status("pending"), KeyboardInterrupt()])
    with pytest.raises(TaskCancelled) as excinfo:
        make_client(config, session).await_completion("t-3")
    assert excinfo.value.task_id == "t-3"
    assert len(session.gets) == 2


def test_collect_credits_with_resume_skips_submission(config):
    result = [{"rank": 1, "artist": "A", "title": "B", "credits": []}]
    session = FakeSession(get_responses=[status("completed", result=result)])

    credited = make_client(config, session).collect_credits(CHART, resume_task_id="old-task")

    assert session.posts == []
    assert session.gets == ["https://agent.test/v1/tasks/old-task"]
    assert [entry.rank for entry in credited] == [1]


@pytest.mark.parametrize("payload", [None, 42, {"items": []}, "not json at all", "{\"a\": 1}"])
def test_validate_rejects_non_list_payloads(payload):
    with pytest.raises(SchemaError):
        validate_and_clean(payload)


def test_validate_unwraps_json_text_and_data_envelope():
    items = [{"rank": 1, "artist": "A", "title": "B"}]
    assert validate_and_clean(json.dumps(items))[0].title == "B"
    assert validate_and_clean({"data": items})[0].artist == "A"


def test_validate_drops_incomplete_items_and_keeps_order(caplog):
    payload = [
        {"rank": 3, "artist": "C", "title": "Three"},
        {"rank": 1, "artist": "", "title": "Missing artist"},
        {"artist": "No rank", "title": "X"},
        "not an object",
        {"rank": 2, "artist": "B", "title": "Two"},
        {"rank": 4, "artist": "D"},
    ]
    with caplog.at_level(logging.WARNING):
        cleaned = validate_and_clean(payload)

    assert [(e.rank, e.artist) for e in cleaned] == [(3, "C"), (2, "B")]
    assert "Missing required fields" in caplog.text


def test_validate_cleans_credit_lines_but_keeps_entry():
    payload = [
        {
            "rank": 1,
            "artist": "A",
            "title": "B",
            "album": "C",
            "credits": [
                {"role": "PRODUCER", "people": "X, Y"},
                {"role": "", "people": "Nobody"},
                {"role": "COMPOSER", "people": ""},
                {"role": "LYRICIST", "people": 7},
                {"role": "MIXING ENGINEER"},
                "garbage",
                {"role": "MASTERING ENGINEER", "people": "Z"},
            ],
        }
    ]
    (entry,) = validate_and_clean(payload)
    assert (entry.rank, entry.artist, entry.title, entry.album) == (1, "A", "B", "C")
    assert [(c.role, c.people) for c in entry.credits] == [
        ("PRODUCER", "X, Y"),
        ("MASTERING ENGINEER", "Z"),
    ]


@pytest.mark.parametrize("credits", [None, "PRODUCER: X", {"role": "PRODUCER"}])
def test_validate_coerces_malformed_credits_to_empty(credits):
    item = {"rank": 1, "artist": "A", "title": "B"}
    if credits is not None:
        item["credits"] = credits
    (entry,) = validate_and_clean([item])
    assert entry.credits == []
    assert entry.album == ""


def test_validate_rank_coercion():
    payload = [
        {"rank": "2", "artist": "A", "title": "B"},
        {"rank": -1, "artist": "C", "title": "D"},
        {"rank": "first", "artist": "E", "title": "F"},
        {"rank": 3.0, "artist": "G", "title": "H"},
        {"rank": "\u00b2", "artist": "I", "title": "J"},
        {"rank": True, "artist": "K", "title": "L"},
    ]
    assert [entry.rank for entry in validate_and_clean(payload)] == [2, 3]
