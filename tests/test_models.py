import pytest

from ami_queue_cache.errors import MalformedEventError
from ami_queue_cache.models import Agent, Member, PauseUpdate, Queue


STATUS_EVENT = {
    "Event": "QueueMemberStatus",
    "Queue": "sales",
    "MemberName": "Alice",
    "Interface": "SIP/100",
    "StateInterface": "SIP/100",
    "Membership": "dynamic",
    "Penalty": "1",
    "CallsTaken": "5",
    "LastCall": "1700000100",
    "LastPause": "0",
    "LoginTime": "1700000000",
    "InCall": "0",
    "Status": "1",
    "Paused": "0",
    "PausedReason": "",
    "Wrapuptime": "15",
}


def test_member_from_event_parses_every_field():
    member = Member.from_event(STATUS_EVENT)

    assert member == Member(
        extension="SIP/100",
        name="Alice",
        state_interface="SIP/100",
        membership="dynamic",
        penalty=1,
        calls_taken=5,
        last_call=1700000100,
        last_pause=0,
        login_time=1700000000,
        in_call=0,
        status=1,
        paused=0,
        paused_reason="",
        wrapup_time=15,
    )
    assert member.is_available


def test_member_from_snapshot_entry_uses_location_and_name():
    member = Member.from_snapshot_entry({"Location": "SIP/200", "Name": "Bob", "Status": "2"})

    assert member.extension == "SIP/200"
    assert member.name == "Bob"
    assert member.status == 2
    assert not member.is_available


def test_absent_numeric_fields_default_to_zero():
    member = Member.from_event({"Interface": "SIP/1"})

    assert member.login_time == 0
    assert member.wrapup_time == 0
    assert member.name == ""


@pytest.mark.parametrize("field", ["Penalty", "Status", "Paused", "CallsTaken"])
def test_bad_numbers_are_rejected(field):
    with pytest.raises(MalformedEventError):
        Member.from_event({**STATUS_EVENT, field: "abc"})


def test_missing_extension_is_rejected():
    with pytest.raises(MalformedEventError):
        Member.from_event({"MemberName": "Nobody"})


def test_pause_update_falls_back_to_reason_field():
    update = PauseUpdate.from_event({"Paused": "1", "Reason": "Lunch", "LastPause": "9"})

    assert update == PauseUpdate(paused=1, paused_reason="Lunch", last_pause=9)
    merged = Member.from_event(STATUS_EVENT).with_pause(update)
    assert (merged.paused, merged.paused_reason, merged.last_pause) == (1, "Lunch", 9)
    assert merged.calls_taken == 5


def test_queue_from_params_and_defaults():
    queue = Queue.from_params(
        {"Queue": "sales", "Max": "10", "ServicelevelPerf": "85.5", "ServicelevelPerf2": "90"}
    )

    assert queue.name == "sales"
    assert queue.max == 10
    assert queue.strategy == "ringall"
    assert queue.servicelevel_perf == 85.5
    assert queue.servicelevel_perf2 == 90.0
    assert queue.members == []


def test_queue_rejects_non_finite_service_level():
    with pytest.raises(MalformedEventError):
        Queue.from_params({"Queue": "sales", "ServicelevelPerf": "nan"})


def test_queue_copy_has_its_own_member_list():
    queue = Queue("sales", members=[Member("SIP/1")])

    copy = queue.copy()
    copy.members.append(Member("SIP/2"))

    assert len(queue.members) == 1
    assert queue.member_index("SIP/1") == 0
    assert queue.member_index("SIP/2") is None


def test_to_dict_uses_camel_case_keys():
    member = Member.from_event(STATUS_EVENT)
    data = Queue("sales", members=[member]).to_dict()

    assert data["servicelevelperf"] == 0.0
    assert data["members"][0]["stateInterface"] == "SIP/100"
    assert data["members"][0]["callsTaken"] == 5
    assert data["members"][0]["wrapupTime"] == 15

    agent = Agent(member, ("sales", "support")).to_dict()
    assert agent["queue"] == "sales"
    assert agent["queues"] == ["sales", "support"]
    assert agent["extension"] == "SIP/100"
