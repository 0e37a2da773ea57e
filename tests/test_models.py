import pytest

from dsslab.checker import check_events, check_operations
from dsslab.model import Event, EventKind, Operation
from dsslab.models import KvInput, KvModel, KvOp, KvOutput, parse_kv_log


def invoke_put(proc, key, value):
    return f'{{:process {proc}, :type :invoke, :f :put, :key "{key}", :value "{value}"}}'


def ok_put(proc, key, value):
    return f'{{:process {proc}, :type :ok, :f :put, :key "{key}", :value "{value}"}}'


def invoke_append(proc, key, value):
    return f'{{:process {proc}, :type :invoke, :f :append, :key "{key}", :value "{value}"}}'


def ok_append(proc, key, value):
    return f'{{:process {proc}, :type :ok, :f :append, :key "{key}", :value "{value}"}}'


def invoke_get(proc, key):
    return f'{{:process {proc}, :type :invoke, :f :get, :key "{key}", :value nil}}'


def ok_get(proc, key, value):
    return f'{{:process {proc}, :type :ok, :f :get, :key "{key}", :value "{value}"}}'


def check_kv(lines, correct):
    events = parse_kv_log(lines)
    assert check_events(KvModel(), events) is correct


def test_init_is_empty():
    assert KvModel().init() == ""


def test_step_get_matches_state():
    assert KvModel().step("x", KvInput(KvOp.GET, "k"), KvOutput("x")) == (True, "x")


def test_step_get_mismatch():
    assert KvModel().step("x", KvInput(KvOp.GET, "k"), KvOutput("y")) == (False, "x")


def test_step_put_and_append():
    model = KvModel()
    assert model.step("old", KvInput(KvOp.PUT, "k", "new"), KvOutput()) == (True, "new")
    assert model.step("ab", KvInput(KvOp.APPEND, "k", "c"), KvOutput()) == (True, "abc")


def test_partition_groups_by_key():
    ops = [
        Operation(KvInput(KvOp.PUT, "a", "1"), 0, KvOutput(), 1),
        Operation(KvInput(KvOp.PUT, "b", "2"), 2, KvOutput(), 3),
        Operation(KvInput(KvOp.GET, "a"), 4, KvOutput("1"), 5),
    ]
    parts = KvModel().partition(ops)
    assert sorted(len(p) for p in parts) == [1, 2]
    for part in parts:
        assert len({op.input.key for op in part}) == 1


def test_partition_event_follows_call_key():
    events = [
        Event(EventKind.CALL, KvInput(KvOp.PUT, "a", "1"), 0),
        Event(EventKind.CALL, KvInput(KvOp.PUT, "b", "2"), 1),
        Event(EventKind.RETURN, KvOutput(), 1),
        Event(EventKind.RETURN, KvOutput(), 0),
    ]
    parts = KvModel().partition_event(events)
    assert len(parts) == 2
    for part in parts:
        assert len({e.id for e in part}) == 1
        assert [e.kind for e in part] == [EventKind.CALL, EventKind.RETURN]


def test_partition_event_orphan_return():
    with pytest.raises(ValueError):
        KvModel().partition_event([Event(EventKind.RETURN, KvOutput(), 3)])


def test_parse_kv_log_events():
    events = parse_kv_log([invoke_put(4, "k", "v") + "\n", ok_put(4, "k", "v"), invoke_get(2, "k"), ok_get(2, "k", "v")])
    assert events == [
        Event(EventKind.CALL, KvInput(KvOp.PUT, "k", "v"), 0),
        Event(EventKind.RETURN, KvOutput(""), 0),
        Event(EventKind.CALL, KvInput(KvOp.GET, "k", ""), 1),
        Event(EventKind.RETURN, KvOutput("v"), 1),
    ]


def test_parse_kv_log_pending_call_gets_empty_return():
    events = parse_kv_log([invoke_append(1, "k", "z")])
    assert events == [
        Event(EventKind.CALL, KvInput(KvOp.APPEND, "k", "z"), 0),
        Event(EventKind.RETURN, KvOutput(""), 0),
    ]


def test_parse_kv_log_rejects_unknown_line():
    with pytest.raises(ValueError):
        parse_kv_log(["{:process 0, :type :fail, :f :get}"])


def test_parse_kv_log_return_without_call():
    with pytest.raises(ValueError):
        parse_kv_log([ok_get(7, "k", "v")])


def test_kv_1client_ok():
    check_kv(
        [
            invoke_put(0, "0", "x 0 0 y"),
            ok_put(0, "0", "x 0 0 y"),
            invoke_append(0, "0", "x 0 1 y"),
            ok_append(0, "0", "x 0 1 y"),
            invoke_get(0, "0"),
            ok_get(0, "0", "x 0 0 yx 0 1 y"),
        ],
        True,
    )


def test_kv_1client_bad():
    check_kv(
        [
            invoke_put(0, "0", "x 0 0 y"),
            ok_put(0, "0", "x 0 0 y"),
            invoke_get(0, "0"),
            ok_get(0, "0", "wrong"),
        ],
        False,
    )


def test_kv_many_clients_ok():
    check_kv(
        [
            invoke_put(0, "1", "a"),
            invoke_get(1, "1"),
            ok_get(1, "1", ""),
            ok_put(0, "1", "a"),
            invoke_append(2, "2", "b"),
            invoke_get(3, "2"),
            ok_get(3, "2", "b"),
            ok_append(2, "2", "b"),
            invoke_get(1, "1"),
            ok_get(1, "1", "a"),
        ],
        True,
    )


def test_kv_many_clients_bad():
    check_kv(
        [
            invoke_put(0, "1", "a"),
            ok_put(0, "1", "a"),
            invoke_append(1, "1", "b"),
            ok_append(1, "1", "b"),
            invoke_put(2, "2", "c"),
            ok_put(2, "2", "c"),
            invoke_get(0, "1"),
            ok_get(0, "1", "a"),
        ],
        False,
    )


def test_kv_crashed_put_may_take_effect():
    check_kv([invoke_put(0, "k", "v"), invoke_get(1, "k"), ok_get(1, "k", "v")], True)


def test_check_operations_with_kv_model():
    ok_history = [
        Operation(KvInput(KvOp.PUT, "a", "1"), 0, KvOutput(), 10),
        Operation(KvInput(KvOp.GET, "a"), 5, KvOutput(""), 7),
        Operation(KvInput(KvOp.GET, "b"), 11, KvOutput(""), 12),
    ]
    bad_history = [
        Operation(KvInput(KvOp.PUT, "a", "1"), 0, KvOutput(), 1),
        Operation(KvInput(KvOp.GET, "a"), 2, KvOutput(""), 3),
    ]
    assert check_operations(KvModel(), ok_history) is True
    assert check_operations(KvModel(), bad_history) is False