import pytest

from dsslab.model import Event, EventKind, Model, Operation


class Counter(Model):
    def init(self):
        return 0

    def step(self, state, request, response):
        return True, state + request


def test_model_is_abstract():
    with pytest.raises(TypeError):
        Model()


def test_default_partition_keeps_history_whole():
    history = [Operation(1, 0, None, 1), Operation(2, 2, None, 3)]
    parts = Counter().partition(history)
    assert parts == [history]


def test_default_partition_event_keeps_history_whole():
    history = [Event(EventKind.CALL, 1, 0), Event(EventKind.RETURN, None, 0)]
    parts = Counter().partition_event(history)
    assert parts == [history]


def test_default_equal_uses_equality():
    model = Counter()
    assert Model.equal(model, 3, 3)
    assert not Model.equal(model, 3, 4)
    assert Model.equal(model, "abc", "abc")
    assert not Model.equal(model, "abc", "ab")


def test_step_and_init():
    model = Counter()
    history = [Operation(5, 0, None, 1), Operation(2, 2, None, 3)]
    state = model.init()
    for part in model.partition(history):
        for op in part:
            ok, state = model.step(state, op.input, op.output)
            assert ok
    assert state == 7


def test_operation_and_event_fields():
    op = Operation(input="a", call=1, output="b", finish=2)
    assert (op.input, op.call, op.output, op.finish) == ("a", 1, "b", 2)
    event = Event(EventKind.RETURN, "b", 7)
    assert event.kind is EventKind.RETURN
    assert event.id == 7