# dsslab

Building blocks for distributed-systems labs, in pure Python with no
third-party runtime dependencies:

- **A message codec** (`dsslab.codec`) that writes and reads the protobuf
  wire format for dataclass messages whose fields are declared with
  `field(...)`.
- **A simulated RPC network** (`dsslab.network`, `dsslab.server`,
  `dsslab.client`, `dsslab.service`) running on asyncio. It can drop, delay
  and reorder requests and replies, disable clients and kill servers, so you
  can see how a protocol behaves when the network misbehaves.
- **A linearizability checker** (`dsslab.checker`) for histories of
  operations or events, with a ready-made key/value model (`dsslab.models`).

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Messages

Write a dataclass that subclasses `dsslab.codec.Message` and declare every
field with `field(kind, tag, repeated=False, enum=None)`, where `kind` is a
`FieldKind` (int32, uint64, sint64, bool, enum, fixed and floating types,
string, bytes). Repeated numeric fields are written packed.

- `encode(message)` returns the bytes and raises `EncodeError` for a value
  of the wrong type or out of range.
- `decode(message_type, data)` returns a new message and raises
  `DecodeError` on malformed input; unknown fields are skipped.
- `message.encoded_len()` gives the encoded size and `message.clear()`
  resets every field to its default.

Fields that hold their default value are not written, so decoding empty
bytes gives a default message. `dsslab.fixture` has a complete example:
the message `Msg` and its enum `MsgType`, with `Msg.type_enum()` and
`Msg.set_type()`.

## RPC over a simulated network

1. Subclass `dsslab.service.Service`, naming the service with a class
   keyword (`class Junk(Service, name="junk")`; by default the lower-cased
   class name), and mark its async methods with
   `@rpc(request_type, reply_type)`.
2. Register an instance on a `ServerBuilder` with
   `add_service(service, builder)`; registering a name twice raises
   `OtherError`. `builder.build()` gives a `Server`.
3. Inside a running event loop, create a `Network`, `add_server` the
   server, and `create_client(name)` for each caller. A client starts
   disabled and unconnected: `connect` it to a server and `enable` it
   before its calls can go through.
4. Wrap the client in the generated client class, `YourService.Client(client)`,
   and await its methods, which are named after the RPC methods.

Calls fail with subclasses of `dsslab.errors.RpcError`:

- `RpcTimeout` when the network swallows the request or the reply;
- `StoppedError` when the server was deleted while serving the call or the
  network was closed;
- `RecvError` when the reply was dropped without an answer;
- `UnimplementedError` for an unknown service or method;
- `EncodeFailed` / `DecodeFailed` for codec problems;
- `OtherError` for other failures described by a message.

`RpcHooks` set with `Client.set_hooks` see every request before dispatch
and every reply (or error) after it, and may raise an `RpcError` to reject
either.

Network behaviour is controlled with `set_reliable`, `set_long_delays` and
`set_long_reordering`; `count(server_name)` and `total_count()` report how
many RPCs were seen. `Network(autostart=False)` queues RPCs instead of
serving them, so a test can take them one by one with `next_rpc()` or start
serving with `start()`. `close()` stops the network. Pass `rng=` a
`random.Random` to make drops and delays repeatable.

A small end-to-end example lives in `dsslab.echo`. Run it with:

```
dsslab-echo
```

It starts an echo server on a fresh network, sends one ping (777, or the
number given as argument) and prints the reply. `run_echo(x)` does the
same from Python and returns the reply.

## Checking linearizability

Describe your system as a `dsslab.model.Model` (`init` and `step`, and
optionally `partition`, `partition_event` and `equal`), record a history of
`Operation`s or `Event`s, and call `check_operations(model, history, timeout)`
or `check_events(model, history, timeout)` from `dsslab.checker`. Both
return `True` when the history is linearizable. The timeout is in seconds;
0 or `None` waits for the answer however long it takes, and a check cut
short by its timeout reports `True`, which may be a false positive.

`KvModel` in `dsslab.models` models a key/value store with `KvOp` get, put
and append operations, partitioned by key. `parse_kv_log(lines)` turns a
text log of invoke/ok records into the event history that `check_events`
expects, and raises `ValueError` on a line it does not recognise.

## What it does not do

Everything runs in one process: the network is simulated on an asyncio
event loop and never opens sockets. There is no persistent storage, and no
transactional key/value server or client is included; the services you
run are the ones you write.