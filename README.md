# dualink

Building blocks of a software KVM: share one keyboard and mouse between
several machines on a local network, and keep their clipboards in sync.

## What is in the package

- `dualink.ipc` – the data model shared by the service and its frontends:
  `Position`, `Status`, `ClientConfig`, `ClientState`, the error types
  (`IpcError`, `IpcConnectionError`, `ConnectionTimeoutError`,
  `SocketPathError`, `IpcListenerCreationError`, `AlreadyRunningError`,
  `PositionParseError`) and `default_socket_path()`, which returns
  `$XDG_RUNTIME_DIR/dualink.sock`, or `$HOME/Library/Caches/dualink.sock`
  on macOS.
- `dualink.messages` – frontend events (`CreatedEvent`, `EnumerateEvent`,
  `DeviceConnectedEvent`, ...) and requests (`CreateRequest`,
  `ActivateRequest`, `UpdatePositionRequest`, ...), serialized as one JSON
  document per line with `encode_event`, `decode_event`, `encode_request`
  and `decode_request`. Invalid lines raise `IpcError`.
- `dualink.client` – `ClientManager`, the registry of configured remote
  clients with their addresses, positions and activation state. Handles of
  removed clients are reused.
- `dualink.proto` – the binary network protocol: big-endian single events
  of at most 21 bytes (`encode_event`, `decode_event`) and batch packets of
  up to 254 events that fit in 1200 bytes (`encode_batch`,
  `decode_packet`). Unknown event ids or positions raise `ProtocolError`.
- `dualink.connect` – blocking frontend connection: `connect()` returns a
  `FrontendEventReader` and a `FrontendRequestWriter`, retrying with
  exponential back-off (capped at one second) until the service answers.
- `dualink.connect_async` – the asyncio counterpart, `connect_async(timeout)`,
  which raises `ConnectionTimeoutError` once the timeout passes.
- `dualink.listen` – `AsyncFrontendListener`, the service side of the local
  socket. It refuses to start with `AlreadyRunningError` if another
  instance answers on the socket, removes a stale socket file, yields a
  `SyncRequest` for every new frontend followed by its requests, and
  `broadcast()`s events to all connected frontends.
- `dualink.provider` – the `ClipboardProvider` interface, `ClipboardFormat`
  and `DummyClipboard`, an always-empty clipboard.
- `dualink.macos_clipboard` – `MacOSClipboard`, which uses `pbcopy`,
  `pbpaste`, `osascript` and `sips` and exchanges images as PNG.
- `dualink.clipboard` – `ClipboardWatcher` and `poll_clipboard`, which poll
  a provider and report `ClipboardNotification`s; `platform_clipboard()`
  returns `MacOSClipboard` on macOS and `DummyClipboard` elsewhere.
- `dualink.clipboard_sync` – clipboard exchange over TCP on the service
  port plus one, as length-prefixed (u32, big-endian) JSON messages.
  `ClipboardSync` runs the server and hands out `RemoteChanged`,
  `RemoteData` and `RemoteImageData` events; requests from peers are
  answered with the local clipboard. Messages larger than
  `max_message_size(max_image_size)` close the connection.

## Installation

```
pip install .
```

No third-party libraries are needed at run time.

## Command line

With a service listening on the local socket, `dualink-cli` sends it
requests:

```
dualink-cli list
dualink-cli add-client --hostname laptop --port 4242 --ips 192.168.1.20 --enter-hook "notify-send entered"
dualink-cli remove-client 0
dualink-cli activate 0
dualink-cli deactivate 0
dualink-cli set-host 0 laptop
dualink-cli set-port 0 4243
dualink-cli set-position 0 right
dualink-cli set-ips 0 192.168.1.20 192.168.1.21
dualink-cli enable-capture
dualink-cli enable-emulation
dualink-cli authorize-key "my laptop" <sha256-fingerprint>
dualink-cli remove-authorized-key <sha256-fingerprint>
dualink-cli save-config
```

`--ips` may be given more than once. `set-host` without a host clears the
hostname. `list` prints one line per client, for example
`id 0: laptop:4242 (right) active: true, ips: {192.168.1.20}`.

If the service cannot be reached within half a second, the command reports
that it may not be running and exits with status 1.

## Library use

```python
from dualink import proto

packet = proto.encode_batch([proto.Ping(), proto.Leave(0)])
events = proto.decode_packet(packet)
```

```python
from dualink.client import ClientManager
from dualink.ipc import Position

clients = ClientManager()
handle = clients.add_client()
clients.set_pos(handle, Position.RIGHT)
clients.activate_client(handle)
assert clients.client_at(Position.RIGHT) == handle
```

## What the package does not do

- It has no service program: nothing here captures local input, emulates
  input on the receiving machine, or carries protocol events between
  devices over the network. `dualink.proto` only encodes and decodes them.
- There is no graphical frontend; `dualink-cli` is the only command.
- The clipboard server notices local clipboard changes but does not push
  them to peers; it only receives what peers send and answers their
  requests.
- Clipboard access exists on macOS only; on other systems the clipboard
  is always empty.

## Tests

```
pip install .[test]
pytest
```