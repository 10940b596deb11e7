import pytest

from shared.protocol import (
    Accept,
    BandMachine,
    CellMachine,
    CellState,
    ConnRole,
    ExchangeState,
    HTTPReqBody,
    HTTPReqEnd,
    HTTPReqHead,
    HTTPResBody,
    HTTPResEnd,
    HTTPResHead,
    IAm,
    Mount,
    MountPoint,
    NeedBand,
    NotMountOwner,
    ProtocolViolation,
    RoleViolation,
    Unmount,
    normalize_path,
    on_frame,
)
from shared.protocol.state import (
    CloseBands,
    ExchangeComplete,
    IssueSession,
    OpenBands,
    RegisterMount,
    ReleaseMount,
    SessionAccepted,
    role_from_handshake,
)


def _authenticated() -> CellMachine:
    machine = CellMachine()
    machine.feed(IAm(conn_kind=ConnRole.CELL))
    machine.feed(Accept(uuid="session-1"))
    return machine


def _exchange_frames():
    return [
        HTTPReqHead(method="POST", path="/upload"),
        HTTPReqBody(data=b"a"),
        HTTPReqBody(data=b"b"),
        HTTPReqEnd(),
        HTTPResHead(status_code=200),
        HTTPResBody(data=b"ok"),
        HTTPResEnd(),
    ]


def test_handshake_fixes_role():
    assert role_from_handshake(IAm(conn_kind=0)) is ConnRole.CELL
    assert role_from_handshake(IAm(conn_kind=1, uuid="s")) is ConnRole.BAND
    with pytest.raises(ProtocolViolation):
        role_from_handshake(IAm(conn_kind=7))
    with pytest.raises(ProtocolViolation):
        role_from_handshake(Mount(host="a", path="/"))


def test_authentication_flow():
    machine = CellMachine()
    assert machine.feed(IAm(conn_kind=ConnRole.CELL)) == [IssueSession()]
    assert machine.state is CellState.AWAITING_ACCEPT
    assert machine.feed(Accept(uuid="session-1")) == [SessionAccepted("session-1")]
    assert machine.state is CellState.AUTHENTICATED
    assert machine.session_id == "session-1"


def test_second_iam_is_rejected():
    machine = CellMachine()
    machine.feed(IAm(conn_kind=ConnRole.CELL))
    with pytest.raises(ProtocolViolation):
        machine.feed(IAm(conn_kind=ConnRole.CELL))

    machine = _authenticated()
    with pytest.raises(ProtocolViolation):
        machine.feed(IAm(conn_kind=ConnRole.CELL))


def test_mount_requires_authentication():
    with pytest.raises(ProtocolViolation):
        CellMachine().feed(Mount(host="example.com", path="/"))


def test_band_iam_on_cell_connection_is_rejected():
    with pytest.raises(ProtocolViolation):
        CellMachine().feed(IAm(conn_kind=ConnRole.BAND, uuid="x"))


def test_mount_and_unmount():
    machine = _authenticated()
    mount = MountPoint("example.com", "/api")

    assert machine.feed(Mount(host="example.com", path="/api")) == [RegisterMount(mount)]
    assert machine.state is CellState.MOUNTED
    assert machine.mounts == {mount}

    assert machine.feed(Unmount(host="example.com", path="/api")) == [ReleaseMount(mount)]
    assert machine.state is CellState.AUTHENTICATED
    assert machine.mounts == set()


def test_unmount_of_foreign_mount_is_rejected():
    machine = _authenticated()
    machine.feed(Mount(host="example.com", path="/api"))
    with pytest.raises(NotMountOwner):
        machine.feed(Unmount(host="example.com", path="/other"))
    assert machine.state is CellState.MOUNTED


def test_mount_spellings_name_one_mount():
    machine = _authenticated()
    mount = MountPoint("example.com", "/api")

    assert machine.feed(Mount(host="example.com", path="/api")) == [RegisterMount(mount)]
    assert machine.feed(Mount(host="Example.com", path="/api/")) == [RegisterMount(mount)]
    assert machine.mounts == {mount}

    assert machine.feed(Unmount(host="EXAMPLE.COM", path="/api//")) == [ReleaseMount(mount)]
    assert machine.state is CellState.AUTHENTICATED
    with pytest.raises(NotMountOwner):
        machine.feed(Unmount(host="Example.com", path="/api/"))


def test_unmount_accepts_normalized_path():
    machine = _authenticated()
    machine.feed(Mount(host="", path="/api/"))
    assert machine.feed(Unmount(host="", path="api")) == [ReleaseMount(MountPoint("", "/api"))]
    assert machine.mounts == set()


@pytest.mark.parametrize(
    "raw, expected",
    [("", "/"), ("/", "/"), ("//", "/"), ("api", "/api"), ("/api/", "/api"), ("/a/b/", "/a/b")],
)
def test_normalize_path(raw, expected):
    assert normalize_path(raw) == expected


def test_need_band_opens_bands():
    machine = _authenticated()
    assert machine.feed(NeedBand(count=2)) == [OpenBands(2)]
    assert machine.state is CellState.AUTHENTICATED


def test_close_releases_mounts_and_is_terminal():
    machine = _authenticated()
    machine.feed(Mount(host="b.example", path="/"))
    machine.feed(Mount(host="a.example", path="/"))

    effects = machine.close()
    assert effects == [
        ReleaseMount(MountPoint("a.example", "/")),
        ReleaseMount(MountPoint("b.example", "/")),
        CloseBands(),
    ]
    assert machine.closed
    assert machine.close() == []
    with pytest.raises(ProtocolViolation):
        machine.feed(NeedBand(count=1))


def test_cell_connection_rejects_band_kinds():
    with pytest.raises(RoleViolation):
        _authenticated().feed(HTTPReqHead(method="GET", path="/"))


def test_band_connection_rejects_cell_kinds():
    with pytest.raises(RoleViolation):
        BandMachine().feed(Mount(host="example.com", path="/"))


def test_exchange_reassembles_request_and_response():
    machine = BandMachine()
    effects = []
    for message in _exchange_frames():
        effects.extend(machine.feed(message))

    completed = [effect.exchange for effect in effects if isinstance(effect, ExchangeComplete)]
    assert len(completed) == 1
    exchange = completed[0]
    assert bytes(exchange.request_body) == b"ab"
    assert exchange.status_code == 200
    assert bytes(exchange.response_body) == b"ok"
    assert machine.state is ExchangeState.IDLE
    assert machine.exchange is None
    assert machine.completed == 1


def test_band_is_reusable_after_exchange():
    machine = BandMachine()
    for _ in range(2):
        for message in _exchange_frames():
            machine.feed(message)
    assert machine.completed == 2
    assert machine.idle


def test_exchange_without_bodies():
    machine = BandMachine()
    for message in (HTTPReqHead(method="GET", path="/"), HTTPReqEnd(), HTTPResHead(status_code=204), HTTPResEnd()):
        machine.feed(message)
    assert machine.last_exchange.request_body == bytearray()
    assert machine.last_exchange.status_code == 204


def test_response_body_before_head_is_rejected():
    with pytest.raises(ProtocolViolation):
        BandMachine().feed(HTTPResBody(data=b"early"))


@pytest.mark.parametrize(
    "late",
    [HTTPReqBody(data=b"late"), HTTPReqEnd()],
    ids=["body-after-end", "second-end"],
)
def test_request_leg_after_end_is_rejected(late):
    machine = BandMachine()
    machine.feed(HTTPReqHead(method="POST", path="/"))
    machine.feed(HTTPReqEnd())
    with pytest.raises(ProtocolViolation):
        machine.feed(late)


def test_response_head_rules():
    machine = BandMachine()
    machine.feed(HTTPReqHead(method="GET", path="/"))
    with pytest.raises(ProtocolViolation):
        machine.feed(HTTPResHead(status_code=200))
    machine.feed(HTTPReqEnd())
    machine.feed(HTTPResHead(status_code=200))
    with pytest.raises(ProtocolViolation):
        machine.feed(HTTPResHead(status_code=200))


def test_second_request_head_while_open_is_rejected():
    machine = BandMachine()
    machine.feed(HTTPReqHead(method="GET", path="/"))
    with pytest.raises(ProtocolViolation):
        machine.feed(HTTPReqHead(method="GET", path="/"))


def test_abort_discards_partial_exchange():
    machine = BandMachine()
    machine.feed(HTTPReqHead(method="GET", path="/"))
    machine.feed(HTTPReqBody(data=b"partial"))
    dropped = machine.abort()
    assert bytes(dropped.request_body) == b"partial"
    assert machine.idle
    machine.feed(HTTPReqHead(method="GET", path="/again"))


def test_closed_band_rejects_frames():
    machine = BandMachine()
    machine.close()
    with pytest.raises(ProtocolViolation):
        machine.feed(HTTPReqHead(method="GET", path="/"))


def test_on_frame_is_pure():
    state, effects = on_frame(ConnRole.BAND, ExchangeState.IDLE, HTTPReqHead(method="GET", path="/"))
    assert state is ExchangeState.REQ_HEAD_RECEIVED
    assert len(effects) == 1

    mount = MountPoint("h", "/p")
    state, effects = on_frame(ConnRole.CELL, CellState.MOUNTED, Unmount(host="h", path="/p"), [mount])
    assert state is CellState.AUTHENTICATED
    assert effects == [ReleaseMount(mount)]
