import socket

import pytest
from pythonosc.osc_message import OscMessage

from poselock.config import POSE_TO_BUNDLE, ShowControlConfig
from poselock.output.show_control import OscSink, ShowControlRelay, bundle_key, osc_messages


class RecordingSink:
    def __init__(self):
        self.messages = []
        self.closed = False

    def send(self, address, value):
        self.messages.append((address, value))

    def close(self):
        self.closed = True


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def relay(sink):
    return ShowControlRelay(ShowControlConfig(), sink=sink)


@pytest.fixture
def receiver():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


def receive(sock, count):
    """Decode the next count OSC packets as (address, params)."""
    out = []
    for _ in range(count):
        data, _ = sock.recvfrom(4096)
        msg = OscMessage(data)
        out.append((msg.address, msg.params))
    return out


def test_bundle_key_ignores_action_order():
    a = [{"layer": 3, "media": 9}, {"layer": 2, "media": 8}]
    b = [{"layer": 2, "media": 8}, {"layer": 3, "media": 9}]
    assert bundle_key(a) == bundle_key(b) == "2:8|3:9"


def test_one_layer_media_message_per_action():
    actions = [{"layer": 2, "media": 8}, {"layer": 5, "media": 2}]
    assert osc_messages(actions) == [
        ("/md8key/ctrl_layer_media/2", 8),
        ("/md8key/ctrl_layer_media/5", 2),
    ]
    assert osc_messages(actions, "/cue/{layer}") == [("/cue/2", 8), ("/cue/5", 2)]


def test_default_table_covers_every_pose():
    assert set(POSE_TO_BUNDLE) == {"star", "arms_up", "side_arms", "zigzag", "arms_out", "rounded"}
    for actions in POSE_TO_BUNDLE.values():
        assert [a["layer"] for a in actions] == [2, 3, 4, 5]


def test_default_target_is_media_server_osc_port():
    cfg = ShowControlConfig()
    assert (cfg.host, cfg.port) == ("127.0.0.1", 8000)
    assert cfg.osc_address == "/md8key/ctrl_layer_media/{layer}"


def test_notify_sends_configured_bundle(relay, sink):
    assert relay.notify("star", 0)
    assert sink.messages == osc_messages(POSE_TO_BUNDLE["star"])
    assert relay.sent_count == 1


def test_identical_bundle_is_debounced(relay, sink):
    assert relay.notify("star", 0)
    assert not relay.notify("star", 599)
    assert relay.notify("star", 600)
    assert len(sink.messages) == 2 * len(POSE_TO_BUNDLE["star"])


def test_different_bundle_goes_out_immediately(relay):
    relay.notify("star", 0)
    assert relay.notify("zigzag", 10)
    assert relay.notify("star", 20)
    assert relay.sent_count == 3


def test_unknown_label_and_disabled_relay_send_nothing(sink):
    relay = ShowControlRelay(ShowControlConfig(), sink=sink)
    assert not relay.notify("neutral", 0)
    assert not relay.notify("bogus", 0)

    disabled = ShowControlRelay(ShowControlConfig(enabled=False), sink=sink)
    assert not disabled.notify("star", 0)
    assert sink.messages == []


def test_close_closes_sink(relay, sink):
    relay.close()
    assert sink.closed


def test_osc_sink_sends_int_media_argument(receiver):
    port = receiver.getsockname()[1]
    with OscSink("127.0.0.1", port) as sink:
        sink.send("/md8key/ctrl_layer_media/2", 8)
        assert receive(receiver, 1) == [("/md8key/ctrl_layer_media/2", [8])]


def test_relay_reaches_media_server_over_udp(receiver):
    port = receiver.getsockname()[1]
    relay = ShowControlRelay(ShowControlConfig(port=port))
    try:
        assert relay.notify("star", 0)
        received = receive(receiver, len(POSE_TO_BUNDLE["star"]))
    finally:
        relay.close()
    expected = [(f"/md8key/ctrl_layer_media/{a['layer']}", [a["media"]]) for a in POSE_TO_BUNDLE["star"]]
    assert received == expected


def test_osc_sink_logs_send_errors(caplog):
    sink = OscSink("256.0.0.1", 9)
    sink.send("/md8key/ctrl_layer_media/2", 8)
    sink.close()
    assert "failed" in caplog.text
