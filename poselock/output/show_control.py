"""
Show-control relay.

When a slot locks a new pose, the pose's bundle of media-server actions
(layer -> media clip) is sent to the media server as OSC: one
/md8key/ctrl_layer_media/<layer> message per action with the media clip
as an int argument. Delivery is best-effort UDP: a lost or failed send is
logged and the installation keeps running.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

from pythonosc.udp_client import SimpleUDPClient

from ..config import RELAY_OSC_ADDRESS, ShowControlConfig
from ..pose.classifier import PoseLabel

logger = logging.getLogger(__name__)

Action = Dict[str, int]
OscMessage = Tuple[str, int]


def bundle_key(actions: List[Action]) -> str:
    """Order-independent identity of a bundle, e.g. "2:8|3:9|4:1|5:2"."""
    ordered = sorted(actions, key=lambda a: (a["layer"], a["media"]))
    return "|".join(f"{a['layer']}:{a['media']}" for a in ordered)


def osc_messages(actions: List[Action], address: str = RELAY_OSC_ADDRESS) -> List[OscMessage]:
    """(address, media) pairs for a bundle, in action order."""
    return [(address.format(layer=a["layer"]), int(a["media"])) for a in actions]


class MessageSink(Protocol):
    def send(self, address: str, value: int) -> None: ...

    def close(self) -> None: ...


class OscSink:
    """Fire-and-forget OSC messages to the media server."""

    def __init__(self, host: str, port: int):
        self.target = (host, int(port))
        self._client: Optional[SimpleUDPClient] = None

    def _get_client(self) -> SimpleUDPClient:
        if self._client is None:
            self._client = SimpleUDPClient(*self.target)
        return self._client

    def send(self, address: str, value: int) -> None:
        try:
            self._get_client().send_message(address, value)
        except OSError as e:
            logger.warning("OSC send %s to %s:%d failed: %s", address, *self.target, e)

    def close(self) -> None:
        # SimpleUDPClient has no close(); its socket goes with the client
        self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class ShowControlRelay:
    """
    Forwards locked-pose bundles to a sink with duplicate suppression.

    The same bundle is not re-sent within the debounce window; a different
    bundle always goes out immediately.
    """

    def __init__(self, config: Optional[ShowControlConfig] = None, sink: Optional[MessageSink] = None):
        """
        Initialize relay.

        Args:
            config: Target, OSC address pattern, debounce window and pose-to-bundle table
            sink: Transport; an OscSink to config.host:config.port if None
        """
        self.config = config or ShowControlConfig()
        self.sink = sink if sink is not None else OscSink(self.config.host, self.config.port)
        self.last_key: Optional[str] = None
        self.last_sent_at: Optional[float] = None
        self.sent_count = 0

    def bundle_for(self, label: Any) -> List[Action]:
        parsed = PoseLabel.parse(label)
        return list(self.config.bundles.get(parsed.value, []))

    def notify(self, label: Any, now_ms: float) -> bool:
        """
        Hand a newly locked label to show control.

        Args:
            label: Locked pose label
            now_ms: Current wall-clock time in milliseconds

        Returns:
            True if the bundle was sent
        """
        if not self.config.enabled:
            return False
        actions = self.bundle_for(label)
        if not actions:
            logger.debug("No show-control bundle for %s", label)
            return False

        key = bundle_key(actions)
        if (key == self.last_key and self.last_sent_at is not None
                and now_ms - self.last_sent_at < self.config.debounce_ms):
            logger.debug("Debounced bundle %s", key)
            return False

        for address, media in osc_messages(actions, self.config.osc_address):
            self.sink.send(address, media)
        self.last_key = key
        self.last_sent_at = now_ms
        self.sent_count += 1
        logger.info("Sent show-control bundle for %s: %s", PoseLabel.parse(label).value, key)
        return True

    def close(self) -> None:
        self.sink.close()
