"""테스트용 가짜 WebRTC 연결과 메시지 기록기.

FakePeerConnection은 aiortc RTCPeerConnection과 같은 메서드/이벤트 이름을
가지며, 같은 FakeNetwork 안의 연결끼리 SDP 대신 연결 ID로 서로를 찾습니다.
네트워크 없이 offer/answer/ICE 흐름과 데이터 채널을 검증할 수 있습니다.
"""

import asyncio
import itertools
import time
from typing import Dict, List, Optional

from aiortc import RTCSessionDescription
from pyee.asyncio import AsyncIOEventEmitter

from modules.webrtc import ConnectionConfig, MediaConfig

# 장치 없이 플레이스홀더 트랙만 사용
NO_DEVICES = MediaConfig(VIDEO_DEVICE=None, VIDEO_FORMAT=None, AUDIO_DEVICE=None, AUDIO_FORMAT=None)

FAST = ConnectionConfig(NEGOTIATION_TIMEOUT=5)

CANDIDATE = {
    "candidate": "candidate:842163049 1 udp 1677729535 192.168.1.2 54400 typ srflx raddr 0.0.0.0 rport 0 generation 0",
    "sdpMid": "0",
    "sdpMLineIndex": 0,
}


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """predicate가 참이 될 때까지 이벤트 루프를 돌립니다."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition was not met in time")
        await asyncio.sleep(interval)


async def settle(delay: float = 0.05) -> None:
    """대기 중인 메시지/태스크가 모두 처리되도록 잠시 양보합니다."""
    await asyncio.sleep(delay)


class FakeSender:
    def __init__(self, track):
        self.track = track
        self.replaced = []

    def replaceTrack(self, track):
        self.track = track
        self.replaced.append(track)


class FakeDataChannel(AsyncIOEventEmitter):
    def __init__(self, label: str, ordered: bool = True):
        super().__init__()
        self.label = label
        self.ordered = ordered
        self.readyState = "connecting"
        self.peer: Optional["FakeDataChannel"] = None
        self.sent: List[str] = []

    def send(self, data):
        if self.readyState != "open":
            raise RuntimeError("data channel is not open")
        self.sent.append(data)
        asyncio.get_running_loop().call_soon(self.peer._deliver, data)

    def _deliver(self, data):
        if self.readyState == "open":
            self.emit("message", data)

    def close(self):
        if self.readyState == "closed":
            return
        self.readyState = "closed"
        self.emit("close")


class FakePeerConnection(AsyncIOEventEmitter):
    """RTCPeerConnection 대역."""

    def __init__(self, network: "FakeNetwork", pc_id: str):
        super().__init__()
        self.network = network
        self.pc_id = pc_id
        self.connectionState = "new"
        self.signalingState = "stable"
        self.localDescription: Optional[RTCSessionDescription] = None
        self.remoteDescription: Optional[RTCSessionDescription] = None
        self.senders: List[FakeSender] = []
        self.data_channels: List[FakeDataChannel] = []
        self.added_candidates = []
        self.remote: Optional["FakePeerConnection"] = None

    def addTrack(self, track):
        sender = FakeSender(track)
        self.senders.append(sender)
        return sender

    def getSenders(self):
        return list(self.senders)

    def createDataChannel(self, label, ordered=True):
        channel = FakeDataChannel(label, ordered)
        self.data_channels.append(channel)
        return channel

    async def createOffer(self):
        self.network.offers.append(self.pc_id)
        return RTCSessionDescription(sdp=f"fake {self.pc_id} offer", type="offer")

    async def createAnswer(self):
        if self.remoteDescription is None or self.remoteDescription.type != "offer":
            raise RuntimeError("cannot answer without a remote offer")
        self.network.answers.append(self.pc_id)
        return RTCSessionDescription(sdp=f"fake {self.pc_id} answer", type="answer")

    async def setLocalDescription(self, description):
        self.localDescription = description
        self.signalingState = "have-local-offer" if description.type == "offer" else "stable"
        await asyncio.sleep(0)

    async def setRemoteDescription(self, description):
        if self.connectionState == "closed":
            raise RuntimeError("connection is closed")
        self.remoteDescription = description
        self.remote = self.network.lookup(description.sdp)
        if description.type == "offer":
            self.signalingState = "have-remote-offer"
        else:
            self.signalingState = "stable"
            self.network.connect(offerer=self, answerer=self.remote)
        await asyncio.sleep(0)

    async def addIceCandidate(self, candidate):
        if self.remoteDescription is None:
            raise RuntimeError("remote description is not set")
        self.added_candidates.append(candidate)

    async def close(self):
        if self.connectionState == "closed":
            return
        self.connectionState = "closed"
        self.signalingState = "closed"
        for channel in self.data_channels:
            channel.close()
        self.emit("connectionstatechange")

    def set_connection_state(self, state: str):
        self.connectionState = state
        self.emit("connectionstatechange")


class FakeNetwork:
    """FakePeerConnection 팩토리 겸 연결 중개자."""

    def __init__(self):
        self.pcs: Dict[str, FakePeerConnection] = {}
        self.offers: List[str] = []
        self.answers: List[str] = []
        self._ids = itertools.count(1)

    def factory(self) -> FakePeerConnection:
        pc = FakePeerConnection(self, f"pc{next(self._ids)}")
        self.pcs[pc.pc_id] = pc
        return pc

    def lookup(self, sdp: str) -> Optional[FakePeerConnection]:
        return self.pcs.get(sdp.split()[1])

    def connect(self, offerer: FakePeerConnection, answerer: Optional[FakePeerConnection]):
        if answerer is None or answerer.connectionState == "closed":
            return
        for pc in (offerer, answerer):
            pc.connectionState = "connected"
            pc.emit("connectionstatechange")
        for channel in offerer.data_channels:
            remote_channel = FakeDataChannel(channel.label, channel.ordered)
            channel.peer, remote_channel.peer = remote_channel, channel
            answerer.data_channels.append(remote_channel)
            channel.readyState = remote_channel.readyState = "open"
            answerer.emit("datachannel", remote_channel)
            channel.emit("open")


class Recorder:
    """시그널링 채널로 받은 메시지를 기록하는 raw 클라이언트."""

    def __init__(self, channel):
        self.channel = channel
        self.messages: List[dict] = []
        self.id: Optional[str] = None
        channel.on_message(self._on_message)

    async def _on_message(self, message: dict) -> None:
        if message["type"] == "connected":
            self.id = message["data"]["id"]
        self.messages.append(message)

    def of_type(self, message_type: str) -> List[dict]:
        return [m["data"] for m in self.messages if m["type"] == message_type]

    def types(self) -> List[str]:
        return [m["type"] for m in self.messages]

    async def send(self, message_type: str, data: Optional[dict] = None) -> None:
        await self.channel.send({"type": message_type, "data": data or {}})

    async def join(self, code: str, name: str, is_host: bool = False, user_id: Optional[str] = None) -> None:
        data = {"code": code, "name": name, "isHost": is_host}
        if user_id:
            data["userId"] = user_id
        await self.send("join-meeting", data)
