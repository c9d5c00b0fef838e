"""SignalingHub / SignalingRelay 테스트.

메모리 채널 위에서 입장 알림 순서, 시그널 중계, 퇴장 알림을 검증합니다.

사용법:
    cd backend
    uv run pytest test/test_signaling_hub.py
"""

import asyncio

from fakes import settle, wait_until
from modules.meeting import MemberRole
from modules.signaling import ChannelClosedError, Event, MessageChannel, SignalKind, SignalingEnvelope

CODE = "ABC-123-XYZ"


class BrokenChannel(MessageChannel):
    async def send(self, message):
        raise ChannelClosedError("broken")

    async def close(self):
        self._closed = True


async def joined(recorder, code=CODE, is_host=False, name=None):
    before = len(recorder.messages)
    await recorder.join(code, name or recorder.channel.name, is_host=is_host)
    await wait_until(lambda: any(
        m["type"] in ("existing-participants", "error") for m in recorder.messages[before:]
    ))


async def test_connected_ids_are_unique(connect_raw, relay):
    a = await connect_raw("a")
    b = await connect_raw("b")

    assert a.types() == ["connected"]
    assert a.id != b.id
    assert relay.is_registered(a.id) and relay.is_registered(b.id)


async def test_host_join_creates_room(connect_raw, registry):
    host = await connect_raw("host")
    await joined(host, is_host=True)

    assert host.of_type("existing-participants") == [{"code": "ABC123XYZ", "participants": []}]
    room = registry.get_room(CODE)
    assert room.host_id == host.id
    assert room.find_active(host.id).role is MemberRole.HOST


async def test_participant_cannot_create_room(connect_raw, registry):
    guest = await connect_raw("guest")
    await joined(guest)

    assert guest.of_type("error") == [{"code": "meeting-not-found", "message": "Meeting not found"}]
    assert registry.get_member_room(guest.id) is None


async def test_roster_arrives_before_user_joined(connect_raw):
    host = await connect_raw("host")
    await joined(host, is_host=True)
    guest = await connect_raw("guest")
    await joined(guest)
    await wait_until(lambda: host.of_type("user-joined"))

    assert guest.types() == ["connected", "existing-participants"]
    assert guest.of_type("existing-participants")[0]["participants"] == [
        {"id": host.id, "name": "host", "isHost": True},
    ]
    notice = host.of_type("user-joined")[0]
    assert notice["id"] == guest.id
    assert notice["name"] == "guest"
    assert notice["isHost"] is False
    assert "timestamp" in notice


async def test_join_validation(connect_raw):
    client = await connect_raw("client")

    await client.send("join-meeting", {"code": CODE})
    await client.send("join-meeting", {"code": "12", "name": "x", "isHost": True})
    await wait_until(lambda: len(client.of_type("error")) == 2)

    codes = [e["code"] for e in client.of_type("error")]
    assert codes == ["bad-request", "invalid-code"]


async def test_join_rejects_non_string_user_id(connect_raw, registry):
    client = await connect_raw("client")

    await client.send("join-meeting", {"code": CODE, "name": "Host", "isHost": True, "userId": 123})
    await client.send("join-meeting", {"code": CODE, "name": "Host", "isHost": True, "userId": {"id": "x"}})
    await wait_until(lambda: len(client.of_type("error")) == 2)

    assert client.of_type("error")[0] == {"code": "bad-request", "message": "userId must be a string"}
    assert registry.get_member_room(client.id) is None
    assert registry.stats()["meetings"] == 0

    await client.join(CODE, "Host", is_host=True, user_id="host-user")
    await wait_until(lambda: client.of_type("existing-participants"))
    assert registry.get_room(CODE).host_id == "host-user"


async def test_unknown_type_keeps_connection(connect_raw):
    client = await connect_raw("client")

    await client.send("dance")
    await client.channel.send({"type": "join-meeting", "data": "not-an-object"})
    await wait_until(lambda: len(client.of_type("error")) == 2)
    await joined(client, is_host=True)

    assert [e["code"] for e in client.of_type("error")] == ["bad-request", "bad-request"]
    assert client.of_type("existing-participants")


async def test_duplicate_join_resends_roster(connect_raw):
    host = await connect_raw("host")
    await joined(host, is_host=True)
    guest = await connect_raw("guest")
    await joined(guest)

    await guest.join(CODE, "guest")
    await wait_until(lambda: len(guest.of_type("existing-participants")) == 2)
    await settle()

    assert len(host.of_type("user-joined")) == 1


async def test_signal_is_stamped_with_sender(connect_raw):
    host = await connect_raw("host")
    await joined(host, is_host=True)
    guest = await connect_raw("guest")
    await joined(guest)

    await host.send("webrtc-signal", {
        "to": guest.id,
        "from": "spoofed",
        "signal": {"type": "offer", "sdp": "v=0 fake"},
    })
    await wait_until(lambda: guest.of_type("webrtc-signal"))

    assert guest.of_type("webrtc-signal") == [{
        "to": guest.id,
        "from": host.id,
        "signal": {"type": "offer", "sdp": "v=0 fake"},
    }]


async def test_signals_keep_order_per_recipient(connect_raw):
    host = await connect_raw("host")
    await joined(host, is_host=True)
    guest = await connect_raw("guest")
    await joined(guest)

    for i in range(10):
        await host.send("webrtc-signal", {
            "to": guest.id,
            "signal": {"type": "ice-candidate", "candidate": {"candidate": f"candidate:{i}"}},
        })
    await wait_until(lambda: len(guest.of_type("webrtc-signal")) == 10)

    received = [s["signal"]["candidate"]["candidate"] for s in guest.of_type("webrtc-signal")]
    assert received == [f"candidate:{i}" for i in range(10)]


async def test_signal_to_unknown_recipient_is_dropped(connect_raw):
    host = await connect_raw("host")
    await joined(host, is_host=True)

    await host.send("webrtc-signal", {"to": "nobody", "signal": {"type": "answer", "sdp": "x"}})
    await settle()

    assert host.of_type("error") == []


async def test_signal_requires_membership(connect_raw):
    client = await connect_raw("client")

    await client.send("webrtc-signal", {"to": "x", "signal": {"type": "offer", "sdp": "x"}})
    await wait_until(lambda: client.of_type("error"))

    assert client.of_type("error")[0]["code"] == "not-in-meeting"


async def test_malformed_signal(connect_raw):
    host = await connect_raw("host")
    await joined(host, is_host=True)

    await host.send("webrtc-signal", {"to": "x", "signal": {"type": "bogus"}})
    await wait_until(lambda: host.of_type("error"))

    assert host.of_type("error")[0]["code"] == "bad-request"


async def test_leave_then_disconnect_notifies_once(connect_raw):
    host = await connect_raw("host")
    await joined(host, is_host=True)
    guest = await connect_raw("guest")
    await joined(guest)

    await guest.send("leave-meeting")
    await wait_until(lambda: host.of_type("user-left"))
    await guest.channel.close()
    await settle()

    notices = host.of_type("user-left")
    assert len(notices) == 1
    assert notices[0]["id"] == guest.id
    assert notices[0]["name"] == "guest"


async def test_abrupt_disconnect_notifies_others(connect_raw, registry, relay):
    host = await connect_raw("host")
    await joined(host, is_host=True)
    a = await connect_raw("a")
    await joined(a)
    b = await connect_raw("b")
    await joined(b)

    await a.channel.close()
    await wait_until(lambda: host.of_type("user-left") and b.of_type("user-left"))
    await settle()

    assert [e["id"] for e in host.of_type("user-left")] == [a.id]
    assert [e["id"] for e in b.of_type("user-left")] == [a.id]
    assert not relay.is_registered(a.id)
    assert [m.member_id for m in registry.get_active_members(CODE)] == [host.id, b.id]


async def test_screen_share_status(connect_raw):
    host = await connect_raw("host")
    await joined(host, is_host=True)
    guest = await connect_raw("guest")
    await joined(guest)

    await guest.send("screen-share", {"isSharing": True})
    await wait_until(lambda: host.of_type("screen-share-status"))
    await settle()

    assert host.of_type("screen-share-status") == [{"id": guest.id, "name": "guest", "isSharing": True}]
    assert guest.of_type("screen-share-status") == []


async def test_end_room_notifies_members(connect_raw, registry):
    host = await connect_raw("host")
    await joined(host, is_host=True)
    guest = await connect_raw("guest")
    await joined(guest)

    await registry.end_room(CODE, host.id)
    await wait_until(lambda: host.of_type("meeting-ended") and guest.of_type("meeting-ended"))

    ended = guest.of_type("meeting-ended")[0]
    assert ended["code"] == "ABC123XYZ"
    assert ended["endedBy"] == host.id

    # 종료된 미팅에는 참가자가 다시 들어갈 수 없음
    await guest.join(CODE, "guest")
    await wait_until(lambda: guest.of_type("error"))
    assert guest.of_type("error")[0]["code"] == "meeting-ended"


async def test_concurrent_joins_notify_each_pair_once(connect_raw):
    host = await connect_raw("host")
    await joined(host, is_host=True)
    clients = [await connect_raw(f"c{i}") for i in range(8)]

    await asyncio.gather(*[c.join(CODE, c.channel.name) for c in clients])
    await wait_until(lambda: all(c.of_type("existing-participants") for c in clients))
    await settle(0.1)

    everyone = [host] + clients
    for x in everyone:
        known_first = {p["id"] for p in (x.of_type("existing-participants") or [{"participants": []}])[0]["participants"]}
        joined_later = [e["id"] for e in x.of_type("user-joined")]
        assert len(joined_later) == len(set(joined_later))
        for y in everyone:
            if x is not y:
                assert (y.id in known_first) + (y.id in joined_later) == 1


async def test_relay_failure_is_isolated(connect_raw, registry, relay):
    host = await connect_raw("host")
    await joined(host, is_host=True)
    relay.register("broken", BrokenChannel("broken"))
    await registry.join(CODE, "broken", "Broken")
    guest = await connect_raw("guest")
    await joined(guest)

    await wait_until(lambda: host.of_type("user-joined") and len(host.of_type("user-joined")) == 2)
    assert [p["id"] for p in guest.of_type("existing-participants")[0]["participants"]] == [host.id, "broken"]

    delivered = await relay.broadcast_to_room(CODE, Event.SCREEN_SHARE_STATUS, {"id": "x", "isSharing": False})
    assert sorted(delivered) == sorted([host.id, guest.id])


async def test_route_returns_delivery(connect_raw, relay):
    a = await connect_raw("a")

    delivered = await relay.route(SignalingEnvelope(to=a.id, from_="x", kind=SignalKind.ANSWER, payload={"sdp": "s"}))
    dropped = await relay.route(SignalingEnvelope(to="nobody", from_="x", kind=SignalKind.ANSWER, payload={"sdp": "s"}))

    assert delivered is True
    assert dropped is False
    await wait_until(lambda: a.of_type("webrtc-signal"))
