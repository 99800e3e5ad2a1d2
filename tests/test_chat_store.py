import json
import unittest
from unittest import mock

import httpx

from app.client.api import ChatApiClient
from app.client.chat_store import ChatStore
from app.client.events import EventEmitter, RealtimeTransport, Subscription
from app.schemas.chat import Chat

class FakeTransport(RealtimeTransport):

    def __init__(self, connected=True):
        super().__init__()
        self.is_connected = connected
        self.sent = []

    @property
    def connected(self):
        return self.is_connected

    def send_frame(self, frame):
        self.sent.append(json.loads(frame))

def chat_data(chat_id, participants, updated_at, name="", is_group=False, messages=None):
    messages = messages or []
    return {
        "id": chat_id,
        "name": name,
        "participants": participants,
        "participantsInfo": [{"id": p, "name": p.upper(), "photoUrl": None} for p in participants],
        "isGroup": is_group,
        "messages": messages,
        "lastMessage": messages[-1] if messages else None,
        "updatedAt": updated_at,
    }

def message_data(message_id, chat_id, sender_id, content, timestamp):
    return {"id": message_id, "chatId": chat_id, "senderId": sender_id, "content": content, "timestamp": timestamp}

class EventEmitterTest(unittest.TestCase):

    def test_subscription_removes_listener_once(self):
        emitter = EventEmitter()
        received = []
        subscription = emitter.on("new_chat", received.append)

        self.assertEqual(emitter.emit_local("new_chat", {"id": "1"}), 1)
        subscription.dispose()
        subscription.dispose()

        self.assertTrue(subscription.disposed)
        self.assertEqual(emitter.emit_local("new_chat", {"id": "2"}), 0)
        self.assertEqual(received, [{"id": "1"}])
        self.assertEqual(emitter.listener_count(), 0)

    def test_subscription_as_context_manager(self):
        emitter = EventEmitter()
        with emitter.on("receive_message", lambda data: None) as subscription:
            self.assertIsInstance(subscription, Subscription)
            self.assertEqual(emitter.listener_count("receive_message"), 1)
        self.assertEqual(emitter.listener_count("receive_message"), 0)

    def test_transport_emit_requires_connection(self):
        transport = FakeTransport(connected=False)
        self.assertFalse(transport.emit("send_message", {"chatId": "1", "content": "hi"}))
        self.assertEqual(transport.sent, [])

    def test_transport_routes_frames_to_listeners(self):
        transport = FakeTransport()
        received = []
        transport.on("receive_message", received.append)

        transport.handle_frame(json.dumps({"event": "receive_message", "data": {"id": "1"}}))
        transport.handle_frame("not json")

        self.assertEqual(received, [{"id": "1"}])

class ChatStoreTest(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.transport = FakeTransport()
        self.server_chats = [
            Chat.model_validate(chat_data("c1", ["u2", "u1"], 1000)),
            Chat.model_validate(chat_data("c2", ["u3", "u1"], 3000)),
            Chat.model_validate(chat_data("c3", ["u2", "u3", "u1"], 2000, name="팀", is_group=True)),
        ]
        self.loader = mock.AsyncMock(return_value=self.server_chats)
        self.store = ChatStore("u1", self.transport, self.loader).bind()
        self.addCleanup(self.store.close)
        await self.store.load()

    def ids(self):
        return [chat.id for chat in self.store.chats]

    async def test_load_sorts_most_recent_first(self):
        self.loader.assert_awaited_once()
        self.assertEqual(self.ids(), ["c2", "c3", "c1"])
        self.assertFalse(self.store.loading)

    async def test_receive_message_moves_chat_to_front(self):
        self.store.set_active_chat(self.store.get_chat("c1"))
        self.transport.handle_frame(json.dumps({
            "event": "receive_message",
            "data": message_data("10", "c1", "u2", "안녕하세요", 5000),
        }))

        self.assertEqual(self.ids(), ["c1", "c2", "c3"])
        chat = self.store.get_chat("c1")
        self.assertEqual([m.content for m in chat.messages], ["안녕하세요"])
        self.assertEqual(chat.last_message.id, "10")
        self.assertEqual(chat.updated_at, 5000)
        self.assertIs(self.store.active_chat, chat)

    async def test_duplicate_message_is_ignored(self):
        data = message_data("10", "c1", "u2", "hi", 5000)
        self.assertTrue(self.store.apply_message(data))
        self.assertFalse(self.store.apply_message(data))
        self.assertEqual(len(self.store.get_chat("c1").messages), 1)

    async def test_message_for_unknown_chat_is_dropped(self):
        self.assertFalse(self.store.apply_message(message_data("10", "c9", "u2", "hi", 5000)))
        self.assertEqual(self.ids(), ["c2", "c3", "c1"])

    async def test_new_chat_is_prepended_once(self):
        data = chat_data("c4", ["u4", "u1"], 6000)
        self.transport.handle_frame(json.dumps({"event": "new_chat", "data": data}))
        self.transport.handle_frame(json.dumps({"event": "new_chat", "data": data}))

        self.assertEqual(self.ids(), ["c4", "c2", "c3", "c1"])

    async def test_change_listeners_are_notified(self):
        notifications = []
        subscription = self.store.subscribe(notifications.append)

        self.store.apply_new_chat(chat_data("c4", ["u4", "u1"], 6000))
        subscription.dispose()
        self.store.apply_new_chat(chat_data("c5", ["u5", "u1"], 7000))

        self.assertEqual(notifications, [self.store])

    async def test_send_message_has_no_optimistic_update(self):
        self.assertTrue(self.store.send_message("c1", "견적 보내드립니다"))

        self.assertEqual(self.transport.sent, [{
            "event": "send_message",
            "data": {"chatId": "c1", "content": "견적 보내드립니다"},
        }])
        self.assertEqual(self.store.get_chat("c1").messages, [])

    async def test_blank_message_is_not_sent(self):
        self.assertFalse(self.store.send_message("c1", "   "))
        self.assertEqual(self.transport.sent, [])

    async def test_send_while_disconnected(self):
        self.transport.is_connected = False
        self.assertFalse(self.store.send_message("c1", "hello"))

    async def test_create_chat_adds_current_user(self):
        self.store.create_chat(["u2"])
        self.store.create_chat(["u2", "u3"])
        self.store.create_chat(["u2"], name="외주 프로젝트")

        self.assertEqual([frame["data"] for frame in self.transport.sent], [
            {"participants": ["u2", "u1"], "name": "", "isGroup": False},
            {"participants": ["u2", "u3", "u1"], "name": "", "isGroup": True},
            {"participants": ["u2", "u1"], "name": "외주 프로젝트", "isGroup": True},
        ])

    async def test_create_private_chat_reuses_existing(self):
        self.assertTrue(self.store.create_private_chat("u3"))

        self.assertEqual(self.store.active_chat.id, "c2")
        self.assertEqual(self.transport.sent, [])

    async def test_create_private_chat_requests_new_chat(self):
        self.assertTrue(self.store.create_private_chat("u4"))

        self.assertEqual(self.transport.sent, [{
            "event": "create_chat",
            "data": {"participants": ["u1", "u4"], "name": "", "isGroup": False},
        }])
        self.assertFalse(self.store.create_private_chat("u1"))

    async def test_add_participant_is_not_supported(self):
        with self.assertLogs("app.client.chat_store", level="WARNING") as logs:
            self.assertFalse(self.store.add_participant_to_chat("c1", "u4"))

        self.assertIn("not supported", logs.output[0])
        self.assertEqual(self.transport.sent, [])

    async def test_close_disposes_transport_listeners(self):
        self.store.close()

        self.assertEqual(self.transport.listener_count(), 0)
        self.transport.handle_frame(json.dumps({"event": "new_chat", "data": chat_data("c4", ["u4", "u1"], 6000)}))
        self.assertIsNone(self.store.get_chat("c4"))

class ChatApiClientTest(unittest.IsolatedAsyncioTestCase):

    async def test_get_chats_sends_bearer_token(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["authorization"] = request.headers.get("authorization")
            return httpx.Response(200, json=[chat_data("c1", ["u2", "u1"], 1000)])

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            api = ChatApiClient("http://testserver/api/v1/", token="abc", client=http)
            chats = await api.get_chats()

        self.assertEqual(seen["url"], "http://testserver/api/v1/chats")
        self.assertEqual(seen["authorization"], "Bearer abc")
        self.assertEqual([c.id for c in chats], ["c1"])

    async def test_login_stores_token(self):
        def handler(request):
            self.assertEqual(json.loads(request.content), {"email": "a@example.com", "password": "pw"})
            return httpx.Response(200, json={"access_token": "new-token", "token_type": "bearer", "user": {}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            api = ChatApiClient("http://testserver/api/v1", client=http)
            await api.login("a@example.com", "pw")

        self.assertEqual(api.token, "new-token")

if __name__ == "__main__":
    unittest.main()
