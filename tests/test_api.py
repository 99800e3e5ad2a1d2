import unittest

from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.api.api_v1.endpoints.realtime import WS_CLOSE_UNAUTHORIZED
from app.core.config import settings
from app.main import app
from tests.utils import create_chat, create_user, reset_database, token_for

API = settings.API_V1_STR

class ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.client = TestClient(app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)
        reset_database()

    def auth(self, user):
        return {"Authorization": f"Bearer {token_for(user)}"}

class HealthTest(ApiTestCase):

    def test_health(self):
        response = self.client.get(f"{API}/health")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "healthy")
        self.assertEqual(body["connections"], 0)
        self.assertIn("timestamp", body)

    def test_root(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["version"], settings.VERSION)

class AuthApiTest(ApiTestCase):

    def test_signup_then_login(self):
        response = self.client.post(f"{API}/auth/signup", json={
            "email": "client@example.com", "name": "의뢰인", "password": "s3cret-pass"
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["user"]["email"], "client@example.com")
        self.assertEqual(response.json()["token_type"], "bearer")

        response = self.client.post(f"{API}/auth/login", json={
            "email": "client@example.com", "password": "s3cret-pass"
        })
        self.assertEqual(response.status_code, 200)
        token = response.json()["access_token"]

        response = self.client.get(f"{API}/chats", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])

    def test_duplicate_signup(self):
        payload = {"email": "dup@example.com", "name": "Dup", "password": "s3cret-pass"}
        self.assertEqual(self.client.post(f"{API}/auth/signup", json=payload).status_code, 201)

        response = self.client.post(f"{API}/auth/signup", json=payload)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_signup_validation(self):
        response = self.client.post(f"{API}/auth/signup", json={
            "email": "not-an-email", "name": "X", "password": "short"
        })

        self.assertEqual(response.status_code, 400)
        fields = {e["field"] for e in response.json()["error"]["details"]["field_errors"]}
        self.assertIn("body -> email", fields)
        self.assertIn("body -> password", fields)

    def test_login_with_wrong_password(self):
        self.client.post(f"{API}/auth/signup", json={
            "email": "client@example.com", "name": "의뢰인", "password": "s3cret-pass"
        })

        response = self.client.post(f"{API}/auth/login", json={
            "email": "client@example.com", "password": "wrong-pass"
        })

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_CREDENTIALS")

class ChatsApiTest(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.alice = create_user("Alice")
        self.bob = create_user("Bob")
        self.carol = create_user("Carol")
        self.chat = create_chat([self.bob.id, self.alice.id])

    def test_requires_token(self):
        response = self.client.get(f"{API}/chats")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "MISSING_TOKEN")

        response = self.client.get(f"{API}/chats", headers={"Authorization": "Bearer broken"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")

    def test_list_chats(self):
        response = self.client.get(f"{API}/chats", headers=self.auth(self.alice))

        self.assertEqual(response.status_code, 200)
        chats = response.json()
        self.assertEqual(len(chats), 1)
        chat = chats[0]
        self.assertEqual(chat["id"], self.chat.id)
        self.assertEqual(chat["participants"], [self.bob.id, self.alice.id])
        self.assertEqual([p["name"] for p in chat["participantsInfo"]], ["Bob", "Alice"])
        self.assertFalse(chat["isGroup"])
        self.assertEqual(chat["messages"], [])
        self.assertIsNone(chat["lastMessage"])

    def test_get_chat(self):
        response = self.client.get(f"{API}/chats/{self.chat.id}", headers=self.auth(self.bob))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], self.chat.id)

    def test_get_chat_as_non_participant(self):
        response = self.client.get(f"{API}/chats/{self.chat.id}", headers=self.auth(self.carol))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "NOT_FOUND")

class RealtimeEndpointTest(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.alice = create_user("Alice")
        self.bob = create_user("Bob")
        self.carol = create_user("Carol")
        self.chat = create_chat([self.bob.id, self.alice.id])

    def connect(self, user):
        ws = self.client.websocket_connect(f"{API}/ws?token={token_for(user)}")
        ws.__enter__()
        self.addCleanup(ws.__exit__, None, None, None)
        # pong은 룸 구독이 끝난 뒤에 도착
        ws.send_json({"event": "ping", "data": {}})
        self.assertEqual(ws.receive_json(), {"event": "pong", "data": {}})
        return ws

    def test_handshake_without_token_is_rejected(self):
        with self.assertRaises(WebSocketDisconnect) as ctx:
            with self.client.websocket_connect(f"{API}/ws"):
                pass
        self.assertEqual(ctx.exception.code, WS_CLOSE_UNAUTHORIZED)

    def test_handshake_with_invalid_token_is_rejected(self):
        with self.assertRaises(WebSocketDisconnect) as ctx:
            with self.client.websocket_connect(f"{API}/ws?token=broken"):
                pass
        self.assertEqual(ctx.exception.code, WS_CLOSE_UNAUTHORIZED)

    def test_message_flow(self):
        alice_ws = self.connect(self.alice)
        bob_ws = self.connect(self.bob)
        self.assertEqual(self.client.get(f"{API}/health").json()["connections"], 2)

        alice_ws.send_json({"event": "send_message", "data": {"chatId": self.chat.id, "content": "작업 일정 공유드려요"}})

        for ws in (alice_ws, bob_ws):
            frame = ws.receive_json()
            self.assertEqual(frame["event"], "receive_message")
            self.assertEqual(frame["data"]["content"], "작업 일정 공유드려요")
            self.assertEqual(frame["data"]["senderId"], self.alice.id)

        chats = self.client.get(f"{API}/chats", headers=self.auth(self.bob)).json()
        self.assertEqual(chats[0]["lastMessage"]["content"], "작업 일정 공유드려요")
        self.assertEqual(len(chats[0]["messages"]), 1)

    def test_error_event_goes_to_sender(self):
        alice_ws = self.connect(self.alice)
        carol_ws = self.connect(self.carol)

        carol_ws.send_json({"event": "send_message", "data": {"chatId": self.chat.id, "content": "hi"}})
        frame = carol_ws.receive_json()
        self.assertEqual(frame["event"], "error")
        self.assertEqual(frame["data"]["code"], "PERMISSION_DENIED")

        # 에러 이후에도 연결은 유지됨
        alice_ws.send_json({"event": "send_message", "data": {"chatId": self.chat.id, "content": ""}})
        frame = alice_ws.receive_json()
        self.assertEqual(frame["event"], "error")
        self.assertEqual(frame["data"]["code"], "VALIDATION_ERROR")

        alice_ws.send_json({"event": "ping"})
        self.assertEqual(alice_ws.receive_json()["event"], "pong")

    def test_binary_frame_is_reported_and_connection_survives(self):
        alice_ws = self.connect(self.alice)

        alice_ws.send_bytes(b"\x00\x01")
        frame = alice_ws.receive_json()
        self.assertEqual(frame["event"], "error")
        self.assertEqual(frame["data"]["code"], "VALIDATION_ERROR")

        alice_ws.send_json({"event": "ping"})
        self.assertEqual(alice_ws.receive_json()["event"], "pong")

    def test_create_chat_notifies_participants(self):
        alice_ws = self.connect(self.alice)
        carol_ws = self.connect(self.carol)

        alice_ws.send_json({"event": "create_chat", "data": {"participants": [self.carol.id]}})

        alice_frame = alice_ws.receive_json()
        carol_frame = carol_ws.receive_json()
        self.assertEqual(alice_frame["event"], "new_chat")
        self.assertEqual(carol_frame, alice_frame)
        new_chat = alice_frame["data"]
        self.assertEqual(new_chat["participants"], [self.carol.id, self.alice.id])
        self.assertFalse(new_chat["isGroup"])

        # 생성한 연결은 새 채팅 룸에 바로 구독됨
        alice_ws.send_json({"event": "send_message", "data": {"chatId": new_chat["id"], "content": "안녕하세요"}})
        frame = alice_ws.receive_json()
        self.assertEqual(frame["event"], "receive_message")
        self.assertEqual(frame["data"]["chatId"], new_chat["id"])

if __name__ == "__main__":
    unittest.main()
