import unittest
from unittest import mock

from app.core.exceptions import PersistenceError
from app.db.session import SessionLocal
from app.realtime.bus import InMemoryBroadcastBus
from app.realtime.membership import RoomMembershipManager
from app.services.chat_gateway import ChatGateway
from tests.utils import RecordingConnection, create_chat, create_user, reset_database

class RoomMembershipManagerTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        reset_database()
        self.bus = InMemoryBroadcastBus()
        self.manager = RoomMembershipManager(self.bus, ChatGateway(SessionLocal))
        self.alice = create_user("Alice")
        self.bob = create_user("Bob")
        self.carol = create_user("Carol")

    async def test_joins_personal_room_and_every_participating_chat(self):
        first = create_chat([self.bob.id, self.alice.id])
        second = create_chat([self.carol.id, self.bob.id, self.alice.id], "팀", True)
        other = create_chat([self.bob.id, self.carol.id])
        connection = RecordingConnection(self.alice.id)

        await self.manager.join_rooms(connection)

        self.assertEqual(connection.rooms, {
            f"user:{self.alice.id}",
            f"chat:{first.id}",
            f"chat:{second.id}",
        })
        self.assertNotIn(connection, self.bus.room_members(f"chat:{other.id}"))

    async def test_user_without_chats_joins_only_personal_room(self):
        connection = RecordingConnection(self.alice.id)

        await self.manager.join_rooms(connection)

        self.assertEqual(connection.rooms, {f"user:{self.alice.id}"})

    async def test_store_failure_keeps_personal_room_only(self):
        gateway = mock.Mock()
        gateway.fetch_chat_ids_for_user = mock.AsyncMock(side_effect=PersistenceError("database is down"))
        manager = RoomMembershipManager(self.bus, gateway)
        connection = RecordingConnection(self.alice.id)

        await manager.join_rooms(connection)

        self.assertEqual(connection.rooms, {f"user:{self.alice.id}"})
        self.assertEqual(connection.events, [])

    async def test_leave_rooms_releases_subscriptions(self):
        chat = create_chat([self.bob.id, self.alice.id])
        connection = RecordingConnection(self.alice.id)
        await self.manager.join_rooms(connection)

        self.manager.leave_rooms(connection)

        self.assertEqual(connection.rooms, set())
        self.assertEqual(self.bus.room_members(f"chat:{chat.id}"), set())
        self.assertEqual(self.bus.room_members(f"user:{self.alice.id}"), set())

if __name__ == "__main__":
    unittest.main()
