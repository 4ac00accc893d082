"""
tests.test_connection_registry
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

ConnectionRegistry + ObserverSet 状态维护单元测试。
"""
from __future__ import annotations

from app.services.connection_registry import ConnectionRegistry
from app.services.observer_set import ObserverSet
from tests.fakes import make_connection


class TestConnectionRegistry:
    """测试连接登记与房间成员关系。"""

    def setup_method(self) -> None:
        self.observers = ObserverSet()
        self.registry = ConnectionRegistry(self.observers)

    def test_register_and_all_connections(self) -> None:
        a, b = make_connection(), make_connection()
        self.registry.register(a)
        self.registry.register(b)

        assert self.registry.all_connections() == {a, b}
        assert self.registry.online_count == 2

    def test_join_twice_then_leave_once_leaves_no_membership(self) -> None:
        """重复加入只算一次，离开一次即可完全退出。"""
        a = make_connection()
        self.registry.register(a)

        assert self.registry.join_room(a, "lobby") is True
        assert self.registry.join_room(a, "lobby") is False
        assert self.registry.members_of("lobby") == {a}

        assert self.registry.leave_room(a, "lobby") is True
        assert self.registry.members_of("lobby") == set()
        assert "lobby" not in a.rooms
        assert "lobby" not in self.registry.room_sizes()

    def test_leave_without_join_is_noop(self) -> None:
        a = make_connection()
        self.registry.register(a)

        assert self.registry.leave_room(a, "lobby") is False
        assert self.registry.members_of("lobby") == set()

    def test_connection_may_join_many_rooms(self) -> None:
        a = make_connection()
        self.registry.register(a)
        self.registry.join_room(a, "lobby")
        self.registry.join_room(a, "music")

        assert a.rooms == {"lobby", "music"}
        assert self.registry.room_sizes() == {"lobby": 1, "music": 1}

    def test_members_of_returns_snapshot(self) -> None:
        a, b = make_connection(), make_connection()
        for conn in (a, b):
            self.registry.register(conn)
            self.registry.join_room(conn, "lobby")

        members = self.registry.members_of("lobby")
        self.registry.leave_room(b, "lobby")

        assert members == {a, b}
        assert self.registry.members_of("lobby") == {a}

    def test_unregister_removes_from_rooms_and_observers(self) -> None:
        a, b = make_connection(), make_connection()
        for conn in (a, b):
            self.registry.register(conn)
            self.registry.join_room(conn, "lobby")
        self.observers.promote(a)

        assert self.registry.unregister(a) is True

        assert a not in self.registry.all_connections()
        assert self.registry.members_of("lobby") == {b}
        assert a not in self.observers
        assert a.is_observer is False
        assert a.rooms == set()

    def test_unregister_never_promoted_is_fine(self) -> None:
        """从未成为旁听者的连接断开时，demote 是无副作用的。"""
        a = make_connection()
        self.registry.register(a)

        assert self.registry.unregister(a) is True
        assert a not in self.observers
        assert len(self.observers) == 0

    def test_operations_on_unregistered_connection_are_ignored(self) -> None:
        a = make_connection()
        self.registry.register(a)
        self.registry.unregister(a)

        assert self.registry.unregister(a) is False
        assert self.registry.join_room(a, "lobby") is False
        assert self.registry.leave_room(a, "lobby") is False
        assert self.registry.members_of("lobby") == set()


class TestObserverSet:
    """测试旁听集合。"""

    def test_promote_is_idempotent(self) -> None:
        observers = ObserverSet()
        a = make_connection()

        observers.promote(a)
        observers.promote(a)

        assert len(observers) == 1
        assert a.is_observer is True

    def test_demote_is_idempotent(self) -> None:
        observers = ObserverSet()
        a = make_connection()

        observers.demote(a)
        observers.promote(a)
        observers.demote(a)
        observers.demote(a)

        assert len(observers) == 0
        assert a.is_observer is False
