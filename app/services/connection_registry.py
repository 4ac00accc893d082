"""
app.services.connection_registry
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

连接注册表 —— 记录所有活跃连接以及每个连接加入的房间。

房间不是独立存储的对象，只是"加入了同一个名字的连接集合"；
最后一个成员离开后房间条目随即消失。
"""
from __future__ import annotations

from app.core.logging import get_logger
from app.services.connection import Connection
from app.services.observer_set import ObserverSet

logger = get_logger(__name__)


class ConnectionRegistry:
    """进程内唯一的连接注册表。

    所有修改都只在事件循环线程上通过本类的方法进行，
    每个方法都是同步的，执行中不会被其他协程打断。

    Attributes:
        observers: 断开连接时需要同步移除的旁听集合。
    """

    def __init__(self, observers: ObserverSet) -> None:
        self.observers = observers
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[Connection]] = {}

    def register(self, connection: Connection) -> None:
        """登记新连接。"""
        self._connections[connection.id] = connection

    def unregister(self, connection: Connection) -> bool:
        """注销连接：移出所有房间并同步移出旁听集合。

        Returns:
            连接此前是否已登记；对已注销的连接重复调用返回 ``False``。
        """
        if self._connections.pop(connection.id, None) is None:
            return False
        for room in list(connection.rooms):
            self._discard_member(room, connection)
        connection.rooms.clear()
        self.observers.demote(connection)
        return True

    def join_room(self, connection: Connection, room: str) -> bool:
        """加入房间（幂等）。

        Returns:
            是否发生了实际变更；未登记的连接或重复加入返回 ``False``。
        """
        if not self.is_registered(connection) or room in connection.rooms:
            return False
        self._rooms.setdefault(room, set()).add(connection)
        connection.rooms.add(room)
        return True

    def leave_room(self, connection: Connection, room: str) -> bool:
        """离开房间（幂等）。"""
        if not self.is_registered(connection) or room not in connection.rooms:
            return False
        self._discard_member(room, connection)
        connection.rooms.discard(room)
        return True

    def members_of(self, room: str) -> set[Connection]:
        """返回房间成员的快照。"""
        return set(self._rooms.get(room, ()))

    def all_connections(self) -> set[Connection]:
        """返回所有已登记连接的快照。"""
        return set(self._connections.values())

    def is_registered(self, connection: Connection) -> bool:
        return self._connections.get(connection.id) is connection

    def room_sizes(self) -> dict[str, int]:
        return {room: len(members) for room, members in self._rooms.items()}

    @property
    def online_count(self) -> int:
        """当前在线连接数。"""
        return len(self._connections)

    def _discard_member(self, room: str, connection: Connection) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del self._rooms[room]
