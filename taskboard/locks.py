"""
Editing-lock coordinator for collaborative task editing.

Tracks which user currently holds an advisory edit lock on which task and
tells every connected client about lock changes as they happen.  Locks are
a UX signal, not a data-safety guarantee: they live only in process memory
and disappear on restart.

The module is split in two layers:

* Pure transition functions (``acquire``, ``release``, ``release_task``,
  ``release_connection``) that map ``(table, inputs)`` to
  ``(new_table, notifications)``.  They never mutate their input and never
  touch the network, so every rule can be unit tested directly.
* :class:`LockCoordinator`, the stateful owner of the table.  It applies a
  transition and publishes the resulting notifications inside one critical
  section, so for any given task every client observes lock state changes
  in the order they were applied.

Per-task state machine::

    Unlocked --acquire--> Locked(holder) --release/cascade--> Unlocked
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Outbound event names; clients depend on these exact strings.
INITIAL_LOCKS = "initial-locks"
TASK_LOCKED = "task-locked"
TASK_UNLOCKED = "task-unlocked"
LOCK_FAILED = "lock-failed"
TASK_ADDED = "task-added"
TASK_CHANGED = "task-changed"
TASK_REMOVED = "task-removed"


@dataclass(frozen=True)
class Lock:
    """
    One advisory lock on one task.

    Attributes:
        task_id: Opaque identifier of the locked task.
        holder_user_id: User who owns the lock; the only user allowed to
            release it explicitly.
        holder_user_name: Display name cached at acquisition time.
        connection_id: Live connection that requested the lock.  When this
            connection goes away the lock goes with it.
    """

    task_id: str
    holder_user_id: str
    holder_user_name: str
    connection_id: str

    def to_dict(self) -> dict[str, str]:
        """Client-facing view of the holder; connection ids stay private."""
        return {"userId": self.holder_user_id, "userName": self.holder_user_name}


@dataclass(frozen=True)
class Notification:
    """
    A message the coordinator wants delivered.

    ``to`` is ``None`` for a broadcast to every connection, otherwise the id
    of the single connection that should receive it.
    """

    event: str
    payload: Any
    to: str | None = None

    @property
    def is_broadcast(self) -> bool:
        return self.to is None


Publisher = Callable[[Notification], None]
LockTable = Mapping[str, Lock]
Transition = tuple[dict[str, Lock], list[Notification]]


def _unlocked(task_id: str) -> Notification:
    return Notification(TASK_UNLOCKED, {"taskId": task_id})


# -----------------------------------------------------------------------------
# Pure transitions
# -----------------------------------------------------------------------------

def snapshot(table: LockTable) -> dict[str, dict[str, str]]:
    """Return the full lock table as sent to a newly connected client."""
    return {task_id: lock.to_dict() for task_id, lock in table.items()}


def acquire(
    table: LockTable,
    task_id: str,
    user_id: str,
    user_name: str,
    connection_id: str,
) -> Transition:
    """
    Try to lock ``task_id`` for ``user_id`` on behalf of ``connection_id``.

    Returns:
        The new table and the notifications to publish:

        * task unlocked: lock created, ``task-locked`` broadcast.
        * held by the same user: nothing changes, nothing is sent.
        * held by someone else: nothing changes, ``lock-failed`` goes to the
          requesting connection only.
    """
    existing = table.get(task_id)
    if existing is not None:
        if existing.holder_user_id == user_id:
            return dict(table), []
        return dict(table), [
            Notification(
                LOCK_FAILED,
                {"taskId": task_id, "lockedBy": existing.holder_user_name},
                to=connection_id,
            )
        ]

    new_table = dict(table)
    new_table[task_id] = Lock(
        task_id=task_id,
        holder_user_id=user_id,
        holder_user_name=user_name,
        connection_id=connection_id,
    )
    return new_table, [
        Notification(
            TASK_LOCKED,
            {"taskId": task_id, "userId": user_id, "userName": user_name},
        )
    ]


def release(table: LockTable, task_id: str, user_id: str) -> Transition:
    """Release ``task_id`` if and only if ``user_id`` holds it."""
    existing = table.get(task_id)
    if existing is None or existing.holder_user_id != user_id:
        return dict(table), []

    new_table = dict(table)
    del new_table[task_id]
    return new_table, [_unlocked(task_id)]


def release_task(table: LockTable, task_id: str) -> Transition:
    """Drop the lock on ``task_id`` regardless of holder (task deleted)."""
    if task_id not in table:
        return dict(table), []

    new_table = dict(table)
    del new_table[task_id]
    return new_table, [_unlocked(task_id)]


def release_connection(table: LockTable, connection_id: str) -> Transition:
    """
    Drop every lock owned by ``connection_id``.

    Matching is by connection, not by user: another connection of the same
    user keeps its own locks.  One ``task-unlocked`` broadcast is produced
    per removed lock.
    """
    new_table: dict[str, Lock] = {}
    notifications: list[Notification] = []
    for task_id, lock in table.items():
        if lock.connection_id == connection_id:
            notifications.append(_unlocked(task_id))
        else:
            new_table[task_id] = lock
    return new_table, notifications


# -----------------------------------------------------------------------------
# Coordinator
# -----------------------------------------------------------------------------

def _discard(notification: Notification) -> None:
    """Publisher used when none is given."""


class LockCoordinator:
    """
    Process-wide owner of the lock table.

    One instance is created per application by ``create_app`` and stored in
    ``app.extensions["task_locks"]``.  All public methods are safe to call
    from concurrent request handlers: a single mutex guards the table, the
    live connection set and the publish step.

    Args:
        publisher: Callable that delivers a :class:`Notification`.  It must
            not raise; delivery problems are the transport's to log.
    """

    def __init__(self, publisher: Publisher | None = None) -> None:
        self._publisher: Publisher = publisher or _discard
        self._mutex = threading.Lock()
        self._locks: dict[str, Lock] = {}
        self._connections: set[str] = set()

    # -- introspection ---------------------------------------------------------

    def get(self, task_id: str) -> Lock | None:
        with self._mutex:
            return self._locks.get(task_id)

    def locks(self) -> dict[str, dict[str, str]]:
        with self._mutex:
            return snapshot(self._locks)

    @property
    def connections(self) -> frozenset[str]:
        with self._mutex:
            return frozenset(self._connections)

    def __len__(self) -> int:
        with self._mutex:
            return len(self._locks)

    def __contains__(self, task_id: object) -> bool:
        with self._mutex:
            return task_id in self._locks

    # -- connection lifecycle --------------------------------------------------

    def connect(self, connection_id: str) -> dict[str, dict[str, str]]:
        """
        Register a new connection and send it the current lock table.

        The snapshot is taken and sent while holding the mutex, so the
        client cannot miss a transition that happens around its arrival:
        anything applied earlier is in the snapshot, anything later arrives
        as a broadcast after it.
        """
        with self._mutex:
            self._connections.add(connection_id)
            current = snapshot(self._locks)
            self._publish([Notification(INITIAL_LOCKS, current, to=connection_id)])
        logger.info("Connection %s joined with %d active locks", connection_id, len(current))
        return current

    def disconnect(self, connection_id: str) -> list[str]:
        """
        Release every lock held by a terminated connection.

        Runs at most once per connection: an unknown or already closed
        connection id is a no-op.

        Returns:
            Task ids whose locks were released, in table order.
        """
        with self._mutex:
            if connection_id not in self._connections:
                return []
            self._connections.discard(connection_id)
            released = [
                task_id
                for task_id, lock in self._locks.items()
                if lock.connection_id == connection_id
            ]
            self._apply(release_connection(self._locks, connection_id))

        for task_id in released:
            logger.info("Task %s unlocked due to disconnect of %s", task_id, connection_id)
        logger.info("Connection %s left", connection_id)
        return released

    # -- lock operations -------------------------------------------------------

    def acquire(
        self, task_id: str, user_id: str, user_name: str, connection_id: str
    ) -> bool:
        """
        Lock ``task_id`` for ``user_id``.

        Returns:
            ``True`` when the user holds the lock afterwards (fresh grant or
            idempotent re-acquire), ``False`` on conflict or when the
            connection is not live.
        """
        with self._mutex:
            if connection_id not in self._connections:
                # Disconnect cascade already ran; a grant now would never be
                # released.
                logger.warning(
                    "Ignoring lock request for task %s from closed connection %s",
                    task_id,
                    connection_id,
                )
                return False
            previous = self._locks.get(task_id)
            self._apply(acquire(self._locks, task_id, user_id, user_name, connection_id))

        if previous is None:
            logger.info("Task %s locked by %s", task_id, user_name)
            return True
        if previous.holder_user_id == user_id:
            return True
        logger.info(
            "Lock on task %s refused for %s; held by %s",
            task_id,
            user_name,
            previous.holder_user_name,
        )
        return False

    def release(self, task_id: str, user_id: str) -> bool:
        """Explicit unlock; only the holding user may release."""
        with self._mutex:
            notifications = self._apply(release(self._locks, task_id, user_id))
        if notifications:
            logger.info("Task %s unlocked", task_id)
            return True
        return False

    def release_task(self, task_id: str) -> bool:
        """Cascade release for a task that no longer exists."""
        with self._mutex:
            notifications = self._apply(release_task(self._locks, task_id))
        if notifications:
            logger.info("Task %s unlocked because it was deleted", task_id)
            return True
        return False

    # -- task mutation fan-out -------------------------------------------------

    def task_created(self, task: Any) -> None:
        with self._mutex:
            self._publish([Notification(TASK_ADDED, task)])

    def task_updated(self, task: Any) -> None:
        with self._mutex:
            self._publish([Notification(TASK_CHANGED, task)])

    def task_deleted(self, task_id: str) -> bool:
        """
        Announce a deletion and drop any lock on the deleted task.

        Returns:
            ``True`` if a lock was released as part of the cascade.
        """
        with self._mutex:
            self._publish([Notification(TASK_REMOVED, task_id)])
            notifications = self._apply(release_task(self._locks, task_id))
        logger.info("Task %s deleted", task_id)
        return bool(notifications)

    # -- lifecycle -------------------------------------------------------------

    def shutdown(self) -> None:
        """Forget every lock and connection; nothing is published."""
        with self._mutex:
            self._locks.clear()
            self._connections.clear()

    # -- internals (call with the mutex held) ----------------------------------

    def _apply(self, transition: Transition) -> list[Notification]:
        self._locks, notifications = transition
        self._publish(notifications)
        return notifications

    def _publish(self, notifications: Iterable[Notification]) -> None:
        for notification in notifications:
            self._publisher(notification)
