"""A Chord ring node: routing, stabilisation, replicated key/value storage."""

from __future__ import annotations

import logging
import random
import threading
import time

from .network import NetworkStation, RPCError
from .ring import M, SUCCESSOR_LIST_SIZE, calculate, consistent_hash, contain, contain_open
from .storage import DataStore

__all__ = ["ChordNode", "SERVICE_NAME", "MAINTAIN_INTERVAL"]

logger = logging.getLogger(__name__)

SERVICE_NAME = "chord"
MAINTAIN_INTERVAL = 0.05
_PING_RETRIES = 1


class ChordNode:
    """One node of the ring, serving its peers over RPC."""

    def __init__(self, addr: str) -> None:
        self.addr = addr
        self.id = consistent_hash(addr)
        self.online = False
        self.store = DataStore()
        self._station = NetworkStation()
        self._quit_lock = threading.Lock()
        self._pre_lock = threading.Lock()
        self._su_lock = threading.Lock()
        self._finger_lock = threading.Lock()
        self._predecessor = ""
        self._successors = [addr] * (SUCCESSOR_LIST_SIZE + 1)
        self._fingers = [addr] * (M + 1)
        self._listen_error: RPCError | None = None

    # -- plumbing -----------------------------------------------------------

    def _call(self, addr: str, method: str, *args):
        return self._station.remote_call(addr, f"{SERVICE_NAME}.{method}", *args)

    def _ping_addr(self, addr: str) -> bool:
        """Whether the node at ``addr`` answers a ping."""
        for _ in range(_PING_RETRIES + 1):
            try:
                self._call(addr, "ping")
                return True
            except RPCError:
                continue
        return False

    def _serve(self, started: threading.Event) -> None:
        try:
            self._station.run_rpc_server(self.addr, started)
        except RPCError as exc:
            logger.error("listen error on %s: %s", self.addr, exc)
            self._listen_error = exc
            started.set()

    # -- lifecycle ----------------------------------------------------------

    def run(self, ready=None) -> None:
        """Reset state and start serving RPC; returns once the listener is up.

        ``ready`` (anything with ``set()``) is signalled at that point too.
        """
        self.online = True
        with self._pre_lock:
            self._predecessor = ""
        with self._su_lock:
            self._successors = [self.addr] * (SUCCESSOR_LIST_SIZE + 1)
        self.store.reset()
        with self._finger_lock:
            self._fingers = [self.addr] * (M + 1)
        self._listen_error = None
        self._station.init_rpc(_ChordService(self), SERVICE_NAME)
        started = threading.Event()
        threading.Thread(target=self._serve, args=(started,), daemon=True).start()
        started.wait()
        if ready is not None:
            ready.set()
        if self._listen_error is not None:
            self.online = False
            raise self._listen_error

    def create(self) -> None:
        """Start a new ring with this node as its only member."""
        logger.info("[Create] Node %s", self.addr)
        with self._pre_lock:
            self._predecessor = self.addr
        self._maintain()

    def join(self, addr: str) -> bool:
        """Join the ring that the node at ``addr`` belongs to."""
        logger.info("[Join] Node %s join chord", self.addr)
        try:
            self._call(addr, "ping")
            successor = self._call(addr, "find_successor", self.id)
        except RPCError:
            return False
        with self._su_lock:
            self._successors[0] = successor
        self._maintain()
        return True

    def _maintain(self) -> None:
        threading.Thread(target=self._stabilize_loop, daemon=True).start()
        threading.Thread(target=self._fix_finger_loop, daemon=True).start()

    def _stabilize_loop(self) -> None:
        while True:
            with self._quit_lock:
                if not self.online:
                    break
                try:
                    self.stabilize()
                except RPCError as exc:
                    logger.debug("[Stabilize] %s: %s", self.addr, exc)
            time.sleep(MAINTAIN_INTERVAL)

    def _fix_finger_loop(self) -> None:
        while self.online:
            self.fix_finger()
            time.sleep(MAINTAIN_INTERVAL)

    def quit(self) -> None:
        """Leave the ring, handing data and backup over to the successor."""
        logger.info("[Quit] Node %s start quit", self.addr)
        if not self.online:
            return
        with self._quit_lock:
            try:
                self.online = False
                predecessor = self.get_predecessor()
                self.update_successor_list()
                successors = self.get_successor_list()
                successor = successors[0]
                try:
                    self._call(predecessor, "modify_successor_list", successors)
                except RPCError as exc:
                    logger.error("[Quit] Failed modifying successor list: %s", exc)
                try:
                    self._call(successor, "update_predecessor", predecessor)
                except RPCError as exc:
                    logger.error("[Quit] Failed to update predecessor: %s", exc)
                data = self.store.data_items()
                for method, payload in (
                    ("update_node", data),
                    ("delete_data_backup", [key for key, _ in data]),
                ):
                    try:
                        self._call(successor, method, payload)
                    except RPCError as exc:
                        logger.debug("[Quit] %s failed: %s", method, exc)
                backup = self.store.take_backup()
                try:
                    self._call(successor, "update_backup", backup)
                except RPCError as exc:
                    logger.debug("[Quit] update_backup failed: %s", exc)
            finally:
                self._station.stop_rpc_server()

    def force_quit(self) -> None:
        """Stop serving without telling any other node."""
        if self.online:
            self.online = False
            self._station.stop_rpc_server()

    # -- ring maintenance ---------------------------------------------------

    def stabilize(self) -> None:
        """Adopt the successor's predecessor if it sits between us, then notify."""
        successor = self.get_successor()
        successor_id = consistent_hash(successor)
        try:
            predecessor = self._call(successor, "get_predecessor")
        except RPCError:
            return
        predecessor_id = consistent_hash(predecessor)
        if (predecessor and contain_open(self.id, successor_id, predecessor_id)) or successor == self.addr:
            with self._su_lock:
                self._successors = [predecessor] + self._successors[:SUCCESSOR_LIST_SIZE]
            try:
                self._call(successor, "deal_with_data", self.addr, predecessor)
            except RPCError:
                return
        successor = self.get_successor()
        try:
            self._call(successor, "notify", self.addr)
        except RPCError as exc:
            logger.debug("[Stabilize] notify failed: %s", exc)

    def notify(self, target: str) -> None:
        """``target`` believes it is our predecessor; accept it if it fits."""
        predecessor = self.get_predecessor()
        if not predecessor or contain_open(consistent_hash(predecessor), self.id, consistent_hash(target)):
            with self._pre_lock:
                self._predecessor = target

    def deal_with_data(self, first: str, second: str) -> None:
        """Hand to ``second``, newly placed between ``first`` and us, what it now owns."""
        second_id = consistent_hash(second)
        moved = [
            (key, value)
            for key, value in self.store.data_items()
            if not contain(second_id, self.id, consistent_hash(key))
        ]
        self.delete_node([key for key, _ in moved])
        self.store.update_backup(moved)
        self._call(second, "update_data", moved)
        first_id = consistent_hash(first)
        moved_backup = [
            (key, value)
            for key, value in self.store.backup_items()
            if not contain(first_id, second_id, consistent_hash(key))
        ]
        self.store.delete_backup([key for key, _ in moved_backup])
        self._call(second, "update_backup", moved_backup)

    def fix_finger(self) -> None:
        """Refresh one randomly chosen finger table entry."""
        i = random.randint(2, M)
        try:
            successor = self.find_successor(calculate(self.id, i))
        except RPCError:
            return
        with self._finger_lock:
            self._fingers[i] = successor

    # -- routing ------------------------------------------------------------

    def closest_preceding_finger(self, key: int) -> str:
        """The live finger closest before ``key``, else the successor, else ourselves."""
        alive: dict[str, bool] = {}
        for i in range(M, 1, -1):
            with self._finger_lock:
                current = self._fingers[i]
            if current not in alive:
                alive[current] = self._ping_addr(current)
            if alive[current] and contain_open(self.id, key, consistent_hash(current)):
                return current
        successor = self.get_successor()
        if self._ping_addr(successor) and contain_open(self.id, key, consistent_hash(successor)):
            return successor
        return self.addr

    def find_successor(self, key: int) -> str:
        """Address of the node responsible for ``key``."""
        if key == self.id:
            return self.addr
        predecessor = self.find_predecessor(key)
        return self._call(predecessor, "get_successor")

    def find_predecessor(self, key: int) -> str:
        """Address of the node whose successor is responsible for ``key``."""
        successor = self.get_successor()
        if contain(self.id, consistent_hash(successor), key):
            return self.addr
        closest = self.closest_preceding_finger(key)
        return self._call(closest, "find_predecessor", key)

    def get_successor(self) -> str:
        self.update_successor_list()
        with self._su_lock:
            return self._successors[0]

    def get_predecessor(self) -> str:
        """The predecessor, cleared first if it no longer answers."""
        with self._pre_lock:
            predecessor = self._predecessor
        if predecessor and not self._ping_addr(predecessor):
            with self._pre_lock:
                self._predecessor = ""
        with self._pre_lock:
            return self._predecessor

    def get_successor_list(self) -> list[str]:
        with self._su_lock:
            return list(self._successors)

    def update_successor_list(self) -> None:
        """Rebuild the successor list from the first successor still alive."""
        for position, candidate in enumerate(self.get_successor_list()):
            if not self._ping_addr(candidate):
                continue
            try:
                remote = self._call(candidate, "get_successor_list")
            except RPCError:
                continue
            with self._su_lock:
                self._successors = [candidate] + list(remote[:SUCCESSOR_LIST_SIZE])
            if position == 1:
                try:
                    self._call(candidate, "add_backup")
                    self._call(candidate, "update_backup", self.store.data_items())
                except RPCError:
                    return
            return

    def ping(self) -> bool:
        """Answer a liveness check; raises RPCError once offline."""
        if self.online:
            return True
        raise RPCError("offline")

    def update_predecessor(self, target: str) -> None:
        with self._pre_lock:
            self._predecessor = target

    def modify_successor_list(self, successors) -> None:
        """Replace the successor list with ``successors``."""
        entries = list(successors)[: SUCCESSOR_LIST_SIZE + 1]
        with self._su_lock:
            self._successors = entries + self._successors[len(entries):]

    def add_backup(self) -> None:
        """Take the predecessor's backup over as our own data."""
        self.update_node(self.store.take_backup())

    # -- data ---------------------------------------------------------------

    def update_node(self, pairs) -> None:
        """Store ``pairs`` here and back them up on the successor."""
        pairs = [tuple(pair) for pair in (pairs or ())]
        self.store.update_data(pairs)
        successor = self.get_successor()
        try:
            self._call(successor, "update_backup", pairs)
        except RPCError as exc:
            logger.error("[UpdateNode] Update backup failed: %s", exc)
            raise

    def delete_node(self, keys) -> bool:
        """Delete ``keys`` here and from the successor's backup; True if all were found."""
        keys = list(keys or ())
        in_data = self.store.delete_data(keys)
        successor = self.get_successor()
        in_backup = self._call(successor, "delete_data_backup", keys)
        return bool(in_backup and in_data)

    def delete_node_single(self, key: str) -> bool:
        in_data = self.store.delete_data_single(key)
        successor = self.get_successor()
        in_backup = self._call(successor, "delete_data_backup_single", key)
        return bool(in_backup and in_data)

    def get_value(self, key: str) -> tuple[bool, str]:
        return self.store.get_value(key)

    def put(self, key: str, value) -> bool:
        """Store ``key`` on the node responsible for it."""
        logger.info("[Put] Pair %s", key)
        try:
            successor = self.find_successor(consistent_hash(key))
        except RPCError as exc:
            logger.error("[Put] failed when finding successor: %s", exc)
            return False
        try:
            self._call(successor, "update_node", [(key, value)])
        except RPCError as exc:
            logger.error("[Put] Update node failed: %s", exc)
            return False
        return True

    def get(self, key: str):
        """Look ``key`` up in the ring: ``(found, value)``."""
        logger.info("[Get] %s, key %s", self.addr, key)
        try:
            successor = self.find_successor(consistent_hash(key))
            found, value = self._call(successor, "get_value", key)
        except RPCError as exc:
            logger.error("[Get] failed: %s", exc)
            return False, ""
        return bool(found), value

    def delete(self, key: str) -> bool:
        try:
            successor = self.find_successor(consistent_hash(key))
            return bool(self._call(successor, "delete_node_single", key))
        except RPCError:
            return False


class _ChordService:
    """The methods a node offers to its peers."""

    def __init__(self, node: ChordNode) -> None:
        self._node = node

    def ping(self):
        return self._node.ping()

    def get_predecessor(self):
        return self._node.get_predecessor()

    def get_successor(self):
        return self._node.get_successor()

    def get_successor_list(self):
        return self._node.get_successor_list()

    def find_successor(self, key):
        return self._node.find_successor(key)

    def find_predecessor(self, key):
        return self._node.find_predecessor(key)

    def notify(self, target):
        self._node.notify(target)

    def deal_with_data(self, first, second):
        self._node.deal_with_data(first, second)

    def update_data(self, pairs):
        self._node.store.update_data(pairs)

    def update_backup(self, pairs):
        self._node.store.update_backup(pairs)

    def update_node(self, pairs):
        self._node.update_node(pairs)

    def delete_data_backup(self, keys):
        return self._node.store.delete_backup(keys)

    def delete_data_backup_single(self, key):
        return self._node.store.delete_backup_single(key)

    def delete_node_single(self, key):
        return self._node.delete_node_single(key)

    def get_value(self, key):
        return list(self._node.get_value(key))

    def update_predecessor(self, target):
        self._node.update_predecessor(target)

    def modify_successor_list(self, successors):
        self._node.modify_successor_list(successors)

    def add_backup(self):
        self._node.add_backup()