"""
MongoDB connection handling and document helpers.

The ConnectionSupervisor owns the single MongoClient of the process. It is
constructed once by the application factory and reached by request handlers
through the request guard, never through a module global.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import MongoClient, monitoring
from pymongo.database import Database
from pymongo.errors import (
    ConfigurationError,
    NetworkTimeout,
    OperationFailure,
    ServerSelectionTimeoutError,
)

logger = logging.getLogger(__name__)

CLIENT_OPTIONS = {
    "serverSelectionTimeoutMS": 10000,
    "socketTimeoutMS": 45000,
    "connectTimeoutMS": 10000,
    "maxPoolSize": 10,
    "minPoolSize": 2,
}

EVENTS = ("connected", "disconnected", "reconnected", "error")

CONNECTION_HINTS = {
    "hostname": "Cannot resolve MongoDB hostname. Check your MONGO_URI.",
    "auth": "Authentication failed. Check your MongoDB username and password.",
    "timeout": "Connection timeout. Check your network and MongoDB server status.",
    "not_configured": "MONGO_URI is not set. Configure it in the environment or .env file.",
}


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def classify_connection_error(exc: BaseException) -> str:
    """Coarse category of a failed connect, used only for diagnostics."""
    message = str(exc).lower()
    if isinstance(exc, ConfigurationError) and "not set" in message:
        return "not_configured"
    if any(token in message for token in ("enotfound", "getaddrinfo", "name or service not known",
                                           "nodename nor servname", "dns")):
        return "hostname"
    if "authentication failed" in message or (isinstance(exc, OperationFailure) and exc.code == 18):
        return "auth"
    if isinstance(exc, (ServerSelectionTimeoutError, NetworkTimeout)) or "timed out" in message \
            or "timeout" in message:
        return "timeout"
    return "unknown"


def mask_uri(uri: str) -> str:
    """Hide credentials in a connection string before logging it."""
    if not uri:
        return ""
    return re.sub(r"//[^@/]*@", "//***@", uri)


def uri_type(uri: str) -> str:
    if not uri:
        return "Not Set"
    if uri.startswith("mongodb+srv://") or "mongodb.net" in uri:
        return "MongoDB Atlas (Cloud)"
    if "localhost" in uri or "127.0.0.1" in uri:
        return "Local"
    return "Custom"


def mongo_connector(uri: str, **options: Any) -> MongoClient:
    """Open a client and confirm the server answers before handing it back."""
    client = MongoClient(uri, **options)
    try:
        client.admin.command("ping")
    except Exception:
        client.close()
        raise
    return client


class _TopologyWatcher(monitoring.TopologyListener):
    """Feeds writable-server loss and recovery back into the supervisor."""

    def __init__(self, supervisor: "ConnectionSupervisor"):
        self._supervisor = supervisor

    def opened(self, event):
        pass

    def description_changed(self, event):
        had_writable = event.previous_description.has_writable_server()
        has_writable = event.new_description.has_writable_server()
        if had_writable and not has_writable:
            self._supervisor.notify_disconnected()
        elif has_writable and not had_writable:
            self._supervisor.notify_reconnected()

    def closed(self, event):
        pass


class ConnectionSupervisor:
    def __init__(
        self,
        uri: str,
        database_name: str,
        *,
        retry_increment: float = 2.0,
        wait_timeout: float = 10.0,
        reconnect_delay: float = 5.0,
        connector: Callable[..., Any] = mongo_connector,
        sleep: Callable[[float], None] = time.sleep,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        self.uri = uri or ""
        self.database_name = database_name
        self.retry_increment = retry_increment
        self.wait_timeout = wait_timeout
        self.reconnect_delay = reconnect_delay
        self._connector = connector
        self._sleep = sleep
        self._timer_factory = timer_factory

        self._cond = threading.Condition()
        self._state = ConnectionState.DISCONNECTED
        self._client = None
        self._ever_connected = False
        self._reconnect_timer = None
        self._listeners: Dict[str, List[Callable[..., None]]] = {name: [] for name in EVENTS}
        self.last_error: Optional[str] = None
        self.last_error_kind: Optional[str] = None

    # ---------- State ----------
    @property
    def state(self) -> ConnectionState:
        with self._cond:
            return self._state

    @property
    def uri_configured(self) -> bool:
        return bool(self.uri)

    @property
    def database(self) -> Database:
        with self._cond:
            client = self._client
        if client is None:
            raise RuntimeError("No MongoDB client is available")
        return client.get_database(self.database_name)

    # ---------- Events ----------
    def on(self, event: str, callback: Callable[..., None]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown connection event: {event}")
        self._listeners[event].append(callback)

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(*args)
            except Exception:
                logger.exception("Listener for MongoDB '%s' event failed", event)

    # ---------- Connecting ----------
    def connect(self, max_attempts: int = 3) -> bool:
        """Connect with linear backoff between attempts. Never raises."""
        if self.state is ConnectionState.CONNECTED:
            logger.info("MongoDB already connected")
            return True

        logger.info("Attempting to connect to MongoDB at %s", mask_uri(self.uri) or "<unset>")
        for attempt in range(1, max_attempts + 1):
            if self._attempt():
                return True
            logger.error("Database connection attempt %d/%d failed: %s",
                         attempt, max_attempts, self.last_error)
            if attempt < max_attempts:
                wait = attempt * self.retry_increment
                logger.info("Retrying in %s seconds...", wait)
                self._sleep(wait)

        logger.error("All database connection attempts failed; continuing without a database")
        hint = CONNECTION_HINTS.get(self.last_error_kind or "")
        if hint:
            logger.error(hint)
        return False

    def ensure_connection(self) -> bool:
        """Request-path check: at most one attempt, or a bounded wait."""
        with self._cond:
            if self._state is ConnectionState.CONNECTED:
                return True
            if self._state is ConnectionState.CONNECTING:
                return self._wait_locked(self.wait_timeout)

        logger.warning("Database disconnected, attempting to reconnect...")
        return self._attempt()

    def _wait_locked(self, timeout: float) -> bool:
        resolved = self._cond.wait_for(lambda: self._state is not ConnectionState.CONNECTING, timeout)
        if not resolved:
            logger.error("Timed out after %ss waiting for MongoDB connection", timeout)
            return False
        return self._state is ConnectionState.CONNECTED

    def _attempt(self) -> bool:
        with self._cond:
            if self._state is ConnectionState.CONNECTED:
                return True
            if self._state is ConnectionState.CONNECTING:
                return self._wait_locked(self.wait_timeout)
            self._state = ConnectionState.CONNECTING
            stale, self._client = self._client, None

        if stale is not None:
            stale.close()

        try:
            if not self.uri:
                raise ConfigurationError("MONGO_URI is not set")
            client = self._connector(self.uri, event_listeners=[_TopologyWatcher(self)], **CLIENT_OPTIONS)
        except Exception as exc:
            with self._cond:
                self._state = ConnectionState.DISCONNECTED
                self.last_error = str(exc)
                self.last_error_kind = classify_connection_error(exc)
                self._cond.notify_all()
            self._emit("error", exc)
            return False

        with self._cond:
            self._client = client
            self._state = ConnectionState.CONNECTED
            self.last_error = None
            self.last_error_kind = None
            reconnected = self._ever_connected
            self._ever_connected = True
            self._cond.notify_all()

        logger.info("MongoDB connected")
        self._emit("reconnected" if reconnected else "connected")
        return True

    # ---------- Driver notifications ----------
    def notify_disconnected(self) -> None:
        with self._cond:
            if self._state is not ConnectionState.CONNECTED:
                return
            self._state = ConnectionState.DISCONNECTED
            self._cond.notify_all()
            timer = None
            if self._reconnect_timer is None:
                timer = self._timer_factory(self.reconnect_delay, self._reconnect)
                timer.daemon = True
                self._reconnect_timer = timer

        logger.warning("MongoDB disconnected - reconnecting in %ss", self.reconnect_delay)
        self._emit("disconnected")
        if timer is not None:
            timer.start()

    def notify_reconnected(self) -> None:
        with self._cond:
            if self._state is not ConnectionState.DISCONNECTED or self._client is None:
                return
            self._state = ConnectionState.CONNECTED
            self._cond.notify_all()
        logger.info("MongoDB reconnected")
        self._emit("reconnected")

    def _reconnect(self) -> None:
        with self._cond:
            self._reconnect_timer = None
            if self._state is not ConnectionState.DISCONNECTED:
                return
        if not self.connect(1):
            logger.error("Reconnection failed: %s", self.last_error)

    def close(self) -> None:
        with self._cond:
            timer, self._reconnect_timer = self._reconnect_timer, None
            client, self._client = self._client, None
            self._state = ConnectionState.DISCONNECTED
            self._cond.notify_all()
        if timer is not None:
            timer.cancel()
        if client is not None:
            client.close()


# ---------- Document helpers ----------
def to_datetime(value: Any) -> Optional[datetime]:
    """BSON stores naive UTC datetimes only."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    raise TypeError(f"Cannot convert {value!r} to datetime")


def serialize(value: Any) -> Any:
    """Make a document JSON friendly: ObjectIds become strings."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value


def create_document(db: Database, collection_name: str, data: Any) -> str:
    if hasattr(data, "model_dump"):
        data = data.model_dump(by_alias=True, exclude_none=True)
    doc = dict(data)
    now = datetime.utcnow()
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  sort: Optional[list] = None, limit: int = 0, skip: int = 0) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def populate(db: Database, docs: Iterable[dict], field_name: str, fields: Iterable[str],
             collection_name: str = "users") -> None:
    """Replace ObjectId references in ``field_name`` with the referenced documents."""
    docs = list(docs)
    ids = {d[field_name] for d in docs if isinstance(d.get(field_name), ObjectId)}
    if not ids:
        return
    projection = {name: 1 for name in fields}
    related = {r["_id"]: r for r in db[collection_name].find({"_id": {"$in": list(ids)}}, projection)}
    for d in docs:
        ref = d.get(field_name)
        if isinstance(ref, ObjectId) and ref in related:
            d[field_name] = related[ref]


def ensure_indexes(db: Database) -> None:
    db["users"].create_index("username", unique=True)
    db["users"].create_index("studentId", unique=True, sparse=True)
    db["reports"].create_index([("student", 1), ("month", 1), ("year", 1)], unique=True)
    db["reports"].create_index([("student", 1), ("academicYear", 1)])
    db["results"].create_index([("student", 1), ("subject", 1), ("examDate", -1)])
    db["results"].create_index([("student", 1), ("academicYear", 1), ("semester", 1)])
    db["fees"].create_index([("student", 1), ("month", 1)])
    db["attendance"].create_index([("student", 1), ("date", 1)], unique=True)
    db["updates"].create_index([("isActive", 1), ("createdAt", -1)])
