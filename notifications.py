"""
Store notifications: persistence helpers and an in-process fan-out hub that
pushes new notifications to the owner sessions currently listening.
"""
import logging
import queue
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from bson import ObjectId

from database import to_public
from schemas import StoreNotification

logger = logging.getLogger(__name__)

CART_ADD = "cart_add"
RECENT_LIMIT = 20


class Subscription:
    def __init__(self, store_id: str):
        self.store_id = store_id
        self._queue: "queue.Queue[StoreNotification]" = queue.Queue()

    def deliver(self, notification: StoreNotification) -> None:
        self._queue.put(notification)

    def next(self, timeout: Optional[float] = None) -> Optional[StoreNotification]:
        """Next notification, or None if nothing arrived within `timeout` seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class NotificationHub:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Subscription]] = defaultdict(list)

    @contextmanager
    def subscribe(self, store_id: str) -> Iterator[Subscription]:
        subscription = Subscription(store_id)
        with self._lock:
            self._subscribers[store_id].append(subscription)
        try:
            yield subscription
        finally:
            with self._lock:
                self._subscribers[store_id].remove(subscription)
                if not self._subscribers[store_id]:
                    del self._subscribers[store_id]

    def publish(self, notification: StoreNotification) -> int:
        with self._lock:
            targets = list(self._subscribers.get(notification.store_id, []))
        for subscription in targets:
            subscription.deliver(notification)
        return len(targets)

    def subscriber_count(self, store_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(store_id, []))


hub = NotificationHub()


def record_notification(db, store_id: str, message: str, notification_type: str = CART_ADD,
                        product_id: Optional[str] = None,
                        notification_hub: Optional[NotificationHub] = None) -> StoreNotification:
    doc = {
        "store_id": store_id,
        "product_id": product_id,
        "notification_type": notification_type,
        "message": message,
        "is_read": False,
        "created_at": datetime.utcnow(),
    }
    doc["_id"] = db["storenotification"].insert_one(doc).inserted_id
    notification = StoreNotification(**to_public(doc))
    (notification_hub or hub).publish(notification)
    return notification


def cart_add_message(product_name: str) -> str:
    return f'O produto "{product_name}" foi adicionado a um carrinho'


def list_notifications(db, store_id: str, limit: int = RECENT_LIMIT) -> Tuple[List[StoreNotification], int]:
    """Latest notifications, newest first, and the store's unread count."""
    docs = db["storenotification"].find({"store_id": store_id}).sort("created_at", -1).limit(limit)
    items = [StoreNotification(**to_public(d)) for d in docs]
    unread = db["storenotification"].count_documents({"store_id": store_id, "is_read": False})
    return items, unread


def mark_read(db, store_id: str, notification_id: ObjectId) -> bool:
    result = db["storenotification"].update_one(
        {"_id": notification_id, "store_id": store_id},
        {"$set": {"is_read": True}},
    )
    return result.matched_count > 0


def mark_all_read(db, store_id: str) -> int:
    result = db["storenotification"].update_many(
        {"store_id": store_id, "is_read": False},
        {"$set": {"is_read": True}},
    )
    logger.info("Marked %d notification(s) read for store %s", result.modified_count, store_id)
    return result.modified_count
