"""
Database Helpers

MongoDB connection for the Food Ordering API plus the small document helpers
the routes share. Orders are written through OrderStore so every write runs
inside a scoped transaction.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

from config import Config

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db = None


def connect(url: str) -> MongoClient:
    # aware datetimes on read, matching the UTC timestamps written by create_document
    return MongoClient(url, tz_aware=True)


if Config.DATABASE_URL and Config.DATABASE_NAME:
    client = connect(Config.DATABASE_URL)
    db = client[Config.DATABASE_NAME]


class PersistenceFailure(Exception):
    """Raised when a transactional write was aborted and rolled back"""
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValueError(f"Invalid id: {value}")


def create_document(database, collection_name: str, data, session=None) -> Dict[str, Any]:
    """Insert a document stamped with createdAt/updatedAt and return it with its _id"""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True, exclude_none=True)
    else:
        data_dict = dict(data)
    now = _utc_now()
    data_dict.setdefault("createdAt", now)
    data_dict.setdefault("updatedAt", now)
    result = database[collection_name].insert_one(data_dict, session=session)
    data_dict["_id"] = result.inserted_id
    return data_dict


def get_documents(database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None, sort: Optional[list] = None) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


@contextmanager
def transaction(mongo_client):
    """
    Provide a transactional scope around a series of writes.

    The transaction is committed when the block exits normally and aborted
    on any exception; the session is always ended.

    Usage:
        with transaction(client) as session:
            db["orders"].insert_one(doc, session=session)
    """
    session = mongo_client.start_session()
    try:
        session.start_transaction()
        yield session
        session.commit_transaction()
    except Exception as e:
        if session.in_transaction:
            session.abort_transaction()
        logger.error(f"Transaction failed, rolled back: {e}")
        raise
    finally:
        session.end_session()


class OrderStore:
    """Order and product persistence over one MongoDB database"""

    ORDERS = "orders"
    PRODUCTS = "product"

    def __init__(self, mongo_client, database):
        self.client = mongo_client
        self.db = database

    def ensure_indexes(self) -> None:
        self.db[self.ORDERS].create_index([("customerAddress", ASCENDING)])
        logger.info("Index ensured on orders.customerAddress")

    # Orders

    def insert_order(self, order_doc: Dict[str, Any]) -> Dict[str, Any]:
        """
        Persist one order atomically.

        Returns the stored document including its _id and timestamps.

        Raises:
            PersistenceFailure: if the transaction was aborted
        """
        try:
            with transaction(self.client) as session:
                stored = create_document(self.db, self.ORDERS, order_doc, session=session)
                # further writes for the same order (e.g. stock) belong in this block
        except Exception as e:
            raise PersistenceFailure(str(e)) from e
        logger.info(f"Order {stored['_id']} created")
        return stored

    def list_orders(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return get_documents(self.db, self.ORDERS, limit=limit,
                             sort=[("createdAt", DESCENDING), ("_id", DESCENDING)])

    def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        return self.db[self.ORDERS].find_one({"_id": to_object_id(order_id)})

    def update_status(self, order_id: str, status: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(order_id)
        result = self.db[self.ORDERS].update_one(
            {"_id": oid},
            {"$set": {"status": status, "updatedAt": _utc_now()}},
        )
        if result.matched_count == 0:
            return None
        return self.db[self.ORDERS].find_one({"_id": oid})

    def orders_with_total(self) -> List[Dict[str, Any]]:
        """Every order with total = sum of its item prices (0 when it has no items)"""
        docs = self.db[self.ORDERS].find(
            {}, {"customerName": 1, "customerAddress": 1, "items": 1}
        )
        summaries = []
        for doc in docs:
            items = doc.get("items") or []
            summaries.append({
                "_id": doc["_id"],
                "customerName": doc.get("customerName"),
                "customerAddress": doc.get("customerAddress"),
                "items": items,
                "total": sum(float(item.get("price") or 0) for item in items),
            })
        return summaries

    # Products

    def list_products(self, category: Optional[str] = None, available_only: bool = True) -> List[Dict[str, Any]]:
        filter_q: Dict[str, Any] = {}
        if category:
            filter_q["category"] = category
        if available_only:
            filter_q["available"] = True
        return get_documents(self.db, self.PRODUCTS, filter_q)

    def seed_products(self, products: List[dict]) -> int:
        """Insert the sample menu when the product collection is empty"""
        if self.db[self.PRODUCTS].count_documents({}) > 0:
            return 0
        for product in products:
            create_document(self.db, self.PRODUCTS, product)
        logger.info(f"Seeded {len(products)} products")
        return len(products)


def get_order_store() -> OrderStore:
    if db is None:
        raise RuntimeError("Database is not configured (set DATABASE_URL and DATABASE_NAME)")
    return OrderStore(client, db)
