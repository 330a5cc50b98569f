"""
Search index client (Algolia REST API over httpx).

Orders are upserted as {objectID: orderId, ...orderFields} with millisecond
timestamps so they can be sorted and filtered in the index. The index is
orders_prod in production and orders_dev otherwise unless configured.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

import httpx

from shopcore.core.config import ShopConfig, get_config
from shopcore.errors import ConfigurationError

logger = logging.getLogger("shop.search_index")


def to_millis(value: Any) -> Any:
    """Datetime -> epoch milliseconds; naive values are taken as UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    return value


def build_order_document(order_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
    """Index document for an order record (see Order.to_record)."""
    totals = record.get("totals") or {}
    document = {"objectID": order_id}
    document.update(record)
    document.update({
        "createdAt": to_millis(record.get("createdAt")),
        "updatedAt": to_millis(record.get("updatedAt")),
        "userId": record.get("userId"),
        "status": record.get("status"),
        "total": totals.get("total") or 0,
        "itemCount": totals.get("itemCount") or 0,
    })
    return document


class SearchIndexClient:
    """Minimal Algolia client: save and delete objects by id."""

    def __init__(self, config: Optional[ShopConfig] = None, transport: Optional[httpx.BaseTransport] = None):
        self.config = config or get_config()
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.config.search_app_id and self.config.search_admin_key)

    def _client(self) -> httpx.Client:
        if not self.configured:
            missing = "ALGOLIA_APP_ID" if not self.config.search_app_id else "ALGOLIA_ADMIN_KEY"
            raise ConfigurationError("search index", missing)
        app_id = self.config.search_app_id
        return httpx.Client(
            base_url=f"https://{app_id}.algolia.net",
            headers={
                "X-Algolia-Application-Id": app_id,
                "X-Algolia-API-Key": self.config.search_admin_key,
            },
            timeout=self.config.search_timeout_s,
            transport=self.transport,
        )

    def _object_path(self, index_name: str, object_id: str) -> str:
        return f"/1/indexes/{index_name}/{object_id}"

    def save_object(self, index_name: str, object_id: str, document: Dict[str, Any]) -> None:
        with self._client() as client:
            resp = client.put(self._object_path(index_name, object_id), json=document)
            resp.raise_for_status()
        logger.info("search_index: method=save_object index=%s object_id=%s", index_name, object_id)

    def delete_object(self, index_name: str, object_id: str) -> None:
        with self._client() as client:
            resp = client.delete(self._object_path(index_name, object_id))
            resp.raise_for_status()
        logger.info("search_index: method=delete_object index=%s object_id=%s", index_name, object_id)

    def sync_order(self, order_id: str, record: Dict[str, Any]) -> None:
        self.save_object(self.config.orders_index, order_id, build_order_document(order_id, record))

    def remove_order(self, order_id: str) -> None:
        self.delete_object(self.config.orders_index, order_id)
