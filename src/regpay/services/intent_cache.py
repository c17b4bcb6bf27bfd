"""Ephemeral checkout intent cache backed by a DynamoDB TTL table.

Each pending checkout is stored under ``pay:<order_id>`` until a webhook
settles it or the entry expires. DynamoDB deletes expired items lazily, so
reads compare ``expires_at`` against the clock themselves.
"""

import datetime as dt
import os
import time

from pydantic import ValidationError

from regpay.models import RegistrationIntent, intent_adapter
from regpay.utils.logging import get_logger

from .dynamodb import DynamoDBService

logger = get_logger(__name__)

DEFAULT_INTENT_TTL_SECONDS = 7200


def cache_key(order_id: str) -> str:
    """Cache key for an order ID."""
    return f"pay:{order_id}"


class IntentCache:
    """Key-value store for pending registration intents.

    ``get``, ``put`` and ``delete`` are one round-trip each.
    """

    TABLE = "payment-intents"

    def __init__(self, db: DynamoDBService, ttl_seconds: int | None = None) -> None:
        self._db = db
        self.ttl_seconds = (
            ttl_seconds
            if ttl_seconds is not None
            else int(os.environ.get("INTENT_TTL_SECONDS", DEFAULT_INTENT_TTL_SECONDS))
        )

    def put(self, intent: RegistrationIntent) -> None:
        """Store an intent, overwriting any previous entry for the order."""
        now = int(time.time())
        self._db.put_item(
            self.TABLE,
            {
                "cache_key": cache_key(intent.order_id),
                "order_id": intent.order_id,
                "kind": intent.kind,
                "payload": intent_adapter.dump_json(intent).decode("utf-8"),
                "created_at": dt.datetime.now(dt.UTC).isoformat(),
                "expires_at": now + self.ttl_seconds,
            },
        )

    def get(self, order_id: str) -> RegistrationIntent | None:
        """Read the intent for an order.

        Returns:
            The decoded intent, or None when missing, expired or undecodable
        """
        item = self._db.get_item(self.TABLE, {"cache_key": cache_key(order_id)})
        if not item:
            return None

        if int(item.get("expires_at", 0)) <= int(time.time()):
            logger.info("Intent for %s has expired", order_id)
            return None

        try:
            return intent_adapter.validate_json(item["payload"])
        except (KeyError, ValidationError) as e:
            logger.error("Discarding undecodable intent for %s: %s", order_id, e)
            return None

    def delete(self, order_id: str) -> None:
        """Remove the intent for an order. Missing entries are ignored."""
        self._db.delete_item(self.TABLE, {"cache_key": cache_key(order_id)})
