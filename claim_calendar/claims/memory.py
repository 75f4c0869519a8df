import logging
from typing import Any, Iterable, Optional

from ..db.kv_store import SQLiteKeyValueStore

logger = logging.getLogger(__name__)

ACTIVE_PAIRS_KEY = "customer_work_pairs"
EXPIRED_PAIRS_KEY = "expired_customer_work_pairs"

Pair = tuple[str, str]


class CustomerWorkMemory:
    """Remembers which work items have been booked against which customer.

    Expired pairs stay stored but are hidden from suggestions. Learning a
    pair again does not bring it back; only restore() does.
    """

    def __init__(self, store: Optional[SQLiteKeyValueStore] = None):
        self.store = store
        self._active: dict[str, set[str]] = {}
        self._expired: set[Pair] = set()
        if store is not None:
            self._load()

    def _load(self) -> None:
        active = self.store.get_json(ACTIVE_PAIRS_KEY, default={})
        expired = self.store.get_json(EXPIRED_PAIRS_KEY, default=[])

        if isinstance(active, dict):
            for customer, work_items in active.items():
                if isinstance(work_items, list):
                    for work_item in work_items:
                        self._add(self._active, customer, work_item)
        if isinstance(expired, list):
            for record in expired:
                pair = self._pair_from_record(record)
                if pair:
                    self._expired.add(pair)

        logger.info(
            f"Loaded {len(self.active_pairs())} active and {len(self._expired)} expired customer/work item pairs"
        )

    def _persist(self) -> None:
        if self.store is None:
            return
        self.store.set_json(
            ACTIVE_PAIRS_KEY,
            {customer: sorted(work_items) for customer, work_items in sorted(self._active.items())},
        )
        self.store.set_json(
            EXPIRED_PAIRS_KEY,
            [{"customer": c, "workItem": w} for c, w in sorted(self._expired)],
        )

    @staticmethod
    def _clean(customer: Any, work_item: Any) -> Optional[Pair]:
        if not isinstance(customer, str) or not isinstance(work_item, str):
            return None
        customer, work_item = customer.strip(), work_item.strip()
        if not customer or not work_item:
            return None
        return customer, work_item

    @classmethod
    def _pair_from_record(cls, record: Any) -> Optional[Pair]:
        if not isinstance(record, dict):
            return None
        return cls._clean(record.get("customer"), record.get("workItem"))

    @classmethod
    def _add(cls, target: dict[str, set[str]], customer: Any, work_item: Any) -> bool:
        pair = cls._clean(customer, work_item)
        if pair is None:
            return False
        work_items = target.setdefault(pair[0], set())
        if pair[1] in work_items:
            return False
        work_items.add(pair[1])
        return True

    def learn(self, customer: str, work_item: str) -> bool:
        """Record a pair; returns True when it was new"""
        added = self._add(self._active, customer, work_item)
        if added:
            self._persist()
        return added

    def learn_many(self, pairs: Iterable[Pair]) -> int:
        added = sum(1 for customer, work_item in pairs if self._add(self._active, customer, work_item))
        if added:
            self._persist()
        return added

    def expire(self, customer: str, work_item: str) -> None:
        pair = self._clean(customer, work_item)
        if pair is None:
            raise ValueError("Customer and work item are required")
        self._expired.add(pair)
        self._persist()

    def restore(self, customer: str, work_item: str) -> None:
        pair = self._clean(customer, work_item)
        if pair is None:
            raise ValueError("Customer and work item are required")
        self._expired.discard(pair)
        self._add(self._active, *pair)
        self._persist()

    def is_expired(self, customer: str, work_item: str) -> bool:
        return self._clean(customer, work_item) in self._expired

    def active_pairs(self) -> list[Pair]:
        return sorted(
            (customer, work_item)
            for customer, work_items in self._active.items()
            for work_item in work_items
            if (customer, work_item) not in self._expired
        )

    def expired_pairs(self) -> list[Pair]:
        return sorted(self._expired)

    def customers(self) -> list[str]:
        return sorted({customer for customer, _ in self.active_pairs()})

    def suggestions(self, customer: str) -> list[str]:
        customer = (customer or "").strip()
        return [work_item for c, work_item in self.active_pairs() if c == customer]

    def export_document(self) -> dict[str, list[dict[str, str]]]:
        return {
            "active": [{"customer": c, "workItem": w} for c, w in self.active_pairs()],
            "expired": [{"customer": c, "workItem": w} for c, w in self.expired_pairs()],
        }

    def import_document(self, document: Any, replace: bool = False) -> None:
        """Merge (or replace with) an exported document, skipping malformed records"""
        if not isinstance(document, dict):
            raise ValueError("Import document must be a JSON object with 'active' and 'expired' lists")

        active = document.get("active") or []
        expired = document.get("expired") or []
        if not isinstance(active, list) or not isinstance(expired, list):
            raise ValueError("'active' and 'expired' must be lists")

        if replace:
            self._active = {}
            self._expired = set()

        for record in active:
            pair = self._pair_from_record(record)
            if pair:
                self._add(self._active, *pair)
        for record in expired:
            pair = self._pair_from_record(record)
            if pair:
                self._add(self._active, *pair)
                self._expired.add(pair)

        self._persist()
        logger.info(f"Imported customer/work item memory ({'replace' if replace else 'merge'})")
