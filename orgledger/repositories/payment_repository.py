from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from orgledger.models import Payment
from orgledger.repositories.base_repository import BaseRepository


class PaymentRepository(BaseRepository):
    collection_name = 'payments'
    indexes = [
        (['member_id'], 'member_id', False),
        ([('date', -1)], 'date_desc', False),
        (['amount'], 'amount', False),
    ]

    def __init__(self, adapter, user_id: Optional[str] = None):
        super().__init__(adapter, Payment, user_id=user_id)

    def get_by_member(self, member_id: str) -> List[Payment]:
        return self.get_many({"member_id": member_id}, sort=[("date", -1)])

    def get_by_members(self, member_ids: Iterable[str]) -> List[Payment]:
        return self.get_many({"member_id": {"$in": list(member_ids)}}, sort=[("date", -1)])

    def _match_stage(
        self,
        member_ids: List[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        match: Dict[str, Any] = self._versioned_conditions(
            {"member_id": {"$in": member_ids}})
        window = {}
        if start is not None:
            window["$gte"] = start
        if end is not None:
            window["$lt"] = end
        if window:
            match["date"] = window
        return {"$match": match}

    def sum_amount(
        self,
        member_ids: Iterable[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> float:
        """Total paid by `member_ids`, optionally within `[start, end)`."""
        member_ids = list(member_ids)
        if not member_ids:
            return 0
        result = self.aggregate([
            self._match_stage(member_ids, start, end),
            {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
        ])
        return result[0]["total"] if result else 0

    def sum_by_member(self, member_ids: Iterable[str]) -> Dict[str, float]:
        member_ids = list(member_ids)
        if not member_ids:
            return {}
        result = self.aggregate([
            self._match_stage(member_ids),
            {"$group": {"_id": "$member_id", "total": {"$sum": "$amount"}}},
        ])
        return {row["_id"]: row["total"] for row in result}

    def sum_by_month(
        self,
        member_ids: Iterable[str],
        start: datetime,
        end: datetime,
        tz_name: str = 'UTC'
    ) -> Dict[int, float]:
        """Totals within `[start, end)` keyed by calendar month (1-12) in `tz_name`."""
        member_ids = list(member_ids)
        if not member_ids:
            return {}
        result = self.aggregate([
            self._match_stage(member_ids, start, end),
            {"$group": {
                "_id": {"month": {"$month": {"date": "$date", "timezone": tz_name}}},
                "total": {"$sum": "$amount"},
            }},
        ])
        return {row["_id"]["month"]: row["total"] for row in result}
