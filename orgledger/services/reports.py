"""
Collection reports rolled up through the node tree.

Every figure is scoped by the descendant closure of a node: members whose
branch lies in the closure, and payments made by those members. Year, month
and day boundaries are taken in the configured reporting timezone.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from orgledger.errors import NotFound
from orgledger.repositories import MemberRepository, NodeRepository, PaymentRepository
from orgledger.services.hierarchy import HierarchyService

logger = logging.getLogger(__name__)

MONTHS_IN_YEAR = 12
RANKING_SIZE = 5


@dataclass
class ChildPerformance:
    child_id: str
    name: str
    type: Optional[str]
    total: float

    def as_dict(self) -> Dict[str, Any]:
        return {'childId': self.child_id, 'name': self.name, 'type': self.type, 'total': self.total}


@dataclass
class CollectionReport:
    node_id: str
    node_type: Optional[str]
    node_name: Optional[str]
    year: int
    total_collection: float = 0
    average_collection_per_member: float = 0
    monthly_collection: List[float] = field(default_factory=lambda: [0] * MONTHS_IN_YEAR)
    total_members: int = 0
    child_performances: List[ChildPerformance] = field(default_factory=list)
    top_performing_children: List[ChildPerformance] = field(default_factory=list)
    worst_performing_children: List[ChildPerformance] = field(default_factory=list)
    collections_today: float = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            'nodeId': self.node_id,
            'nodeType': self.node_type,
            'nodeName': self.node_name,
            'year': self.year,
            'totalCollection': self.total_collection,
            'averageCollectionPerMember': self.average_collection_per_member,
            'monthlyCollection': list(self.monthly_collection),
            'totalMembers': self.total_members,
            'childPerformances': [c.as_dict() for c in self.child_performances],
            'topPerformingChildren': [c.as_dict() for c in self.top_performing_children],
            'worstPerformingChildren': [c.as_dict() for c in self.worst_performing_children],
            'collectionsToday': self.collections_today,
        }


def rank_children(performances: List[ChildPerformance]) -> Tuple[
        List[ChildPerformance], List[ChildPerformance], List[ChildPerformance]]:
    """
    Sort descending by total (stable for ties) and split off the rankings.

    Returns (sorted, top, worst): `top` is the first five in descending
    order, `worst` is the last five reversed so the lowest total comes first.
    """
    ordered = sorted(performances, key=lambda p: p.total, reverse=True)
    top = ordered[:RANKING_SIZE]
    worst = list(reversed(ordered[-RANKING_SIZE:]))
    return ordered, top, worst


def average_per_member(total: float, member_count: int) -> float:
    if member_count <= 0:
        return 0
    return total / member_count


class CollectionReporter:
    """Aggregates payments over the subtree of a node."""

    def __init__(
        self,
        hierarchy: HierarchyService,
        nodes: NodeRepository,
        members: MemberRepository,
        payments: PaymentRepository,
        tz_name: str = 'UTC',
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.hierarchy = hierarchy
        self.nodes = nodes
        self.members = members
        self.payments = payments
        self.tz_name = tz_name
        self.tz = ZoneInfo(tz_name)
        self._clock = clock

    def now(self) -> datetime:
        if self._clock is not None:
            return self._clock().astimezone(self.tz)
        return datetime.now(self.tz)

    def year_window(self, year: int) -> Tuple[datetime, datetime]:
        """`[Jan 1 year, Jan 1 year+1)` in the reporting timezone."""
        return datetime(year, 1, 1, tzinfo=self.tz), datetime(year + 1, 1, 1, tzinfo=self.tz)

    def day_window(self, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        """Start of the local day containing `now` and start of the next one."""
        local = (now or self.now()).astimezone(self.tz)
        start = datetime(local.year, local.month, local.day, tzinfo=self.tz)
        following = start.date() + timedelta(days=1)
        end = datetime(following.year, following.month, following.day, tzinfo=self.tz)
        return start, end

    def scoped_member_ids(self, node_id: str) -> List[str]:
        closure = self.hierarchy.descendant_ids(node_id)
        return self.members.get_ids_by_branches(closure)

    def total_members(self, node_id: str) -> int:
        return self.members.count_by_branches(self.hierarchy.descendant_ids(node_id))

    def total_collection(self, node_id: str, year: Optional[int] = None) -> float:
        """Sum of the year's payments within the subtree; 0 when nothing is in scope."""
        year = year or self.now().year
        member_ids = self.scoped_member_ids(node_id)
        if not member_ids:
            return 0
        start, end = self.year_window(year)
        return self.payments.sum_amount(member_ids, start, end)

    def monthly_collection(self, member_ids: List[str], year: int) -> List[float]:
        """Twelve monthly totals, January first, zero-filled."""
        monthly = [0] * MONTHS_IN_YEAR
        if not member_ids:
            return monthly
        start, end = self.year_window(year)
        for month, total in self.payments.sum_by_month(member_ids, start, end, self.tz_name).items():
            monthly[month - 1] = total
        return monthly

    def collections_today(self, member_ids: List[str], now: Optional[datetime] = None) -> float:
        if not member_ids:
            return 0
        start, end = self.day_window(now)
        return self.payments.sum_amount(member_ids, start, end)

    def child_performances(self, node_id: str, year: int) -> List[ChildPerformance]:
        """Each direct child with the total of its own subtree, in child (name) order."""
        return [
            ChildPerformance(
                child_id=child.entity_id,
                name=child.name,
                type=child.type.value if child.type else None,
                total=self.total_collection(child.entity_id, year),
            )
            for child in self.nodes.get_children(node_id)
        ]

    def generate_report(self, node_id: str, year: Optional[int] = None) -> CollectionReport:
        """
        Build the collection report for `node_id` and `year` (default: current year).

        Raises:
            NotFound: the node does not exist.
        """
        year = year or self.now().year
        node = self.nodes.get_by_id(node_id)
        if node is None:
            raise NotFound("Node not found")

        report = CollectionReport(
            node_id=node.entity_id,
            node_type=node.type.value if node.type else None,
            node_name=node.name,
            year=year,
        )

        member_ids = self.scoped_member_ids(node.entity_id)
        if not member_ids:
            return report

        report.monthly_collection = self.monthly_collection(member_ids, year)
        report.total_collection = sum(report.monthly_collection)
        report.total_members = len(member_ids)
        report.average_collection_per_member = average_per_member(
            report.total_collection, report.total_members)
        report.collections_today = self.collections_today(member_ids)

        ordered, top, worst = rank_children(self.child_performances(node.entity_id, year))
        report.child_performances = ordered
        report.top_performing_children = top
        report.worst_performing_children = worst

        logger.info("Collection report for %s (%s): total=%s members=%s",
                    node.entity_id, year, report.total_collection, report.total_members)
        return report
