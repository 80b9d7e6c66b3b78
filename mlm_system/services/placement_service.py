# mlm_system/services/placement_service.py
"""
Binary placement service - finds the next open left/right slot under a sponsor.

Search order:
- Top to bottom (BFS over the sponsor's subtree)
- Left to right (left slot checked before right slot)

The (parentID, position) unique index is the only concurrency control.
A racing placement loses at flush time and is retried here.
"""
from collections import deque
from dataclasses import dataclass
from typing import Callable, List, Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value
import logging

from config import Config
from models.member import Member, POSITION_LEFT, POSITION_RIGHT
from mlm_system.errors import MemberNotFound, PlacementConflict, PlacementExhausted
from mlm_system.utils.chain_walker import ChainWalker

logger = logging.getLogger(__name__)

DEFAULT_MAX_VISITS = 200_000
DEFAULT_MAX_ATTEMPTS = 5

SLOT_CONSTRAINT_MARKERS = (
    "uq_member_parent_position",
    "members.parentID, members.position",
)


@dataclass(frozen=True)
class PlacementResult:
    parentId: int
    position: str


def is_slot_conflict(error: IntegrityError) -> bool:
    """True if the integrity error came from the (parentID, position) index."""
    message = str(getattr(error, "orig", error))
    return any(marker in message for marker in SLOT_CONSTRAINT_MARKERS)


class PlacementService:
    """Service for binary tree placement."""

    def __init__(self, session: Session):
        self.session = session
        self.walker = ChainWalker(session)

    # ============================================================
    # PUBLIC API
    # ============================================================

    def findPlacement(self, sponsorId: int) -> PlacementResult:
        """
        Find the shallowest, leftmost free slot in the sponsor's subtree.

        Legacy children without a position are backfilled on the way:
        first one becomes left, second one becomes right. A parent never
        gets a third effective child.

        Args:
            sponsorId: Sponsor member ID

        Returns:
            PlacementResult with parent ID and position

        Raises:
            MemberNotFound: Sponsor does not exist
            PlacementConflict: A concurrent backfill won the race
            PlacementExhausted: Safety bound exceeded (corrupted tree)
        """
        if self.walker.get_member(sponsorId) is None:
            raise MemberNotFound(f"Sponsor {sponsorId} not found")

        maxVisits = Config.get(Config.PLACEMENT_MAX_VISITS, DEFAULT_MAX_VISITS)

        queue = deque([sponsorId])
        visited = set()

        while queue:
            parentId = queue.popleft()
            if parentId in visited:
                continue
            visited.add(parentId)

            if len(visited) > maxVisits:
                logger.critical(
                    f"Placement search under sponsor {sponsorId} exceeded "
                    f"{maxVisits} visited nodes - tree is corrupted"
                )
                raise PlacementExhausted(
                    f"Binary placement search exceeded safe limit ({maxVisits})"
                )

            leftChild, rightChild, unpositioned = self._partitionChildren(parentId)

            if leftChild is None and unpositioned:
                leftChild = unpositioned.pop(0)
                self._backfillPosition(leftChild, POSITION_LEFT)

            if rightChild is None and unpositioned:
                rightChild = unpositioned.pop(0)
                self._backfillPosition(rightChild, POSITION_RIGHT)

            if leftChild is None:
                return PlacementResult(parentId=parentId, position=POSITION_LEFT)
            if rightChild is None:
                return PlacementResult(parentId=parentId, position=POSITION_RIGHT)

            queue.append(leftChild.memberID)
            queue.append(rightChild.memberID)

            # Overpopulated legacy parents stay traversable in creation order
            for extra in unpositioned:
                queue.append(extra.memberID)

        raise PlacementExhausted(f"Unable to find binary placement under sponsor {sponsorId}")

    def placeMember(
            self,
            sponsorId: int,
            build: Callable[[int, str], Member]
    ) -> Member:
        """
        Find a slot and insert the member built for it, retrying on slot races.

        Each attempt runs in its own SAVEPOINT so a lost race leaves no
        trace. Does not commit.

        Args:
            sponsorId: Sponsor member ID
            build: Function(parentId, position) -> new, unsaved Member

        Returns:
            The flushed Member

        Raises:
            PlacementConflict: Every attempt lost its race
            PlacementExhausted: See findPlacement
        """
        maxAttempts = Config.get(Config.PLACEMENT_MAX_ATTEMPTS, DEFAULT_MAX_ATTEMPTS)
        lastError: Optional[Exception] = None

        for attempt in range(1, maxAttempts + 1):
            try:
                with self.session.begin_nested():
                    placement = self.findPlacement(sponsorId)
                    member = build(placement.parentId, placement.position)
                    self.session.add(member)
                    self.session.flush()

                logger.info(
                    f"Placed member {member.memberID} under {placement.parentId} "
                    f"({placement.position}), sponsor {sponsorId}, attempt {attempt}"
                )
                return member

            except PlacementConflict as e:
                lastError = e
            except IntegrityError as e:
                if not is_slot_conflict(e):
                    raise
                lastError = e

            logger.warning(
                f"Placement conflict under sponsor {sponsorId} "
                f"(attempt {attempt}/{maxAttempts}): {lastError}"
            )

        raise PlacementConflict(
            f"Placement under sponsor {sponsorId} failed after {maxAttempts} attempts"
        ) from lastError

    # ============================================================
    # INTERNALS
    # ============================================================

    def _partitionChildren(self, parentId: int):
        """Split children into (left, right, unpositioned-in-creation-order)."""
        leftChild = None
        rightChild = None
        unpositioned: List[Member] = []

        for child in self.walker.get_children(parentId):
            if child.position == POSITION_LEFT:
                leftChild = child
            elif child.position == POSITION_RIGHT:
                rightChild = child
            else:
                unpositioned.append(child)

        return leftChild, rightChild, unpositioned

    def _backfillPosition(self, child: Member, position: str) -> None:
        """
        Assign a position to a legacy child, guarded on position IS NULL.

        Raises:
            PlacementConflict: The child or the slot was taken concurrently
        """
        try:
            result = self.session.execute(
                update(Member)
                .where(Member.memberID == child.memberID)
                .where(Member.position.is_(None))
                .values(position=position)
                .execution_options(synchronize_session=False)
            )
        except IntegrityError as e:
            raise PlacementConflict(
                f"Slot {position} under {child.parentID} taken during backfill"
            ) from e

        if result.rowcount != 1:
            raise PlacementConflict(
                f"Member {child.memberID} was backfilled concurrently"
            )

        set_committed_value(child, "position", position)
        logger.info(
            f"Backfilled legacy member {child.memberID} as {position} "
            f"under {child.parentID}"
        )
