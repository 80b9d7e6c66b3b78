# mlm_system/utils/chain_walker.py
"""
Safe binary tree walking utilities.
Nodes are resolved by id on every hop, so traversal cost and cycle
safety stay explicit.
"""
from typing import Optional, Callable, List
from sqlalchemy.orm import Session
import logging

from models.member import Member

logger = logging.getLogger(__name__)


class ChainWalker:
    """
    Safe utilities for walking the parent chain and listing children.
    Prevents infinite loops on malformed back-edges.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_member(self, member_id: int) -> Optional[Member]:
        return self.session.get(Member, member_id)

    def get_children(self, parent_id: int) -> List[Member]:
        """
        Direct children of a node in creation order.

        Args:
            parent_id: Parent member ID

        Returns:
            Children ordered by createdAt, then memberID
        """
        return self.session.query(Member).filter(
            Member.parentID == parent_id
        ).order_by(
            Member.createdAt.asc(),
            Member.memberID.asc()
        ).all()

    def walk_upline(
            self,
            start_member: Member,
            callback: Callable[[Member, int], bool],
            max_depth: Optional[int] = None
    ) -> int:
        """
        Walk up the parent chain, calling callback for each ancestor.

        Args:
            start_member: Starting member (not passed to callback)
            callback: Function(member, level) -> continue_walking (bool)
            max_depth: Optional depth limit, None walks to the root

        Returns:
            Number of ancestors processed

        Example:
            def process_upline(member, level):
                print(f"Level {level}: {member.memberID}")
                return True  # Continue walking

            walker.walk_upline(member, process_upline)
        """
        current = start_member
        level = 1
        processed = 0
        visited = {start_member.memberID}

        while current.parentID is not None:
            if max_depth is not None and level > max_depth:
                logger.debug(f"Max depth ({max_depth}) reached from member {start_member.memberID}")
                break

            # Check for cycles
            if current.parentID in visited:
                logger.error(
                    f"Cycle detected: member {current.memberID} points back to "
                    f"{current.parentID} (walk started at {start_member.memberID})"
                )
                break

            parent = self.get_member(current.parentID)

            if not parent:
                logger.warning(
                    f"Parent not found: memberID={current.parentID} "
                    f"for member {current.memberID}"
                )
                break

            visited.add(parent.memberID)

            should_continue = callback(parent, level)
            processed += 1

            if not should_continue:
                break

            current = parent
            level += 1

        return processed

    def get_upline_chain(self, member: Member, max_depth: Optional[int] = None) -> List[Member]:
        """
        Get list of all members in the parent chain.

        Args:
            member: Starting member
            max_depth: Optional depth limit

        Returns:
            List of members from immediate parent to root
        """
        chain = []

        def collect(upline_member, level):
            chain.append(upline_member)
            return True  # Continue

        self.walk_upline(member, collect, max_depth)
        return chain
