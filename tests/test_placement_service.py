# tests/test_placement_service.py
"""
Tests for binary placement.

Placement order is BFS over the sponsor's subtree, left before right.
Legacy children without a position are backfilled left then right and a
parent never gets a third effective child.

Run:
    pytest tests/test_placement_service.py -v
"""
from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from config import Config
from models import Member
from mlm_system.errors import MemberNotFound, PlacementConflict, PlacementExhausted
from mlm_system.services.placement_service import PlacementService, PlacementResult
from mlm_system.services.registration_service import RegistrationService


def _new_member(n):
    """Build function for placeMember."""

    def build(parentId, position):
        return Member(
            name=f"placed{n}",
            email=f"placed{n}@example.com",
            referralCode=f"PLACED{n:04d}",
            parentID=parentId,
            position=position
        )

    return build


# =============================================================================
# TEST CLASS: findPlacement
# =============================================================================

class TestFindPlacement:
    """Tests for the BFS slot search."""

    def test_empty_sponsor_gets_left(self, session, make_member):
        sponsor = make_member()

        result = PlacementService(session).findPlacement(sponsor.memberID)

        assert result == PlacementResult(parentId=sponsor.memberID, position="left")

    def test_left_taken_gets_right(self, session, make_member):
        sponsor = make_member()
        make_member(parent=sponsor, position="left")

        result = PlacementService(session).findPlacement(sponsor.memberID)

        assert result == PlacementResult(parentId=sponsor.memberID, position="right")

    def test_only_right_taken_gets_left(self, session, make_member):
        sponsor = make_member()
        make_member(parent=sponsor, position="right")

        result = PlacementService(session).findPlacement(sponsor.memberID)

        assert result == PlacementResult(parentId=sponsor.memberID, position="left")

    def test_shallowest_leftmost_slot_wins(self, session, make_member):
        """
        TEST: Sponsor full, left child's left slot free.

        Placement returns the left child's left slot, not anything under
        the right child.
        """
        sponsor = make_member()
        left = make_member(parent=sponsor, position="left")
        make_member(parent=sponsor, position="right")

        result = PlacementService(session).findPlacement(sponsor.memberID)

        assert result == PlacementResult(parentId=left.memberID, position="left")

    def test_level_order_before_depth(self, session, make_member):
        """
        TEST: Left child full, right child empty.

        Right child's left slot (depth 2) beats anything at depth 3.
        """
        sponsor = make_member()
        left = make_member(parent=sponsor, position="left")
        right = make_member(parent=sponsor, position="right")
        make_member(parent=left, position="left")
        make_member(parent=left, position="right")

        result = PlacementService(session).findPlacement(sponsor.memberID)

        assert result == PlacementResult(parentId=right.memberID, position="left")

    def test_search_stays_inside_sponsor_subtree(self, session, make_member):
        root = make_member()
        sponsor = make_member(parent=root, position="right")

        result = PlacementService(session).findPlacement(sponsor.memberID)

        assert result.parentId == sponsor.memberID

    def test_unknown_sponsor(self, session):
        with pytest.raises(MemberNotFound):
            PlacementService(session).findPlacement(999999)

    def test_visit_cap_raises_exhausted(self, session, make_member, config_override):
        """
        TEST: Safety bound exceeded -> PlacementExhausted, no endless loop.
        """
        config_override(Config.PLACEMENT_MAX_VISITS, 2)

        sponsor = make_member()
        left = make_member(parent=sponsor, position="left")
        make_member(parent=sponsor, position="right")
        make_member(parent=left, position="left")
        make_member(parent=left, position="right")

        with pytest.raises(PlacementExhausted):
            PlacementService(session).findPlacement(sponsor.memberID)


# =============================================================================
# TEST CLASS: legacy backfill
# =============================================================================

class TestLegacyBackfill:
    """Tests for children created before positions existed."""

    def test_backfill_left_then_right_in_creation_order(self, session, make_member):
        sponsor = make_member()
        first = make_member(parent=sponsor)
        second = make_member(parent=sponsor)

        result = PlacementService(session).findPlacement(sponsor.memberID)
        session.commit()

        session.refresh(first)
        session.refresh(second)
        assert first.position == "left"
        assert second.position == "right"
        assert result == PlacementResult(parentId=first.memberID, position="left")

    def test_third_legacy_child_never_positioned(self, session, make_member):
        """
        TEST: Three legacy children -> left, right, and the third stays NULL.

        The third child is still traversed, after the positioned ones.
        """
        sponsor = make_member()
        first = make_member(parent=sponsor)
        second = make_member(parent=sponsor)
        third = make_member(parent=sponsor)

        service = PlacementService(session)

        # Fill first's and second's slots so the search reaches the third
        for n in range(4):
            service.placeMember(sponsor.memberID, _new_member(n))
        session.commit()

        session.refresh(third)
        assert third.position is None

        result = service.findPlacement(sponsor.memberID)
        session.commit()

        session.refresh(third)
        assert third.position is None
        assert result == PlacementResult(parentId=third.memberID, position="left")

        positions = [
            c.position for c in session.query(Member).filter_by(parentID=sponsor.memberID)
        ]
        assert positions.count("left") == 1
        assert positions.count("right") == 1

    def test_single_legacy_child_fills_missing_right(self, session, make_member):
        sponsor = make_member()
        make_member(parent=sponsor, position="left")
        legacy = make_member(parent=sponsor)

        PlacementService(session).findPlacement(sponsor.memberID)
        session.commit()

        session.refresh(legacy)
        assert legacy.position == "right"

    def test_backfill_race_lost_raises_conflict(self, session, make_member, monkeypatch):
        """
        TEST: Guarded UPDATE matches no row (someone else backfilled first).
        """
        sponsor = make_member()
        child = make_member(parent=sponsor, position="left")

        # Children were read while the child still looked unpositioned
        monkeypatch.setattr(
            PlacementService,
            "_partitionChildren",
            lambda self, parentId: (None, None, [child])
        )

        with pytest.raises(PlacementConflict):
            PlacementService(session).findPlacement(sponsor.memberID)


# =============================================================================
# TEST CLASS: placeMember
# =============================================================================

class TestPlaceMember:
    """Tests for insert-with-retry."""

    def test_sequential_placements_fill_levels(self, session, make_member):
        """
        TEST: 14 placements under one sponsor build a complete 3-level tree.
        """
        sponsor = make_member()
        service = PlacementService(session)

        placed = [service.placeMember(sponsor.memberID, _new_member(n)) for n in range(14)]
        session.commit()

        # Level 1
        assert (placed[0].parentID, placed[0].position) == (sponsor.memberID, "left")
        assert (placed[1].parentID, placed[1].position) == (sponsor.memberID, "right")
        # Level 2 in BFS order
        assert (placed[2].parentID, placed[2].position) == (placed[0].memberID, "left")
        assert (placed[3].parentID, placed[3].position) == (placed[0].memberID, "right")
        assert (placed[4].parentID, placed[4].position) == (placed[1].memberID, "left")
        assert (placed[5].parentID, placed[5].position) == (placed[1].memberID, "right")
        # Level 3 starts under the leftmost level-2 node
        assert (placed[6].parentID, placed[6].position) == (placed[2].memberID, "left")
        assert (placed[13].parentID, placed[13].position) == (placed[5].memberID, "right")

    def test_binary_invariant_after_many_placements(self, session, make_member):
        """
        TEST: After 120 placements no parent has two children on one side
        or more than two children.
        """
        sponsor = make_member()
        service = PlacementService(session)

        for n in range(120):
            service.placeMember(sponsor.memberID, _new_member(n))
        session.commit()

        members = session.query(Member).filter(Member.parentID.isnot(None)).all()
        slots = Counter((m.parentID, m.position) for m in members)
        children = Counter(m.parentID for m in members)

        assert all(count == 1 for count in slots.values())
        assert all(count <= 2 for count in children.values())
        assert all(m.position in ("left", "right") for m in members)

    def test_retry_after_slot_race(self, session, make_member, monkeypatch):
        """
        TEST: First attempt targets a slot that was just taken.

        The insert hits the (parentID, position) index, the savepoint rolls
        back, and the second attempt lands on the next free slot.
        """
        sponsor = make_member()
        make_member(parent=sponsor, position="left")

        original = PlacementService.findPlacement
        calls = []

        def stale_then_real(self, sponsorId):
            calls.append(sponsorId)
            if len(calls) == 1:
                return PlacementResult(parentId=sponsor.memberID, position="left")
            return original(self, sponsorId)

        monkeypatch.setattr(PlacementService, "findPlacement", stale_then_real)

        member = PlacementService(session).placeMember(sponsor.memberID, _new_member(1))
        session.commit()

        assert len(calls) == 2
        assert (member.parentID, member.position) == (sponsor.memberID, "right")
        assert session.query(Member).filter_by(parentID=sponsor.memberID).count() == 2

    def test_conflict_surfaces_after_bounded_attempts(
            self, session, make_member, monkeypatch, config_override
    ):
        config_override(Config.PLACEMENT_MAX_ATTEMPTS, 3)

        sponsor = make_member()
        make_member(parent=sponsor, position="left")

        calls = []

        def always_stale(self, sponsorId):
            calls.append(sponsorId)
            return PlacementResult(parentId=sponsor.memberID, position="left")

        monkeypatch.setattr(PlacementService, "findPlacement", always_stale)

        with pytest.raises(PlacementConflict):
            PlacementService(session).placeMember(sponsor.memberID, _new_member(1))

        assert len(calls) == 3
        session.rollback()
        assert session.query(Member).filter_by(parentID=sponsor.memberID).count() == 1

    def test_unrelated_integrity_error_not_retried(self, session, make_member):
        """
        TEST: Duplicate email is not a slot race and propagates immediately.
        """
        sponsor = make_member()

        def duplicate_email(parentId, position):
            return Member(
                name="dup",
                email=sponsor.email,
                referralCode="DUPL0001",
                parentID=parentId,
                position=position
            )

        with pytest.raises(IntegrityError):
            PlacementService(session).placeMember(sponsor.memberID, duplicate_email)


# =============================================================================
# TEST CLASS: database constraint
# =============================================================================

class TestSlotConstraint:
    """The unique index is the last line of defence."""

    def test_second_left_child_rejected(self, session, make_member):
        sponsor = make_member()
        make_member(parent=sponsor, position="left")

        with pytest.raises(IntegrityError):
            make_member(parent=sponsor, position="left")

    def test_many_roots_allowed(self, session, make_member):
        for _ in range(3):
            make_member()

        assert session.query(Member).filter(Member.parentID.is_(None)).count() == 3


# =============================================================================
# TEST CLASS: concurrent placement
# =============================================================================

class TestConcurrentPlacement:
    """Many registrations racing for slots under one sponsor."""

    def test_concurrent_registrations_keep_binary_invariant(self, engine, session, make_member):
        """
        TEST: 120 registrations from 16 threads, one session each.

        Every attempt either succeeds or raises PlacementConflict, and no
        (parentID, position) slot is ever taken twice.
        """
        sponsor = make_member()
        sponsorId = sponsor.memberID
        sponsorCode = sponsor.referralCode
        # Release the main session's lock before the workers start
        session.rollback()

        Session = sessionmaker(bind=engine)

        def register(n):
            worker = Session()
            try:
                RegistrationService(worker).registerMember(
                    f"concurrent{n}", f"concurrent{n}@example.com", sponsorCode
                )
                return "ok"
            except PlacementConflict:
                return "conflict"
            finally:
                worker.close()

        with ThreadPoolExecutor(max_workers=16) as pool:
            outcomes = Counter(pool.map(register, range(120)))

        assert set(outcomes) <= {"ok", "conflict"}
        assert outcomes["ok"] > 0

        members = session.query(Member).filter(Member.parentID.isnot(None)).all()
        slots = Counter((m.parentID, m.position) for m in members)

        assert len(members) == outcomes["ok"]
        assert all(count == 1 for count in slots.values())
        assert all(m.position in ("left", "right") for m in members)
        assert session.query(Member).filter_by(parentID=sponsorId).count() == 2
