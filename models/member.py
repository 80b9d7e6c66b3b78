"""
Member model - a node of the binary referral tree.

parentID is a back-edge, not ownership: nodes are looked up by id and
never hold each other in memory. (parentID, position) is unique when both
are set, so a parent has at most one left and one right child, while any
number of roots (parentID NULL, position NULL) may coexist.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Index, CheckConstraint, text
from models.base import Base, AuditMixin

POSITION_LEFT = "left"
POSITION_RIGHT = "right"

ROLE_ADMIN = "admin"
ROLE_USER = "user"


class Member(Base, AuditMixin):
    __tablename__ = 'members'

    # Primary key
    memberID = Column(Integer, primary_key=True, autoincrement=True)

    # Identity
    name = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, unique=True)
    role = Column(String, nullable=False, default=ROLE_USER)  # admin, user

    # Code shared with new signups
    referralCode = Column(String, nullable=False, unique=True)

    # Binary placement, set once at creation
    parentID = Column(Integer, ForeignKey('members.memberID'), nullable=True, index=True)
    position = Column(String(5), nullable=True, index=True)  # left, right, NULL for roots/legacy

    __table_args__ = (
        CheckConstraint(
            "position IS NULL OR position IN ('left', 'right')",
            name='ck_member_position'
        ),
        Index(
            'uq_member_parent_position',
            'parentID',
            'position',
            unique=True,
            sqlite_where=text("parentID IS NOT NULL AND position IS NOT NULL"),
            postgresql_where=text('"parentID" IS NOT NULL AND position IS NOT NULL'),
        ),
    )

    @property
    def isRoot(self) -> bool:
        return self.parentID is None

    def __repr__(self):
        return (
            f"<Member(memberID={self.memberID}, parentID={self.parentID}, "
            f"position={self.position})>"
        )
