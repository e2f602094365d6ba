"""
BinaryTree repository.

Data access layer for binary leg volumes.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.binary_tree import BinaryTree
from app.repositories.base import BaseRepository


class BinaryTreeRepository(BaseRepository[BinaryTree]):
    """Repository for binary tree volumes."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(BinaryTree, session)

    async def get_all_ordered(self) -> list[BinaryTree]:
        """All binary tree nodes ordered by user id."""
        result = await self.session.execute(
            select(BinaryTree).order_by(BinaryTree.user_id)
        )
        return list(result.scalars().all())

    async def subtract_leg_volume(
        self, user_id: int, leg: str, amount: Decimal
    ) -> BinaryTree | None:
        """
        Remove volume from one leg, floored at zero.

        Args:
            user_id: Tree owner
            leg: left/right (anything else is treated as left)
            amount: Volume to remove

        Returns:
            Updated node or None if the participant has no tree row
        """
        node = await self.get_by(for_update=True, user_id=user_id)
        if node is None:
            return None

        if leg == "right":
            node.right_volume = max(Decimal("0"), node.right_volume - amount)
        else:
            node.left_volume = max(Decimal("0"), node.left_volume - amount)
        return node
