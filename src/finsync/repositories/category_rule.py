"""Category rule repository."""
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Integer, String, Text, Uuid, literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.base import utcnow
from finsync.models.category_rule import CategoryRule
from finsync.models.enums import RuleCreator, RuleField, RuleOperator
from finsync.repositories.base import BaseRepository


class CategoryRuleRepository(BaseRepository[CategoryRule]):
    """Repository for CategoryRule model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, CategoryRule)

    async def list_active(self, user_id: UUID) -> list[CategoryRule]:
        """Get a snapshot of the user's active rules."""
        result = await self.db.execute(
            select(CategoryRule).where(
                CategoryRule.user_id == user_id, CategoryRule.is_active.is_(True)
            )
        )
        return list(result.scalars().all())

    async def insert_learned_rule(
        self,
        user_id: UUID,
        category_id: UUID,
        field: RuleField,
        operator: RuleOperator,
        pattern: str,
        priority: int,
        learned_from_transaction_id: UUID | None = None,
        created_by: RuleCreator = RuleCreator.USER,
    ) -> UUID | None:
        """Insert a rule unless an identical active rule already exists.

        The existence check and the insert are one statement, so two
        concurrent learners cannot both insert.

        Returns:
            Id of the new rule, or None when an identical active rule exists
        """
        table = CategoryRule.__table__
        existing = table.alias("existing")
        now = utcnow()
        duplicate = (
            select(existing.c.id)
            .where(
                existing.c.user_id == user_id,
                existing.c.category_id == category_id,
                existing.c.field == field.value,
                existing.c.operator == operator.value,
                existing.c.pattern == pattern,
                existing.c.is_active.is_(True),
            )
        )
        source = select(
            literal(uuid4(), Uuid()),
            literal(user_id, Uuid()),
            literal(category_id, Uuid()),
            literal(field.value, String()),
            literal(operator.value, String()),
            literal(pattern, Text()),
            literal(priority, Integer()),
            literal(True, Boolean()),
            literal(learned_from_transaction_id, Uuid()),
            literal(created_by.value, String()),
            literal(now, DateTime(timezone=True)),
            literal(now, DateTime(timezone=True)),
        ).where(~duplicate.exists())
        stmt = (
            self._insert(table)
            .from_select(
                [
                    "id",
                    "user_id",
                    "category_id",
                    "field",
                    "operator",
                    "pattern",
                    "priority",
                    "is_active",
                    "learned_from_transaction_id",
                    "created_by",
                    "created_at",
                    "updated_at",
                ],
                source,
            )
            .returning(table.c.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
