"""
ISBN pool management.

Generating a prefix's block walks the generation state machine:

    pending -> generating -> completed
               generating -> failed -> generating (retry)

ISBNs are inserted as "available" pool records in batches. Each batch is
committed together with the prefix's generated_count, which is the resume
offset: a retry after a failure continues from the first ISBN that was not
persisted, so nothing is emitted twice.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from publisher_royalties.core.config import settings
from publisher_royalties.core.exceptions import ValidationError
from publisher_royalties.models.isbn import GenerationStatus, Isbn, IsbnPrefix, IsbnStatus
from publisher_royalties.services.isbn import format_prefix, generate_block, normalize_prefix, transition, validate_block_size
from publisher_royalties.services.lifetime_sales import QueryScope

logger = logging.getLogger(__name__)


class IsbnPoolService:
    """Creates ISBN prefixes and fills the tenant's ISBN pool from them."""

    def __init__(self, batch_size: Optional[int] = None):
        self.batch_size = batch_size or settings.ISBN_INSERT_BATCH_SIZE

    async def create_prefix(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        prefix: str,
        block_size: int,
        description: Optional[str] = None,
    ) -> IsbnPrefix:
        """
        Register a prefix in pending state.

        Raises:
            ValidationError: bad prefix or block size, or prefix already
                registered for the tenant
        """
        normalized = normalize_prefix(prefix)
        validate_block_size(normalized, block_size)

        existing = await db.execute(
            select(IsbnPrefix.id).where(
                IsbnPrefix.tenant_id == tenant_id,
                IsbnPrefix.prefix == normalized,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ValidationError(
                f"Prefix {format_prefix(normalized)} is already registered",
                prefix=normalized,
            )

        record = IsbnPrefix(
            tenant_id=tenant_id,
            prefix=normalized,
            block_size=block_size,
            description=description,
            generation_status=GenerationStatus.PENDING,
            generated_count=0,
        )
        db.add(record)
        await db.flush()

        logger.info(f"Registered ISBN prefix {format_prefix(normalized)} with block size {block_size}")
        return record

    async def _insert_batch(self, db: AsyncSession, record: IsbnPrefix, batch: List[str]) -> None:
        now = datetime.utcnow()
        await db.execute(
            insert(Isbn),
            [
                {
                    "id": uuid.uuid4(),
                    "tenant_id": record.tenant_id,
                    "prefix_id": record.id,
                    "isbn_13": isbn_13,
                    "status": IsbnStatus.AVAILABLE,
                    "created_at": now,
                }
                for isbn_13 in batch
            ],
        )
        record.generated_count += len(batch)
        await db.commit()
        logger.debug(f"Persisted {record.generated_count}/{record.block_size} ISBNs for prefix {record.prefix}")

    async def generate(self, db: AsyncSession, record: IsbnPrefix) -> IsbnPrefix:
        """
        Generate (or resume generating) a prefix's ISBN block.

        Commits after every batch. On failure the prefix is marked failed
        with the error message and the error is re-raised.
        """
        record.generation_status = transition(record.generation_status, GenerationStatus.GENERATING)
        record.generation_error = None
        await db.commit()

        start = record.generated_count
        logger.info(
            f"Generating ISBNs for prefix {format_prefix(record.prefix)} "
            f"from {start} to {record.block_size}"
        )

        try:
            batch: List[str] = []
            for isbn_13 in generate_block(record.prefix, record.block_size, start=start):
                batch.append(isbn_13)
                if len(batch) >= self.batch_size:
                    await self._insert_batch(db, record, batch)
                    batch = []
            if batch:
                await self._insert_batch(db, record, batch)

            record.generation_status = transition(record.generation_status, GenerationStatus.COMPLETED)
            await db.commit()

        except Exception as e:
            logger.error(f"ISBN generation failed for prefix {record.prefix}: {e}")
            await db.rollback()
            await db.refresh(record)
            record.generation_status = transition(record.generation_status, GenerationStatus.FAILED)
            record.generation_error = str(e)
            await db.commit()
            raise

        logger.info(f"Completed ISBN block for prefix {format_prefix(record.prefix)}: {record.generated_count} ISBNs")
        return record

    async def count_available(self, db: AsyncSession, scope: QueryScope, prefix_id: Optional[uuid.UUID] = None) -> int:
        stmt = select(func.count(Isbn.id)).where(Isbn.status == IsbnStatus.AVAILABLE)
        if prefix_id is not None:
            stmt = stmt.where(Isbn.prefix_id == prefix_id)
        result = await db.execute(scope.apply(stmt, Isbn))
        return int(result.scalar())
