"""
Topup Service - wallet funding requests and their staff review

A request moves pending -> approved or pending -> rejected exactly once.
Approval credits the wallet in the same transaction that flips the status.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.auth import CallerIdentity
from parcelhub.core.config import settings
from parcelhub.core.exceptions import ForbiddenError, TopupNotFoundError, ValidationException
from parcelhub.core.locks import wallet_guard
from parcelhub.core.logging import get_logger
from parcelhub.db.models.topup import Topup, TopupStatus
from parcelhub.db.models.wallet_ledger import LedgerEntryType
from parcelhub.db.unit_of_work import atomic
from parcelhub.domain.services.wallet_service import WalletService, validate_amount

logger = get_logger(__name__)


class TopupService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.wallet = WalletService(db)

    async def request_topup(
        self,
        user_id: int,
        amount: Any,
        proof_reference: Optional[str] = None,
    ) -> Topup:
        """Record a pending top-up; the balance is untouched until approval"""
        value = validate_amount(amount, max_value=settings.MAX_TOPUP_AMOUNT)
        await self.wallet.get_user(user_id)

        topup = Topup(
            user_id=user_id,
            amount=value,
            proof_reference=proof_reference,
            status=TopupStatus.PENDING,
        )
        async with atomic(self.db, "request_topup"):
            self.db.add(topup)

        logger.info(
            "Topup requested",
            extra_data={"topup_id": topup.id, "user_id": user_id, "amount": str(value)}
        )
        return topup

    async def list_topups(
        self,
        caller: CallerIdentity,
        status: Optional[TopupStatus] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[Topup], int]:
        query = select(Topup)
        if not caller.is_staff:
            query = query.where(Topup.user_id == caller.user_id)
        if status is not None:
            query = query.where(Topup.status == TopupStatus(status))

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))
        result = await self.db.execute(
            query.order_by(Topup.created_at.desc(), Topup.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), int(total or 0)

    async def _lock_topup(self, topup_id: int) -> Topup:
        result = await self.db.execute(
            select(Topup)
            .where(Topup.id == topup_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        topup = result.scalar_one_or_none()
        if topup is None:
            raise TopupNotFoundError(topup_id)
        return topup

    async def review_topup(
        self,
        topup_id: int,
        staff: CallerIdentity,
        status: TopupStatus | str,
        admin_notes: Optional[str] = None,
    ) -> Topup:
        """
        Approve or reject a pending top-up.

        Raises:
            ValidationException: target status is not approved/rejected, or the
                request was already reviewed
        """
        if not staff.is_staff:
            raise ForbiddenError()
        try:
            target = TopupStatus(status)
        except ValueError:
            raise ValidationException(f"Invalid status: {status}", field="status")
        if target == TopupStatus.PENDING:
            raise ValidationException("Status must be approved or rejected", field="status")

        owner_id = await self.db.scalar(select(Topup.user_id).where(Topup.id == topup_id))
        if owner_id is None:
            raise TopupNotFoundError(topup_id)

        async with wallet_guard(owner_id):
            async with atomic(self.db, "review_topup"):
                topup = await self._lock_topup(topup_id)
                if topup.status != TopupStatus.PENDING:
                    raise ValidationException(
                        f"Topup already {TopupStatus(topup.status).value}",
                        field="status",
                        details={"topup_id": topup_id},
                    )

                topup.status = target
                topup.admin_notes = admin_notes
                topup.reviewed_by_id = staff.user_id
                topup.reviewed_at = datetime.now(timezone.utc).replace(tzinfo=None)

                if target == TopupStatus.APPROVED:
                    user = await self.wallet.lock_user(owner_id)
                    self.wallet.credit(
                        user,
                        topup.amount,
                        LedgerEntryType.TOPUP_CREDIT,
                        topup_id=topup.id,
                        description=f"Topup #{topup.id} approved",
                    )

        logger.info(
            "Topup reviewed",
            extra_data={
                "topup_id": topup_id,
                "user_id": owner_id,
                "status": target.value,
                "staff_id": staff.user_id,
            }
        )
        return topup

    async def approve_topup(
        self, topup_id: int, staff: CallerIdentity, admin_notes: Optional[str] = None
    ) -> Topup:
        return await self.review_topup(topup_id, staff, TopupStatus.APPROVED, admin_notes)

    async def reject_topup(
        self, topup_id: int, staff: CallerIdentity, admin_notes: Optional[str] = None
    ) -> Topup:
        return await self.review_topup(topup_id, staff, TopupStatus.REJECTED, admin_notes)
