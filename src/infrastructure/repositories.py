"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.

Status writes are optimistic: ``UPDATE ... WHERE id = :id AND status =
:expected``.  A write that matches no row means somebody else moved the
record first, and the caller gets ``False`` back.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from .models import IdentityModel, IdentityRideModel, MatchModel, RideModel
from src.domain.enums import MatchStatus, RideKind, RideStatus
from src.domain.errors import StoreConflict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdentityRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, identity: IdentityModel) -> IdentityModel:
        self.session.add(identity)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise StoreConflict(f"identity {identity.id} already exists") from exc
        return identity

    async def get_by_id(self, identity_id: str) -> Optional[IdentityModel]:
        return await self.session.get(IdentityModel, identity_id)


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        """Insert *ride* and its rides-by-identity history row."""
        self.session.add(ride)
        self.session.add(
            IdentityRideModel(
                identity_id=ride.owner_id,
                ride_id=ride.id,
                kind=ride.kind,
                created_at=ride.created_at or _utcnow(),
            )
        )
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: str) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_by_ids(self, ride_ids: Iterable[str]) -> list[RideModel]:
        ids = list(ride_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(RideModel).where(RideModel.id.in_(ids))
        )
        return list(result.scalars().all())

    async def get_available_hosts(
        self, *, exclude_owner: str | None = None, limit: int = 500
    ) -> list[RideModel]:
        """One bounded, oldest-first read of AVAILABLE host rides."""
        query = (
            select(RideModel)
            .where(
                RideModel.kind == RideKind.HOST,
                RideModel.status == RideStatus.AVAILABLE,
            )
            .order_by(RideModel.created_at)
            .limit(limit)
        )
        if exclude_owner:
            query = query.where(RideModel.owner_id != exclude_owner)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_available_hosts_in_cells(
        self, cells: Iterable[str], *, exclude_owner: str | None = None
    ) -> list[RideModel]:
        query = select(RideModel).where(
            RideModel.kind == RideKind.HOST,
            RideModel.status == RideStatus.AVAILABLE,
            RideModel.origin_cell.in_(list(cells)),
        )
        if exclude_owner:
            query = query.where(RideModel.owner_id != exclude_owner)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_latest_open_request(self, owner_id: str) -> Optional[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.owner_id == owner_id,
                RideModel.kind == RideKind.RIDER,
                RideModel.status == RideStatus.AVAILABLE,
            )
            .order_by(RideModel.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def list_for_identity(self, identity_id: str) -> list[RideModel]:
        """Rides from the identity's history, newest first."""
        result = await self.session.execute(
            select(IdentityRideModel.ride_id)
            .where(IdentityRideModel.identity_id == identity_id)
            .order_by(IdentityRideModel.created_at.desc())
        )
        ride_ids = list(result.scalars().all())
        rides = {r.id: r for r in await self.get_by_ids(ride_ids)}
        return [rides[i] for i in ride_ids if i in rides]

    async def transition(
        self,
        ride: RideModel,
        expected: RideStatus,
        new: RideStatus,
        *,
        consume_seat: bool = False,
    ) -> bool:
        """Conditionally move *ride* from *expected* to *new*."""
        now = _utcnow()
        values: dict = {"status": new, "updated_at": now}
        query = update(RideModel).where(
            RideModel.id == ride.id, RideModel.status == expected
        )
        if consume_seat:
            query = query.where(RideModel.seats_available >= 1)
            values["seats_available"] = RideModel.seats_available - 1

        result = await self.session.execute(
            query.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        set_committed_value(ride, "status", new)
        set_committed_value(ride, "updated_at", now)
        if consume_seat:
            set_committed_value(ride, "seats_available", ride.seats_available - 1)
        return True


class MatchRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, match: MatchModel) -> MatchModel:
        self.session.add(match)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise StoreConflict(
                f"an active match already exists for {match.active_key}"
            ) from exc
        return match

    async def get_by_id(self, match_id: str) -> Optional[MatchModel]:
        return await self.session.get(MatchModel, match_id)

    async def get_active(self, rider_id: str, ride_id: str) -> Optional[MatchModel]:
        result = await self.session.execute(
            select(MatchModel).where(
                MatchModel.active_key == active_key(rider_id, ride_id)
            )
        )
        return result.scalar_one_or_none()

    async def list_for_identity(self, identity_id: str) -> list[MatchModel]:
        result = await self.session.execute(
            select(MatchModel)
            .where(
                (MatchModel.rider_id == identity_id)
                | (MatchModel.host_id == identity_id)
            )
            .order_by(MatchModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def transition(
        self,
        match: MatchModel,
        expected: MatchStatus,
        new: MatchStatus,
        **values,
    ) -> bool:
        """Conditionally move *match* from *expected* to *new*."""
        values = {"status": new, "updated_at": _utcnow(), **values}
        result = await self.session.execute(
            update(MatchModel)
            .where(MatchModel.id == match.id, MatchModel.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        for key, value in values.items():
            set_committed_value(match, key, value)
        return True


def active_key(rider_id: str, ride_id: str) -> str:
    return f"{rider_id}:{ride_id}"
