from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.scheduling.models import (
    CancellationPolicy,
    OperatingHours,
    Reservation,
    ReservationStatus,
    Restaurant,
    SpecialPeriod,
    Table,
    TurnTimeRule,
)

_RESERVATION_COLUMNS = """
    id, restaurant_id, user_id, table_id, joined_table_id, reservation_time,
    party_size, turn_time_used, status, notes, created_at, updated_at
"""


def _reservation_from_row(row) -> Reservation:
    return Reservation(
        id=str(row["id"]),
        restaurant_id=str(row["restaurant_id"]),
        user_id=row["user_id"],
        table_id=row["table_id"],
        joined_table_id=row["joined_table_id"],
        reservation_time=row["reservation_time"],
        party_size=row["party_size"],
        turn_time_used=row["turn_time_used"],
        status=ReservationStatus(row["status"]),
        notes=row["notes"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _optional_float(value) -> float | None:
    return float(value) if value is not None else None


class SqlReservationUnit:
    """Store operations bound to one AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def load_restaurant(self, restaurant_id: str) -> Restaurant | None:
        params = {"restaurant_id": restaurant_id}
        head = (
            await self._session.execute(
                text("SELECT id, name, phone, timezone FROM restaurant WHERE id = :restaurant_id"),
                params,
            )
        ).mappings().one_or_none()
        if head is None:
            return None

        tables = await self._session.execute(
            text(
                """
                SELECT id, name, capacity_min, capacity_max, is_joinable
                FROM dining_table
                WHERE restaurant_id = :restaurant_id
                ORDER BY position, id
                """
            ),
            params,
        )
        hours = await self._session.execute(
            text(
                """
                SELECT day_of_week, open_time, close_time
                FROM operating_hours
                WHERE restaurant_id = :restaurant_id
                ORDER BY day_of_week, open_time
                """
            ),
            params,
        )
        rules = await self._session.execute(
            text(
                """
                SELECT party_size_min, party_size_max, turn_time_minutes
                FROM turn_time_rule
                WHERE restaurant_id = :restaurant_id
                ORDER BY party_size_min, party_size_max
                """
            ),
            params,
        )
        periods = await self._session.execute(
            text(
                """
                SELECT name, start_date, end_date, is_blackout, open_time, close_time, turn_time_minutes
                FROM special_period
                WHERE restaurant_id = :restaurant_id
                ORDER BY start_date, id
                """
            ),
            params,
        )
        policy_row = (
            await self._session.execute(
                text(
                    """
                    SELECT hours_before_no_fee, fee_percentage, fixed_fee_amount,
                           notes, allow_online_cancellation
                    FROM cancellation_policy
                    WHERE restaurant_id = :restaurant_id
                    """
                ),
                params,
            )
        ).mappings().one_or_none()

        policy = None
        if policy_row is not None:
            policy = CancellationPolicy(
                hours_before_no_fee=policy_row["hours_before_no_fee"],
                fee_percentage=_optional_float(policy_row["fee_percentage"]),
                fixed_fee_amount=_optional_float(policy_row["fixed_fee_amount"]),
                allow_online_cancellation=policy_row["allow_online_cancellation"],
                notes=policy_row["notes"],
            )

        return Restaurant(
            id=str(head["id"]),
            name=head["name"],
            timezone=head["timezone"],
            phone=head["phone"],
            tables=tuple(
                Table(
                    id=str(t["id"]),
                    name=t["name"],
                    capacity_min=t["capacity_min"],
                    capacity_max=t["capacity_max"],
                    is_joinable=t["is_joinable"],
                )
                for t in tables.mappings()
            ),
            operating_hours=tuple(
                OperatingHours(day_of_week=h["day_of_week"], open_time=h["open_time"], close_time=h["close_time"])
                for h in hours.mappings()
            ),
            turn_time_rules=tuple(
                TurnTimeRule(
                    party_size_min=r["party_size_min"],
                    party_size_max=r["party_size_max"],
                    turn_time_minutes=r["turn_time_minutes"],
                )
                for r in rules.mappings()
            ),
            special_periods=tuple(
                SpecialPeriod(
                    name=p["name"],
                    start_date=p["start_date"],
                    end_date=p["end_date"],
                    is_blackout=p["is_blackout"],
                    open_time=p["open_time"],
                    close_time=p["close_time"],
                    turn_time_minutes=p["turn_time_minutes"],
                )
                for p in periods.mappings()
            ),
            cancellation_policy=policy,
        )

    async def active_reservations(
        self,
        restaurant_id: str,
        starts_from: datetime,
        starts_before: datetime,
    ) -> list[Reservation]:
        result = await self._session.execute(
            text(
                f"""
                SELECT {_RESERVATION_COLUMNS}
                FROM reservation
                WHERE restaurant_id = :restaurant_id
                  AND status IN ('PENDING', 'CONFIRMED')
                  AND reservation_time >= :starts_from
                  AND reservation_time < :starts_before
                ORDER BY reservation_time
                """
            ),
            {"restaurant_id": restaurant_id, "starts_from": starts_from, "starts_before": starts_before},
        )
        return [_reservation_from_row(row) for row in result.mappings()]

    async def get_reservation(self, reservation_id: str) -> Reservation | None:
        row = (
            await self._session.execute(
                text(f"SELECT {_RESERVATION_COLUMNS} FROM reservation WHERE id = :id"),
                {"id": reservation_id},
            )
        ).mappings().one_or_none()
        return _reservation_from_row(row) if row is not None else None

    async def list_reservations(
        self,
        *,
        restaurant_id: str | None = None,
        user_id: str | None = None,
    ) -> list[Reservation]:
        result = await self._session.execute(
            text(
                f"""
                SELECT {_RESERVATION_COLUMNS}
                FROM reservation
                WHERE (CAST(:restaurant_id AS text) IS NULL OR restaurant_id = :restaurant_id)
                  AND (CAST(:user_id AS text) IS NULL OR user_id = :user_id)
                ORDER BY reservation_time DESC
                """
            ),
            {"restaurant_id": restaurant_id, "user_id": user_id},
        )
        return [_reservation_from_row(row) for row in result.mappings()]

    async def insert_reservation(self, reservation: Reservation) -> Reservation:
        row = (
            await self._session.execute(
                text(
                    f"""
                    INSERT INTO reservation (
                      id, restaurant_id, user_id, table_id, joined_table_id, reservation_time,
                      party_size, turn_time_used, status, notes, created_at, updated_at
                    ) VALUES (
                      :id, :restaurant_id, :user_id, :table_id, :joined_table_id, :reservation_time,
                      :party_size, :turn_time_used, :status, :notes, :created_at, :updated_at
                    )
                    RETURNING {_RESERVATION_COLUMNS}
                    """
                ),
                {
                    "id": reservation.id,
                    "restaurant_id": reservation.restaurant_id,
                    "user_id": reservation.user_id,
                    "table_id": reservation.table_id,
                    "joined_table_id": reservation.joined_table_id,
                    "reservation_time": reservation.reservation_time,
                    "party_size": reservation.party_size,
                    "turn_time_used": reservation.turn_time_used,
                    "status": reservation.status.value,
                    "notes": reservation.notes,
                    "created_at": reservation.created_at,
                    "updated_at": reservation.updated_at,
                },
            )
        ).mappings().one()
        return _reservation_from_row(row)

    async def update_status(
        self,
        reservation_id: str,
        *,
        expected: Iterable[ReservationStatus],
        status: ReservationStatus,
        now: datetime,
    ) -> Reservation | None:
        query = text(
            f"""
            UPDATE reservation
            SET status = :status, updated_at = :now
            WHERE id = :id AND status IN :expected
            RETURNING {_RESERVATION_COLUMNS}
            """
        ).bindparams(bindparam("expected", expanding=True))
        row = (
            await self._session.execute(
                query,
                {
                    "id": reservation_id,
                    "status": status.value,
                    "now": now,
                    "expected": [s.value for s in expected],
                },
            )
        ).mappings().one_or_none()
        return _reservation_from_row(row) if row is not None else None


class SqlReservationStore:
    """Postgres-backed store; each call outside ``transaction()`` uses its own session."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    @asynccontextmanager
    async def transaction(self, lock_keys: Sequence[str]) -> AsyncIterator[SqlReservationUnit]:
        async with self._sessionmaker() as session:
            async with session.begin():
                # Transaction-scoped advisory locks back up the booking lease.
                for key in sorted(set(lock_keys)):
                    await session.execute(
                        text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))"),
                        {"key": key},
                    )
                yield SqlReservationUnit(session)

    async def load_restaurant(self, restaurant_id: str) -> Restaurant | None:
        async with self._sessionmaker() as session:
            return await SqlReservationUnit(session).load_restaurant(restaurant_id)

    async def active_reservations(
        self,
        restaurant_id: str,
        starts_from: datetime,
        starts_before: datetime,
    ) -> list[Reservation]:
        async with self._sessionmaker() as session:
            return await SqlReservationUnit(session).active_reservations(restaurant_id, starts_from, starts_before)

    async def get_reservation(self, reservation_id: str) -> Reservation | None:
        async with self._sessionmaker() as session:
            return await SqlReservationUnit(session).get_reservation(reservation_id)

    async def list_reservations(
        self,
        *,
        restaurant_id: str | None = None,
        user_id: str | None = None,
    ) -> list[Reservation]:
        async with self._sessionmaker() as session:
            return await SqlReservationUnit(session).list_reservations(restaurant_id=restaurant_id, user_id=user_id)

    async def insert_reservation(self, reservation: Reservation) -> Reservation:
        async with self._sessionmaker() as session:
            async with session.begin():
                return await SqlReservationUnit(session).insert_reservation(reservation)

    async def update_status(
        self,
        reservation_id: str,
        *,
        expected: Iterable[ReservationStatus],
        status: ReservationStatus,
        now: datetime,
    ) -> Reservation | None:
        async with self._sessionmaker() as session:
            async with session.begin():
                return await SqlReservationUnit(session).update_status(
                    reservation_id, expected=expected, status=status, now=now
                )
