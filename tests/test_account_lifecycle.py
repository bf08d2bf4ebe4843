"""
Account lifecycle tests.
Covers: soft delete, restore window, admin status updates on pending accounts,
the purge sweep, and the HTTP mapping of each failure.
"""
from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.exceptions import (
    ConflictException,
    ExpiredException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
)
from taskboard.core.permissions import Actor
from taskboard.crud.notification import crud_notification
from taskboard.crud.task import crud_task
from taskboard.crud.user import crud_user
from taskboard.db.base import utcnow
from taskboard.models.task import task_assignees
from taskboard.models.user import User
from taskboard.schemas.user import UserStatusUpdate
from taskboard.services.account_service import (
    account_service,
    purge_expired_accounts,
    within_restore_window,
)

pytestmark = pytest.mark.asyncio


def _holds_invariant(user: User) -> bool:
    return user.deleted_at is None or user.is_active is False


class TestSoftDelete:
    async def test_marks_account_pending(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        now = utcnow()
        user = await account_service.soft_delete(
            db, account_id=member.id, actor=Actor.from_user(admin), now=now
        )
        assert user.is_active is False
        assert user.deleted_at == now
        assert _holds_invariant(user)

    async def test_self_delete_is_forbidden(self, db: AsyncSession, admin: User) -> None:
        with pytest.raises(ForbiddenException):
            await account_service.soft_delete(
                db, account_id=admin.id, actor=Actor.from_user(admin)
            )
        assert admin.is_active is True
        assert admin.deleted_at is None

    async def test_member_cannot_delete(
        self, db: AsyncSession, member: User, other_member: User
    ) -> None:
        with pytest.raises(ForbiddenException):
            await account_service.soft_delete(
                db, account_id=other_member.id, actor=Actor.from_user(member)
            )
        assert other_member.deleted_at is None

    async def test_double_delete_conflicts(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        actor = Actor.from_user(admin)
        first = utcnow() - timedelta(days=2)
        await account_service.soft_delete(db, account_id=member.id, actor=actor, now=first)
        with pytest.raises(ConflictException):
            await account_service.soft_delete(db, account_id=member.id, actor=actor)
        assert member.deleted_at == first

    async def test_unknown_account(self, db: AsyncSession, admin: User) -> None:
        with pytest.raises(NotFoundException):
            await account_service.soft_delete(
                db, account_id=uuid.uuid4(), actor=Actor.from_user(admin)
            )

    async def test_assignments_survive_soft_delete(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        task = await crud_task.create_task(
            db,
            title="Keep me",
            description=None,
            priority="low",
            due_date=utcnow() + timedelta(days=3),
            created_by=admin,
            assignees=[member],
            checklist=[],
        )
        await account_service.soft_delete(
            db, account_id=member.id, actor=Actor.from_user(admin)
        )
        assert [u.id for u in task.assignees] == [member.id]


class TestRestore:
    async def test_expired_window_keeps_account_pending(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        now = utcnow()
        actor = Actor.from_user(admin)
        deleted_at = now - timedelta(days=31)
        await account_service.soft_delete(
            db, account_id=member.id, actor=actor, now=deleted_at
        )

        with pytest.raises(ExpiredException):
            await account_service.restore(db, account_id=member.id, actor=actor, now=now)

        assert member.deleted_at == deleted_at
        assert member.is_active is False

    async def test_restore_within_window(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        now = utcnow()
        actor = Actor.from_user(admin)
        await account_service.soft_delete(
            db, account_id=member.id, actor=actor, now=now - timedelta(days=10)
        )

        user = await account_service.restore(db, account_id=member.id, actor=actor, now=now)

        assert user.is_active is True
        assert user.deleted_at is None
        assert _holds_invariant(user)

    async def test_restore_on_the_boundary(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        now = utcnow()
        actor = Actor.from_user(admin)
        await account_service.soft_delete(
            db, account_id=member.id, actor=actor, now=now - timedelta(days=30)
        )
        user = await account_service.restore(db, account_id=member.id, actor=actor, now=now)
        assert user.deleted_at is None

    async def test_restore_active_account_is_invalid(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        with pytest.raises(InvalidStateException):
            await account_service.restore(
                db, account_id=member.id, actor=Actor.from_user(admin)
            )
        assert member.is_active is True

    async def test_member_cannot_restore(
        self, db: AsyncSession, admin: User, member: User, other_member: User
    ) -> None:
        await account_service.soft_delete(
            db, account_id=other_member.id, actor=Actor.from_user(admin)
        )
        with pytest.raises(ForbiddenException):
            await account_service.restore(
                db, account_id=other_member.id, actor=Actor.from_user(member)
            )
        assert other_member.deleted_at is not None

    async def test_restore_unknown_account(self, db: AsyncSession, admin: User) -> None:
        with pytest.raises(NotFoundException):
            await account_service.restore(
                db, account_id=uuid.uuid4(), actor=Actor.from_user(admin)
            )

    async def test_window_check(self) -> None:
        now = utcnow()
        assert within_restore_window(now - timedelta(days=30), now)
        assert not within_restore_window(now - timedelta(days=30, seconds=1), now)
        # naive timestamps are read back from SQLite as UTC
        naive = (now - timedelta(days=1)).replace(tzinfo=None)
        assert within_restore_window(naive, now)


class TestUpdateStatus:
    async def test_pending_account_conflicts(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        actor = Actor.from_user(admin)
        await account_service.soft_delete(db, account_id=member.id, actor=actor)

        with pytest.raises(ConflictException):
            await account_service.update_status(
                db,
                account_id=member.id,
                status_in=UserStatusUpdate(is_active=True),
                actor=actor,
            )
        assert member.is_active is False
        assert _holds_invariant(member)

    async def test_promote_member(self, db: AsyncSession, admin: User, member: User) -> None:
        user = await account_service.update_status(
            db,
            account_id=member.id,
            status_in=UserStatusUpdate(role="admin"),
            actor=Actor.from_user(admin),
        )
        assert user.role == "admin"
        assert user.is_active is True

    async def test_member_cannot_update_status(
        self, db: AsyncSession, member: User, other_member: User
    ) -> None:
        with pytest.raises(ForbiddenException):
            await account_service.update_status(
                db,
                account_id=other_member.id,
                status_in=UserStatusUpdate(is_active=False),
                actor=Actor.from_user(member),
            )

    async def test_admin_cannot_change_own_status(self, db: AsyncSession, admin: User) -> None:
        with pytest.raises(ForbiddenException):
            await account_service.update_status(
                db,
                account_id=admin.id,
                status_in=UserStatusUpdate(is_active=False),
                actor=Actor.from_user(admin),
            )
        assert admin.is_active is True
        assert admin.role == "admin"

    async def test_explicit_null_role_is_ignored(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        user = await account_service.update_status(
            db,
            account_id=member.id,
            status_in=UserStatusUpdate.model_validate({"role": None, "is_active": False}),
            actor=Actor.from_user(admin),
        )
        assert user.role == "member"
        assert user.is_active is False


class TestPurge:
    async def test_removes_exactly_expired_accounts(
        self, db: AsyncSession, admin: User, make_user
    ) -> None:
        now = utcnow()
        actor = Actor.from_user(admin)
        expired = await make_user(name="Expired", email="expired@example.com")
        boundary = await make_user(name="Boundary", email="boundary@example.com")
        recent = await make_user(name="Recent", email="recent@example.com")
        active = await make_user(name="Active", email="active@example.com")

        await account_service.soft_delete(
            db, account_id=expired.id, actor=actor, now=now - timedelta(days=31)
        )
        await account_service.soft_delete(
            db, account_id=boundary.id, actor=actor, now=now - timedelta(days=30)
        )
        await account_service.soft_delete(
            db, account_id=recent.id, actor=actor, now=now - timedelta(days=10)
        )

        assert await purge_expired_accounts(db, now) == 2

        assert await crud_user.get(db, expired.id) is None
        assert await crud_user.get(db, boundary.id) is None
        assert await crud_user.get(db, recent.id) is not None
        assert await crud_user.get(db, active.id) is not None
        assert await crud_user.get(db, admin.id) is not None

    async def test_second_run_deletes_nothing(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        now = utcnow()
        await account_service.soft_delete(
            db,
            account_id=member.id,
            actor=Actor.from_user(admin),
            now=now - timedelta(days=45),
        )
        assert await purge_expired_accounts(db, now) == 1
        assert await purge_expired_accounts(db, now) == 0

    async def test_failing_account_is_skipped(
        self,
        db: AsyncSession,
        admin: User,
        make_user,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        now = utcnow()
        actor = Actor.from_user(admin)
        stuck = await make_user(name="Stuck", email="stuck@example.com")
        gone = await make_user(name="Gone", email="gone@example.com")
        for user in (stuck, gone):
            await account_service.soft_delete(
                db, account_id=user.id, actor=actor, now=now - timedelta(days=40)
            )

        hard_delete = crud_user.hard_delete

        async def flaky_hard_delete(db: AsyncSession, *, user_id: uuid.UUID) -> int:
            if user_id == stuck.id:
                raise SQLAlchemyError("row locked")
            return await hard_delete(db, user_id=user_id)

        monkeypatch.setattr(crud_user, "hard_delete", flaky_hard_delete)

        assert await purge_expired_accounts(db, now) == 1
        assert await crud_user.get(db, gone.id) is None
        assert await crud_user.get(db, stuck.id) is not None

    async def test_purge_clears_related_rows(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        now = utcnow()
        task = await crud_task.create_task(
            db,
            title="Created by the purged account",
            description=None,
            priority="medium",
            due_date=now + timedelta(days=1),
            created_by=member,
            assignees=[member],
            checklist=[],
        )
        await crud_notification.create_notification(
            db, user_id=member.id, title="Hello", message="For the purged account"
        )
        await account_service.soft_delete(
            db,
            account_id=member.id,
            actor=Actor.from_user(admin),
            now=now - timedelta(days=40),
        )

        assert await purge_expired_accounts(db, now) == 1

        remaining_assignments = await db.execute(
            select(func.count()).select_from(task_assignees).where(
                task_assignees.c.user_id == member.id
            )
        )
        assert remaining_assignments.scalar_one() == 0
        assert await crud_notification.count_unread(db, user_id=member.id) == 0
        assert await crud_task.get(db, task.id) is not None
        assert task.created_by_id is None

    async def test_nothing_pending(self, db: AsyncSession, admin: User) -> None:
        assert await purge_expired_accounts(db, utcnow()) == 0


class TestLifecycleRoutes:
    async def test_soft_delete_route(
        self, client: AsyncClient, admin_headers: dict, member: User
    ) -> None:
        response = await client.delete(f"/api/v1/users/{member.id}", headers=admin_headers)
        assert response.status_code == 200, response.text
        data = response.json()
        assert "30 days" in data["message"]
        assert data["user"]["is_active"] is False
        assert data["user"]["deleted_at"] is not None

    async def test_self_delete_route(
        self, client: AsyncClient, admin: User, admin_headers: dict
    ) -> None:
        response = await client.delete(f"/api/v1/users/{admin.id}", headers=admin_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"

    async def test_member_cannot_call_lifecycle_routes(
        self, client: AsyncClient, member_headers: dict, other_member: User
    ) -> None:
        response = await client.delete(
            f"/api/v1/users/{other_member.id}", headers=member_headers
        )
        assert response.status_code == 403

    async def test_double_delete_route(
        self, client: AsyncClient, admin_headers: dict, member: User
    ) -> None:
        await client.delete(f"/api/v1/users/{member.id}", headers=admin_headers)
        response = await client.delete(f"/api/v1/users/{member.id}", headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "CONFLICT"

    async def test_restore_route(
        self, client: AsyncClient, admin_headers: dict, member: User
    ) -> None:
        await client.delete(f"/api/v1/users/{member.id}", headers=admin_headers)
        response = await client.put(
            f"/api/v1/users/{member.id}/restore", headers=admin_headers
        )
        assert response.status_code == 200, response.text
        assert response.json()["user"]["is_active"] is True
        assert response.json()["user"]["deleted_at"] is None

    async def test_restore_expired_route(
        self, client: AsyncClient, db: AsyncSession, admin_headers: dict, member: User
    ) -> None:
        await crud_user.update(
            db,
            db_obj=member,
            obj_in={"is_active": False, "deleted_at": utcnow() - timedelta(days=31)},
        )
        response = await client.put(
            f"/api/v1/users/{member.id}/restore", headers=admin_headers
        )
        assert response.status_code == 410
        assert response.json()["error"] == "RESTORE_WINDOW_EXPIRED"

    async def test_restore_active_route(
        self, client: AsyncClient, admin_headers: dict, member: User
    ) -> None:
        response = await client.put(
            f"/api/v1/users/{member.id}/restore", headers=admin_headers
        )
        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_STATE"

    async def test_restore_unknown_route(
        self, client: AsyncClient, admin_headers: dict
    ) -> None:
        response = await client.put(
            f"/api/v1/users/{uuid.uuid4()}/restore", headers=admin_headers
        )
        assert response.status_code == 404

    async def test_status_update_on_pending_route(
        self, client: AsyncClient, admin_headers: dict, member: User
    ) -> None:
        await client.delete(f"/api/v1/users/{member.id}", headers=admin_headers)
        response = await client.patch(
            f"/api/v1/users/{member.id}/status",
            json={"is_active": True},
            headers=admin_headers,
        )
        assert response.status_code == 409

    async def test_status_update_requires_a_field(
        self, client: AsyncClient, admin_headers: dict, member: User
    ) -> None:
        response = await client.patch(
            f"/api/v1/users/{member.id}/status", json={}, headers=admin_headers
        )
        assert response.status_code == 422

    async def test_status_update_with_null_role_route(
        self, client: AsyncClient, admin_headers: dict, member: User
    ) -> None:
        response = await client.patch(
            f"/api/v1/users/{member.id}/status",
            json={"role": None, "is_active": False},
            headers=admin_headers,
        )
        assert response.status_code == 200, response.text
        assert response.json()["role"] == "member"
        assert response.json()["is_active"] is False

    async def test_self_status_update_route(
        self, client: AsyncClient, admin: User, admin_headers: dict
    ) -> None:
        response = await client.patch(
            f"/api/v1/users/{admin.id}/status",
            json={"role": "member"},
            headers=admin_headers,
        )
        assert response.status_code == 403

    async def test_pending_account_token_rejected(
        self,
        client: AsyncClient,
        admin_headers: dict,
        member: User,
        member_headers: dict,
    ) -> None:
        await client.delete(f"/api/v1/users/{member.id}", headers=admin_headers)
        response = await client.get("/api/v1/users/me", headers=member_headers)
        assert response.status_code == 401
