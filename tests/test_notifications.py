"""
Notification tests.
Covers: fan-out, read/delete transitions and their authorization, listing with
the live unread count, and the retention purge.
"""
from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.exceptions import ForbiddenException, NotFoundException
from taskboard.core.permissions import Actor
from taskboard.crud.notification import crud_notification
from taskboard.db.base import utcnow
from taskboard.models.notification import STATUS_READ, STATUS_UNREAD, Notification
from taskboard.models.user import User
from taskboard.services.notification_service import (
    notification_service,
    purge_expired_notifications,
)

pytestmark = pytest.mark.asyncio


async def _notification(
    db: AsyncSession,
    user: User,
    *,
    title: str = "Heads up",
    status: str = STATUS_UNREAD,
    age: timedelta = timedelta(0),
) -> Notification:
    notification = await crud_notification.create_notification(
        db, user_id=user.id, title=title, message=f"{title} message"
    )
    notification.status = status
    notification.created_at = utcnow() - age
    await db.flush()
    return notification


class TestFanOut:
    async def test_one_notification_per_distinct_recipient(
        self, db: AsyncSession, admin: User, member: User, other_member: User
    ) -> None:
        created = await notification_service.notify_users(
            db,
            recipient_ids=[member.id, other_member.id, member.id, admin.id],
            title="New task assigned",
            message="You have work",
            exclude=admin.id,
        )
        assert sorted(n.user_id for n in created) == sorted([member.id, other_member.id])
        assert await crud_notification.count_unread(db, user_id=admin.id) == 0

    async def test_failed_recipient_is_skipped(
        self, db: AsyncSession, member: User, other_member: User
    ) -> None:
        missing = uuid.uuid4()
        created = await notification_service.notify_users(
            db,
            recipient_ids=[member.id, missing, other_member.id],
            title="Task updated",
            message="Something changed",
        )
        assert [n.user_id for n in created] == [member.id, other_member.id]
        assert await crud_notification.count_unread(db, user_id=member.id) == 1
        assert await crud_notification.count_unread(db, user_id=other_member.id) == 1
        assert await crud_notification.get_count(db, Notification.user_id == missing) == 0


class TestMarkRead:
    async def test_mark_read_is_idempotent(self, db: AsyncSession, member: User) -> None:
        notification = await _notification(db, member)
        actor = Actor.from_user(member)

        first = await notification_service.mark_read(
            db, notification_id=notification.id, actor=actor
        )
        assert first.status == STATUS_READ
        second = await notification_service.mark_read(
            db, notification_id=notification.id, actor=actor
        )
        assert second.status == STATUS_READ

    async def test_other_member_cannot_mark_read(
        self, db: AsyncSession, member: User, other_member: User
    ) -> None:
        notification = await _notification(db, member)
        with pytest.raises(ForbiddenException):
            await notification_service.mark_read(
                db, notification_id=notification.id, actor=Actor.from_user(other_member)
            )
        assert notification.status == STATUS_UNREAD

    async def test_admin_can_mark_read(
        self, db: AsyncSession, admin: User, member: User
    ) -> None:
        notification = await _notification(db, member)
        result = await notification_service.mark_read(
            db, notification_id=notification.id, actor=Actor.from_user(admin)
        )
        assert result.status == STATUS_READ

    async def test_unknown_notification(self, db: AsyncSession, member: User) -> None:
        with pytest.raises(NotFoundException):
            await notification_service.mark_read(
                db, notification_id=uuid.uuid4(), actor=Actor.from_user(member)
            )


class TestPurge:
    async def test_read_purged_unread_kept(self, db: AsyncSession, member: User) -> None:
        old_read = await _notification(
            db, member, title="N", status=STATUS_READ, age=timedelta(days=45)
        )
        old_unread = await _notification(
            db, member, title="M", status=STATUS_UNREAD, age=timedelta(days=45)
        )

        assert await purge_expired_notifications(db, utcnow()) == 1

        assert await crud_notification.get(db, old_read.id) is None
        assert await crud_notification.get(db, old_unread.id) is not None

    async def test_recent_read_notifications_survive(
        self, db: AsyncSession, member: User
    ) -> None:
        recent = await _notification(
            db, member, status=STATUS_READ, age=timedelta(days=29)
        )
        ancient_unread = await _notification(db, member, age=timedelta(days=400))

        assert await purge_expired_notifications(db, utcnow()) == 0
        assert await crud_notification.get(db, recent.id) is not None
        assert await crud_notification.get(db, ancient_unread.id) is not None

    async def test_purge_spans_all_recipients(
        self, db: AsyncSession, member: User, other_member: User
    ) -> None:
        await _notification(db, member, status=STATUS_READ, age=timedelta(days=31))
        await _notification(db, other_member, status=STATUS_READ, age=timedelta(days=60))
        now = utcnow()
        assert await purge_expired_notifications(db, now) == 2
        assert await purge_expired_notifications(db, now) == 0


class TestNotificationRoutes:
    async def test_list_newest_first_with_unread_count(
        self, client: AsyncClient, db: AsyncSession, member: User, member_headers: dict
    ) -> None:
        await _notification(db, member, title="oldest", age=timedelta(hours=3))
        await _notification(db, member, title="middle", status=STATUS_READ, age=timedelta(hours=2))
        await _notification(db, member, title="newest", age=timedelta(hours=1))

        response = await client.get(
            "/api/v1/notifications/", params={"page": 1, "size": 2}, headers=member_headers
        )
        assert response.status_code == 200, response.text
        data = response.json()
        assert [n["title"] for n in data["items"]] == ["newest", "middle"]
        assert data["total"] == 3
        assert data["pages"] == 2
        assert data["unread_count"] == 2

    async def test_unread_count_tracks_reads(
        self, client: AsyncClient, db: AsyncSession, member: User, member_headers: dict
    ) -> None:
        notification = await _notification(db, member)
        await _notification(db, member)

        response = await client.put(
            f"/api/v1/notifications/{notification.id}/read", headers=member_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "read"

        again = await client.put(
            f"/api/v1/notifications/{notification.id}/read", headers=member_headers
        )
        assert again.status_code == 200
        assert again.json()["status"] == "read"

        listing = await client.get("/api/v1/notifications/", headers=member_headers)
        assert listing.json()["unread_count"] == 1

    async def test_mark_read_forbidden_for_non_recipient(
        self,
        client: AsyncClient,
        db: AsyncSession,
        member: User,
        other_member: User,
        headers_for,
    ) -> None:
        notification = await _notification(db, member)
        response = await client.put(
            f"/api/v1/notifications/{notification.id}/read",
            headers=headers_for(other_member),
        )
        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"

    async def test_mark_all_read(
        self, client: AsyncClient, db: AsyncSession, member: User, member_headers: dict
    ) -> None:
        await _notification(db, member)
        await _notification(db, member)
        await _notification(db, member, status=STATUS_READ)

        response = await client.put("/api/v1/notifications/read-all", headers=member_headers)
        assert response.status_code == 200
        assert response.json() == {"updated": 2}

        stats = await client.get("/api/v1/notifications/stats", headers=member_headers)
        assert stats.json() == {"total": 3, "unread": 0, "read": 3}

    async def test_delete_notification(
        self, client: AsyncClient, db: AsyncSession, member: User, member_headers: dict
    ) -> None:
        notification = await _notification(db, member)
        response = await client.delete(
            f"/api/v1/notifications/{notification.id}", headers=member_headers
        )
        assert response.status_code == 204

        missing = await client.delete(
            f"/api/v1/notifications/{notification.id}", headers=member_headers
        )
        assert missing.status_code == 404

    async def test_list_all_is_admin_only(
        self,
        client: AsyncClient,
        db: AsyncSession,
        member: User,
        other_member: User,
        admin_headers: dict,
        member_headers: dict,
    ) -> None:
        await _notification(db, member)
        await _notification(db, other_member, status=STATUS_READ)

        forbidden = await client.get("/api/v1/notifications/all", headers=member_headers)
        assert forbidden.status_code == 403

        response = await client.get(
            "/api/v1/notifications/all", params={"status": "read"}, headers=admin_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["user_id"] == str(other_member.id)

    async def test_requires_authentication(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/notifications/")
        assert response.status_code == 401
