# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for class and roster endpoints."""

import pytest

from src.infrastructure.database.collections import Collection
from src.infrastructure.database.models import Student

pytestmark = pytest.mark.integration

TEACHER = "auth0|api-teacher"
OTHER_TEACHER = "auth0|api-teacher-2"
PARENT = "auth0|api-parent"


async def _create_class(client, as_principal) -> dict:
    response = await client.post(
        "/api/v1/classes",
        json={"school_name": "Maple Elementary", "class_name": "Room 4", "term": "2025-2026"},
        headers=as_principal(TEACHER, "teacher"),
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_and_list(client, as_principal) -> None:
    created = await _create_class(client, as_principal)

    assert len(created["code"]) == 6
    assert created["teacher_ids"] == [TEACHER]

    response = await client.get("/api/v1/classes", headers=as_principal(TEACHER, "teacher"))
    assert [c["id"] for c in response.json()] == [created["id"]]


@pytest.mark.asyncio
async def test_parent_cannot_create_class(client, as_principal) -> None:
    response = await client.post(
        "/api/v1/classes",
        json={"school_name": "Maple", "class_name": "Room 4", "term": "2025"},
        headers=as_principal(PARENT, "parent"),
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_other_teacher_sees_not_found(client, as_principal) -> None:
    created = await _create_class(client, as_principal)

    response = await client.get(
        f"/api/v1/classes/{created['id']}/students",
        headers=as_principal(OTHER_TEACHER, "teacher"),
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_join_by_code(client, as_principal) -> None:
    created = await _create_class(client, as_principal)
    parent = as_principal(PARENT, "parent")

    joined = await client.post(
        "/api/v1/classes/join",
        json={"code": created["code"].lower()},
        headers=parent,
    )
    again = await client.post("/api/v1/classes/join", json={"code": created["code"]}, headers=parent)
    missing = await client.post("/api/v1/classes/join", json={"code": "ZZZZZZ"}, headers=parent)

    assert joined.status_code == 200
    assert joined.json()["guardian_count"] == 1
    assert again.json()["guardian_count"] == 1
    assert missing.status_code == 404

    listed = await client.get("/api/v1/classes", headers=parent)
    assert [c["id"] for c in listed.json()] == [created["id"]]

    left = await client.post(f"/api/v1/classes/{created['id']}/leave", headers=parent)
    assert left.status_code == 204
    assert (await client.get("/api/v1/classes", headers=parent)).json() == []


@pytest.mark.asyncio
async def test_roster_flow(client, as_principal) -> None:
    created = await _create_class(client, as_principal)
    class_id = created["id"]
    teacher = as_principal(TEACHER, "teacher")

    added = await client.post(
        f"/api/v1/classes/{class_id}/students",
        json={"names": ["Emma Wilson", "Liam Chen"], "grade": "3"},
        headers=teacher,
    )
    assert added.status_code == 201
    assert added.json()["count"] == 2

    roster = {"students": [{"name": "Emma Wilson", "grade": "3"}, {"name": "Ava Patel", "grade": "3"}]}
    first = await client.put(f"/api/v1/classes/{class_id}/roster", json=roster, headers=teacher)
    second = await client.put(f"/api/v1/classes/{class_id}/roster", json=roster, headers=teacher)

    assert first.status_code == 200
    assert first.json()["created"] == 1
    assert first.json()["deleted"] == 1
    assert second.json()["created"] == 0
    assert second.json()["deleted"] == 0

    students = await client.get(f"/api/v1/classes/{class_id}/students", headers=teacher)
    assert [s["name"] for s in students.json()] == ["Ava Patel", "Emma Wilson"]

    ava = students.json()[0]["id"]
    removed = await client.delete(f"/api/v1/classes/{class_id}/students/{ava}", headers=teacher)
    assert removed.json() == {"student_id": ava, "class_id": class_id, "student_deleted": True}


@pytest.mark.asyncio
async def test_link_requires_joined_parent(client, as_principal) -> None:
    created = await _create_class(client, as_principal)
    class_id = created["id"]
    teacher = as_principal(TEACHER, "teacher")
    added = await client.post(
        f"/api/v1/classes/{class_id}/students",
        json={"names": ["Emma Wilson"]},
        headers=teacher,
    )
    student_id = added.json()["student_ids"][0]
    url = f"/api/v1/classes/{class_id}/students/{student_id}/guardians"

    before = await client.post(url, json={"guardian_id": PARENT}, headers=teacher)
    assert before.status_code == 400

    await client.post(
        "/api/v1/classes/join",
        json={"code": created["code"]},
        headers=as_principal(PARENT, "parent"),
    )
    after = await client.post(url, json={"guardian_id": PARENT}, headers=teacher)
    assert after.status_code == 204


@pytest.mark.asyncio
async def test_concurrent_modification_is_conflict(client, as_principal, monkeypatch) -> None:
    created = await _create_class(client, as_principal)
    class_id = created["id"]
    teacher = as_principal(TEACHER, "teacher")
    added = await client.post(
        f"/api/v1/classes/{class_id}/students",
        json={"names": ["Emma Wilson"], "grade": "3"},
        headers=teacher,
    )
    (student_id,) = added.json()["student_ids"]

    async def always_lose(self, record, changes):
        return False

    monkeypatch.setattr(Collection, "_write_if_unchanged", always_lose)

    response = await client.delete(
        f"/api/v1/classes/{class_id}/students/{student_id}",
        headers=teacher,
    )

    assert response.status_code == 409
    assert "Concurrent modification" in response.json()["detail"]


@pytest.mark.asyncio
async def test_reconcile_repairs_class(client, as_principal, sessionmaker) -> None:
    created = await _create_class(client, as_principal)
    class_id = created["id"]
    async with sessionmaker() as session:
        stray = await Collection(session, Student).insert_one({
            "school_id": created["school_id"],
            "name": "Half-added",
            "grade": "3",
            "class_ids": [class_id],
            "guardian_ids": [],
        })
        stray_id = stray.id

    other = await client.post(
        f"/api/v1/classes/{class_id}/reconcile",
        headers=as_principal(OTHER_TEACHER, "teacher"),
    )
    response = await client.post(
        f"/api/v1/classes/{class_id}/reconcile",
        headers=as_principal(TEACHER, "teacher"),
    )
    again = await client.post(
        f"/api/v1/classes/{class_id}/reconcile",
        headers=as_principal(TEACHER, "teacher"),
    )

    assert other.status_code == 404
    assert response.status_code == 200
    assert response.json()["detached"] == [stray_id]
    assert response.json()["deleted"] == [stray_id]
    assert response.json()["changed"] is True
    assert again.json()["changed"] is False
