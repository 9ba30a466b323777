# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class API endpoints.

This module provides endpoints for classes and their membership:
- POST / - Create a school and class (teacher)
- GET / - List the caller's classes
- POST /join - Join a class by code (parent)
- POST /{class_id}/leave - Leave a class (parent)
- GET /{class_id}/students - List students (teacher)
- POST /{class_id}/students - Add students by name (teacher)
- PUT /{class_id}/roster - Replace the roster (teacher)
- DELETE /{class_id}/students/{student_id} - Remove a student (teacher)
- POST /{class_id}/students/{student_id}/guardians - Link a guardian (teacher)
- DELETE /{class_id}/students/{student_id}/guardians/{guardian_id} - Unlink (teacher)
- POST /{class_id}/reconcile - Repair half-applied membership (teacher)

Classes the caller does not teach are reported as not found.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import (
    get_db,
    require_parent,
    require_principal,
    require_teacher,
)
from src.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from src.core.principal import Principal
from src.domains.class_ import ClassService
from src.domains.membership import RosterEntry
from src.domains.user import UserService
from src.models.class_ import (
    AddStudentsRequest,
    AddStudentsResponse,
    ClassCreateRequest,
    ClassResponse,
    GuardianLinkRequest,
    JoinClassRequest,
    ReconcileResponse,
    RemoveStudentResponse,
    ReplaceRosterRequest,
    RosterResponse,
    StudentResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> ClassService:
    """Get class service instance.

    Args:
        db: Database session.

    Returns:
        Configured ClassService instance.
    """
    return ClassService(db=db)


async def _sync_principal(db: AsyncSession, principal: Principal) -> None:
    """Record the principal's role on its user record."""
    await UserService(db).sync_user(principal.subject_id, role=principal.role)


def _class_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Class not found",
    )


@router.post(
    "",
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create class",
    description="Create a school and a class taught by the caller.",
)
async def create_class(
    data: ClassCreateRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    """Create a school and class for a teacher.

    Returns:
        Created class, including its join code.
    """
    await _sync_principal(db, principal)
    service = _get_service(db)

    try:
        return await service.create_teacher_class(
            teacher_id=principal.subject_id,
            school_name=data.school_name,
            class_name=data.class_name,
            term=data.term,
        )
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )
    except ConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        )


@router.get(
    "",
    response_model=list[ClassResponse],
    summary="List classes",
    description="Classes the caller teaches or has joined.",
)
async def list_classes(
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> list[ClassResponse]:
    """List the caller's classes."""
    service = _get_service(db)
    if principal.is_teacher:
        return await service.list_classes_for_teacher(principal.subject_id)
    return await service.list_classes_for_guardian(principal.subject_id)


@router.post(
    "/join",
    response_model=ClassResponse,
    summary="Join class by code",
)
async def join_class(
    data: JoinClassRequest,
    principal: Principal = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
) -> ClassResponse:
    """Join a class by its code. Joining twice is a no-op."""
    await _sync_principal(db, principal)
    service = _get_service(db)

    try:
        return await service.join_class(principal.subject_id, data.code)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message,
        )
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )


@router.post(
    "/{class_id}/leave",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Leave class",
)
async def leave_class(
    class_id: str,
    principal: Principal = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Remove the calling parent from a class."""
    service = _get_service(db)

    try:
        await service.leave_class(principal.subject_id, class_id)
    except NotFoundError:
        raise _class_not_found()
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )


@router.get(
    "/{class_id}/students",
    response_model=list[StudentResponse],
    summary="List students",
)
async def list_students(
    class_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> list[StudentResponse]:
    """List the students of one of the caller's classes."""
    service = _get_service(db)

    try:
        return await service.list_students(principal.subject_id, class_id)
    except NotFoundError:
        raise _class_not_found()


@router.post(
    "/{class_id}/students",
    response_model=AddStudentsResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add students by name",
)
async def add_students(
    class_id: str,
    data: AddStudentsRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> AddStudentsResponse:
    """Create students in one of the caller's classes."""
    service = _get_service(db)

    try:
        student_ids = await service.add_students_by_name(
            principal.subject_id,
            class_id,
            data.names,
            data.grade,
        )
    except NotFoundError:
        raise _class_not_found()
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return AddStudentsResponse(student_ids=student_ids, count=len(student_ids))


@router.put(
    "/{class_id}/roster",
    response_model=RosterResponse,
    summary="Replace roster",
    description="Replace the class's students. Repeating the same request changes nothing.",
)
async def replace_roster(
    class_id: str,
    data: ReplaceRosterRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> RosterResponse:
    """Replace the roster of one of the caller's classes."""
    service = _get_service(db)
    entries = [RosterEntry(name=s.name, grade=s.grade) for s in data.students]

    try:
        result = await service.replace_roster(principal.subject_id, class_id, entries)
    except NotFoundError:
        raise _class_not_found()
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return RosterResponse(
        student_ids=result.student_ids,
        created=result.created,
        removed=result.removed,
        deleted=result.deleted,
    )


@router.delete(
    "/{class_id}/students/{student_id}",
    response_model=RemoveStudentResponse,
    summary="Remove student",
)
async def remove_student(
    class_id: str,
    student_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> RemoveStudentResponse:
    """Remove a student; a student left without classes is deleted."""
    service = _get_service(db)

    try:
        deleted = await service.remove_student(principal.subject_id, class_id, student_id)
    except NotFoundError:
        raise _class_not_found()

    return RemoveStudentResponse(
        student_id=student_id,
        class_id=class_id,
        student_deleted=deleted,
    )


@router.post(
    "/{class_id}/students/{student_id}/guardians",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Link guardian to student",
)
async def link_guardian(
    class_id: str,
    student_id: str,
    data: GuardianLinkRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Link a guardian who joined the class to one of its students."""
    service = _get_service(db)

    try:
        await service.link_guardian_to_student(
            principal.subject_id,
            class_id,
            student_id,
            data.guardian_id,
        )
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message,
        )
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )


@router.delete(
    "/{class_id}/students/{student_id}/guardians/{guardian_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unlink guardian from student",
)
async def unlink_guardian(
    class_id: str,
    student_id: str,
    guardian_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Remove a guardian link from one of the class's students."""
    service = _get_service(db)

    try:
        await service.unlink_guardian_from_student(
            principal.subject_id,
            class_id,
            student_id,
            guardian_id,
        )
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message,
        )


@router.post(
    "/{class_id}/reconcile",
    response_model=ReconcileResponse,
    summary="Reconcile class membership",
    description="Finish any membership change a failed request left half-applied.",
)
async def reconcile_class(
    class_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> ReconcileResponse:
    """Repair the student and guardian references of one of the caller's classes."""
    service = _get_service(db)

    try:
        report = await service.reconcile(principal.subject_id, class_id)
    except NotFoundError:
        raise _class_not_found()

    return ReconcileResponse(
        class_id=class_id,
        completed=report.completed,
        dropped=report.dropped,
        detached=report.detached,
        deleted=report.deleted,
        guardians_dropped=report.guardians_dropped,
        changed=report.changed,
    )
