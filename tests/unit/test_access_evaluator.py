# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the access control evaluator."""

import pytest

from src.core.exceptions import NotAuthenticatedError
from src.core.principal import Principal, Role
from src.domains.access import (
    AccessDecision,
    ConversationContext,
    DocumentNotAvailableError,
    DocumentNotFoundError,
    PermissionFormContext,
    PermissionSlipContext,
    ReportCardContext,
    can_view,
    enforce,
)

TEACHER = Principal("auth0|teacher", Role.TEACHER)
CLASS_TEACHER = Principal("auth0|class-teacher", Role.TEACHER)
STRANGER_TEACHER = Principal("auth0|stranger-teacher", Role.TEACHER)
GUARDIAN = Principal("auth0|guardian", Role.PARENT)
OTHER_GUARDIAN = Principal("auth0|other-guardian", Role.PARENT)


def report_card(status: str) -> ReportCardContext:
    return ReportCardContext(
        teacher_id=TEACHER.subject_id,
        status=status,
        guardian_ids=frozenset({GUARDIAN.subject_id}),
        class_teacher_ids=frozenset({CLASS_TEACHER.subject_id}),
    )


SLIP = PermissionSlipContext(
    guardian_id=GUARDIAN.subject_id,
    class_teacher_ids=frozenset({CLASS_TEACHER.subject_id}),
)


class TestReportCards:
    """Tests for report card rules."""

    def test_draft_for_own_guardian_is_forbidden(self) -> None:
        assert can_view(GUARDIAN, report_card("draft")) is AccessDecision.FORBIDDEN

    def test_draft_for_other_guardian_is_not_found(self) -> None:
        assert can_view(OTHER_GUARDIAN, report_card("draft")) is AccessDecision.NOT_FOUND

    def test_published_for_own_guardian_is_allowed(self) -> None:
        assert can_view(GUARDIAN, report_card("published")) is AccessDecision.ALLOW

    def test_published_for_other_guardian_is_not_found(self) -> None:
        assert can_view(OTHER_GUARDIAN, report_card("published")) is AccessDecision.NOT_FOUND

    @pytest.mark.parametrize("status", ["draft", "published"])
    def test_owning_teacher_allowed(self, status: str) -> None:
        assert can_view(TEACHER, report_card(status)) is AccessDecision.ALLOW

    def test_class_teacher_allowed(self) -> None:
        assert can_view(CLASS_TEACHER, report_card("draft")) is AccessDecision.ALLOW

    def test_unrelated_teacher_not_found(self) -> None:
        assert can_view(STRANGER_TEACHER, report_card("published")) is AccessDecision.NOT_FOUND

    def test_guardian_identity_acting_as_teacher(self) -> None:
        """Guardian rights follow the parent role, not the bare identity."""
        as_teacher = Principal(GUARDIAN.subject_id, Role.TEACHER)

        assert can_view(as_teacher, report_card("draft")) is AccessDecision.NOT_FOUND


class TestPermissionSlips:
    """Tests for permission slip rules."""

    def test_own_guardian_allowed(self) -> None:
        assert can_view(GUARDIAN, SLIP) is AccessDecision.ALLOW

    def test_other_guardian_not_found(self) -> None:
        assert can_view(OTHER_GUARDIAN, SLIP) is AccessDecision.NOT_FOUND

    def test_class_teacher_allowed(self) -> None:
        assert can_view(CLASS_TEACHER, SLIP) is AccessDecision.ALLOW

    def test_unrelated_teacher_not_found(self) -> None:
        assert can_view(TEACHER, SLIP) is AccessDecision.NOT_FOUND

    def test_form_template_teacher_only(self) -> None:
        form = PermissionFormContext(class_teacher_ids=frozenset({CLASS_TEACHER.subject_id}))

        assert can_view(CLASS_TEACHER, form) is AccessDecision.ALLOW
        assert can_view(GUARDIAN, form) is AccessDecision.NOT_FOUND


class TestConversations:
    """Tests for conversation rules."""

    def test_participants_only(self) -> None:
        thread = ConversationContext(
            participant_ids=frozenset({TEACHER.subject_id, GUARDIAN.subject_id})
        )

        assert can_view(TEACHER, thread) is AccessDecision.ALLOW
        assert can_view(GUARDIAN, thread) is AccessDecision.ALLOW
        assert can_view(OTHER_GUARDIAN, thread) is AccessDecision.NOT_FOUND
        assert can_view(CLASS_TEACHER, thread) is AccessDecision.NOT_FOUND


class TestEnforce:
    """Tests for enforce and the missing-document cases."""

    def test_missing_document_not_found(self) -> None:
        assert can_view(GUARDIAN, None) is AccessDecision.NOT_FOUND

    def test_missing_principal(self) -> None:
        with pytest.raises(NotAuthenticatedError):
            can_view(None, SLIP)  # type: ignore[arg-type]

    def test_enforce_allow(self) -> None:
        enforce(GUARDIAN, report_card("published"))

    def test_enforce_forbidden(self) -> None:
        with pytest.raises(DocumentNotAvailableError):
            enforce(GUARDIAN, report_card("draft"))

    def test_missing_and_hidden_raise_the_same_error(self) -> None:
        with pytest.raises(DocumentNotFoundError) as missing:
            enforce(OTHER_GUARDIAN, None)
        with pytest.raises(DocumentNotFoundError) as hidden:
            enforce(OTHER_GUARDIAN, report_card("draft"))

        assert missing.value.message == hidden.value.message
