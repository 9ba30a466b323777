# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for SchoolConnect.

Each domain module provides a service class over the collection adapter
and declares its own exceptions on top of the shared error taxonomy.

Domains:
    user: Identity-backed user records.
    membership: Class, student and guardian reciprocity.
    class_code: Join code issue and resolution.
    class_: Teacher and parent class operations.
    lifecycle: Permission slip and report card state machines.
    permission_slip: Calendar events and permission slips.
    report_card: Report card drafting and publication.
    access: Document access decisions.
    documents: Access-checked document retrieval.
    conversation: Teacher-guardian messaging.
"""
