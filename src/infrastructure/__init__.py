# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer for SchoolConnect.

This package contains the database engine, ORM models, migrations and
the collection adapter used by the domain services.
"""
