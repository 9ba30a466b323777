"""SchoolConnect Backend.

School roster and communication graph: classes, students, guardians,
teachers and the documents exchanged between them.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
