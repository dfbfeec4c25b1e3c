# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""Branch/pull-request automation adapter for Gerrit Code Review."""

__version__ = "0.1.0"
