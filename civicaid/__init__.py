# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
CivicAid - multi-tenant civic complaint intake and tracking service.
"""

__version__ = "1.0.0"
