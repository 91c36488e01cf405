# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the CivicAid platform.

This package contains pure business rules with no side effects: the ticket
lifecycle, role checks and the public projection of tickets.
"""
