# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains the error taxonomy and its handlers, identity
resolution for protected routes and rate limiting of public submissions.
"""
