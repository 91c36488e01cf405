# SPDX-License-Identifier: Apache-2.0

"""
Request helpers shared by middleware and routes.
"""
