# SPDX-License-Identifier: Apache-2.0

"""
Operational command line scripts.
"""
