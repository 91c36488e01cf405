# SPDX-License-Identifier: Apache-2.0

"""
WSGI entry point.
"""

from .app import create_app

app = create_app()
