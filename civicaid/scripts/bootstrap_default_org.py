#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Create the default community organization if it does not exist yet.

Safe to run repeatedly. Usage: python -m civicaid.scripts.bootstrap_default_org
"""

import sys
import logging

from ..config import AppConfig
from ..services.mongodb import MongoDBService
from ..services.organizations import TenantDirectory

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main() -> int:
    mongodb_service = None
    try:
        config = AppConfig.from_env()
        mongodb_service = MongoDBService(config.mongodb_uri, config.mongodb_database)

        organization = TenantDirectory(mongodb_service).ensure_default_community()
        logger.info(
            f"Default community organization ready: {organization.id} ({organization.slug}), "
            f"public submissions {'on' if organization.settings.allow_public_submissions else 'off'}"
        )
        return 0

    except Exception as e:
        logger.error(f"Failed to bootstrap default organization: {e}")
        return 1
    finally:
        if mongodb_service is not None:
            mongodb_service.close_connection()


if __name__ == "__main__":
    sys.exit(main())
