#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Create the MongoDB indexes the API relies on for uniqueness and listing.

Usage: python -m civicaid.scripts.create_indexes
"""

import sys
import logging

from ..config import AppConfig
from ..services.mongodb import MongoDBService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main() -> int:
    """Create MongoDB indexes."""
    mongodb_service = None
    try:
        config = AppConfig.from_env()
        mongodb_service = MongoDBService(config.mongodb_uri, config.mongodb_database)

        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            return 1

        logger.info(f"Connected to MongoDB - Database: {health['database']}")
        mongodb_service.create_indexes()
        logger.info("MongoDB indexes created successfully!")
        return 0

    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")
        return 1
    finally:
        if mongodb_service is not None:
            mongodb_service.close_connection()


if __name__ == "__main__":
    sys.exit(main())
