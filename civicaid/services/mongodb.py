# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with organization-scoped helpers and index management.

A single MongoDBService is built at application start and handed to every
component that needs storage; nothing in the package reaches for a global
client.
"""

import logging
from dataclasses import dataclass
from typing import List, Dict, Optional, Any
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

logger = logging.getLogger(__name__)

ORGANIZATIONS = "organizations"
USERS = "users"
TICKETS = "tickets"
TICKET_COMMENTS = "ticket_comments"
TICKET_LIKES = "ticket_likes"


@dataclass
class PaginationResult:
    """Result container for offset-paginated queries."""
    items: List[Dict[str, Any]]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


def clamp(value: int, lower: int, upper: int) -> int:
    """Clamp value into [lower, upper]."""
    return max(lower, min(value, upper))


def normalize_document(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Expose _id as id on a raw MongoDB document."""
    if document is None:
        return None
    document = dict(document)
    if "_id" in document:
        document["id"] = str(document.pop("_id"))
    return document


class MongoDBService:
    """MongoDB service with connection pooling and multi-tenant helpers."""

    def __init__(
        self,
        connection_string: str = "mongodb://localhost:27017/civicaid_dev",
        database_name: str = "civicaid_dev",
        client: Optional[MongoClient] = None,
        max_pool_size: int = 10,
        server_selection_timeout_ms: int = 5000
    ):
        """
        Initialize MongoDB service.

        Args:
            connection_string: MongoDB URI, used when no client is injected
            database_name: Database to operate on
            client: Pre-built client (e.g. for tests); skips lazy connection
            max_pool_size: Connection pool upper bound
            server_selection_timeout_ms: Server selection timeout
        """
        self.connection_string = connection_string
        self.database_name = database_name
        self.max_pool_size = max_pool_size
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self._client = client
        self._database: Optional[Database] = None

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True
                )
                logger.info("MongoDB client created")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    @property
    def organizations(self) -> Collection:
        return self.get_collection(ORGANIZATIONS)

    @property
    def users(self) -> Collection:
        return self.get_collection(USERS)

    @property
    def tickets(self) -> Collection:
        return self.get_collection(TICKETS)

    @property
    def ticket_comments(self) -> Collection:
        return self.get_collection(TICKET_COMMENTS)

    @property
    def ticket_likes(self) -> Collection:
        return self.get_collection(TICKET_LIKES)

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'database': self.database_name
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    def build_org_query(self, org_id: str, filters: Optional[Dict] = None) -> Dict:
        """Build organization-scoped query with optional filters."""
        query = {"organizationId": org_id}

        if filters:
            query.update({key: value for key, value in filters.items() if value is not None})

        return query

    def paginate(
        self,
        collection: str,
        query: Dict,
        limit: int,
        offset: int,
        sort_by: str = "createdAt",
        sort_order: int = DESCENDING,
        projection: Optional[Dict] = None
    ) -> PaginationResult:
        """
        Run an offset-paginated query.

        The caller is responsible for scoping the query by organization or
        ticket; limit and offset are expected to be clamped already.
        """
        try:
            collection_obj = self.get_collection(collection)

            total = collection_obj.count_documents(query)

            cursor = collection_obj.find(query, projection).sort(sort_by, sort_order).skip(offset).limit(limit)
            documents = [normalize_document(doc) for doc in cursor]

            logger.debug(f"Paginated {len(documents)} documents from {collection} (offset {offset})")
            return PaginationResult(documents, total, limit, offset)

        except Exception as e:
            logger.error(f"Failed to paginate documents in {collection}: {e}")
            raise

    # Index Management

    def create_indexes(self) -> None:
        """Create uniqueness and listing indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            # Organizations indexes
            self.organizations.create_index("slug", unique=True)

            # Users indexes
            self.users.create_index("externalId", unique=True)
            self.users.create_index([("organizationId", ASCENDING), ("role", ASCENDING)])

            # Tickets indexes
            self.tickets.create_index("token", unique=True)
            self.tickets.create_index([("organizationId", ASCENDING), ("createdAt", DESCENDING)])
            self.tickets.create_index([
                ("organizationId", ASCENDING), ("status", ASCENDING), ("createdAt", DESCENDING)
            ])
            self.tickets.create_index([
                ("organizationId", ASCENDING), ("isPublic", ASCENDING),
                ("category", ASCENDING), ("createdAt", DESCENDING)
            ])

            # Community indexes
            self.ticket_comments.create_index([("ticketId", ASCENDING), ("createdAt", ASCENDING)])
            self.ticket_likes.create_index([("ticketId", ASCENDING), ("ipHash", ASCENDING)], unique=True)

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise
