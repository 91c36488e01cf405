# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and document conversion.
"""

import re
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


class CamelModel(BaseModel):
    """Model serialized with camelCase keys for storage and the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True
    )

    def to_document(self) -> Dict[str, Any]:
        """Dump to a camelCase dict suitable for MongoDB or JSON."""
        return self.model_dump(by_alias=True)


class BaseEntity(CamelModel):
    """Base entity with common fields for all stored objects."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")
    schema_version: int = Field(default=1, description="Schema version for migrations")

    def update_timestamp(self) -> None:
        """Update the updated_at field."""
        self.updated_at = datetime.utcnow()

    def to_document(self) -> Dict[str, Any]:
        """Dump to a MongoDB document, moving id to _id."""
        document = super().to_document()
        document["_id"] = document.pop("id")
        return document

    @classmethod
    def from_document(cls, document: Optional[Dict[str, Any]]):
        """Build an entity from a MongoDB document (or None)."""
        if document is None:
            return None
        data = dict(document)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
SLUG_PATTERN = re.compile(r'^[a-z0-9-]+$')
