from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict


class DBSerializableModel(BaseModel):
    """
    Base Pydantic model that knows how to serialize itself for the
    document store and which indexes its collection needs.

    Field names are snake_case in Python; stored documents and API payloads
    use the camelCase aliases the clients already rely on.
    """

    model_config = ConfigDict(populate_by_name=True)

    # Logical collection name; subclasses should override
    collection_name: ClassVar[str]

    # (field, unique) pairs created by the store on startup
    indexes: ClassVar[List[Tuple[str, bool]]] = []

    def serialize_for_db(self) -> Dict[str, Any]:
        """
        Convert to a dict suitable for persistence.

        This is the single place to control how models are stored;
        store adapters can still post-process this if needed.
        """
        return self.model_dump(by_alias=True, exclude_none=True)
