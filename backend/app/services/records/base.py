"""
Base class for record sources feeding entry exports.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from app.services.reports.fields import FieldSpec

Record = Dict[str, Any]


class RecordSource(ABC):
    """Abstract base class for record sources."""

    @abstractmethod
    def list_records(self, source_id: Any, since: Optional[datetime] = None) -> List[Record]:
        """
        List records of a source.

        Args:
            source_id: Source identifier (form id)
            since: Only records created at or after this instant; all records if None

        Returns:
            Records as mappings of field id -> value, oldest first

        Raises:
            Exception: If the source cannot be read
        """
        pass

    @abstractmethod
    def get_schema(self, source_id: Any) -> Tuple[str, List[FieldSpec]]:
        """
        Get the title and field definitions of a source.

        Args:
            source_id: Source identifier (form id)

        Returns:
            (title, fields)

        Raises:
            LookupError: If the source does not exist
        """
        pass
