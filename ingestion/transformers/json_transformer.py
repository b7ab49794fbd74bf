"""
JSON transformer: renames and drops fields of a JSON object or array
"""

import json
from typing import Any, Dict, List, Optional

from core.exceptions import InvalidConfig, UnsupportedFormat
from ingestion.base import Transformer


class JSONTransformer(Transformer):
    """
    Config keys:
        fieldMappings: {"target_field": "source_field", ...}
        fieldsToRemove: ["field", ...]

    Applied to a single object or to every object of a top-level array;
    non-object items are passed through untouched.
    """

    TYPE_KEY = "JSON"

    async def transform(self, payload: bytes, source_format: Optional[str], config: Optional[str]) -> bytes:
        if (source_format or "").upper() != "JSON":
            raise UnsupportedFormat(
                "This transformer only works with JSON data",
                context={"transform_type": self.TYPE_KEY, "source_format": source_format}
            )

        options = self.parse_config(config)
        mappings = options.get("fieldMappings") or {}
        to_remove = options.get("fieldsToRemove") or []
        if not isinstance(mappings, dict):
            raise InvalidConfig("fieldMappings must be an object", context={"transform_type": self.TYPE_KEY})
        if not isinstance(to_remove, list):
            raise InvalidConfig("fieldsToRemove must be a list", context={"transform_type": self.TYPE_KEY})

        try:
            data = json.loads(payload)
        except (UnicodeDecodeError, ValueError) as e:
            raise UnsupportedFormat(
                "JSON payload could not be parsed",
                context={"transform_type": self.TYPE_KEY},
                original_exception=e
            )

        if isinstance(data, list):
            data = [self._transform_object(item, mappings, to_remove) for item in data]
        else:
            data = self._transform_object(data, mappings, to_remove)

        return json.dumps(data).encode("utf-8")

    @staticmethod
    def _transform_object(item: Any, mappings: Dict[str, str], to_remove: List[str]) -> Any:
        if not isinstance(item, dict):
            return item

        result: Dict[str, Any] = {}
        for target, source in mappings.items():
            if source in item:
                result[target] = item[source]

        consumed = set(mappings.values())
        for field, value in item.items():
            if field in consumed or field in to_remove or field in result:
                continue
            result[field] = value

        return result
