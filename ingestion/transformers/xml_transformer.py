"""
XML transformer: renames and removes elements selected by path
"""

from typing import List, Optional
import xml.etree.ElementTree as ET

from core.exceptions import InvalidConfig, UnsupportedFormat
from ingestion.base import Transformer


class XMLTransformer(Transformer):
    """
    Config keys:
        elementMappings: {"path": "newTag", ...} renames matching elements
        elementsToRemove: ["path", ...] removes matching elements

    Paths use the ElementTree subset of XPath. Absolute forms are accepted:
    ``//item`` matches at any depth, ``/catalog/item`` is anchored at the
    document root.
    """

    TYPE_KEY = "XML"

    async def transform(self, payload: bytes, source_format: Optional[str], config: Optional[str]) -> bytes:
        if (source_format or "").upper() != "XML":
            raise UnsupportedFormat(
                "This transformer only works with XML data",
                context={"transform_type": self.TYPE_KEY, "source_format": source_format}
            )

        options = self.parse_config(config)
        mappings = options.get("elementMappings") or {}
        removals = options.get("elementsToRemove") or []
        if not isinstance(mappings, dict):
            raise InvalidConfig("elementMappings must be an object", context={"transform_type": self.TYPE_KEY})
        if not isinstance(removals, list):
            raise InvalidConfig("elementsToRemove must be a list", context={"transform_type": self.TYPE_KEY})

        try:
            root = ET.fromstring(payload)
        except ET.ParseError as e:
            raise UnsupportedFormat(
                "XML payload could not be parsed",
                context={"transform_type": self.TYPE_KEY},
                original_exception=e
            )

        for path, new_tag in mappings.items():
            for element in self._select(root, path):
                element.tag = new_tag

        parents = {child: parent for parent in root.iter() for child in parent}
        for path in removals:
            for element in self._select(root, path):
                parent = parents.get(element)
                if parent is not None:
                    parent.remove(element)

        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    def _select(self, root: ET.Element, path: str) -> List[ET.Element]:
        try:
            if path.startswith("//"):
                tail = path[2:]
                matches = root.findall(".//" + tail)
                if tail == root.tag:
                    matches.insert(0, root)
                return matches

            if path.startswith("/"):
                head, _, rest = path[1:].partition("/")
                if head != root.tag:
                    return []
                return root.findall("./" + rest) if rest else [root]

            return root.findall(path)
        except (SyntaxError, KeyError) as e:
            raise InvalidConfig(
                f"Invalid element path: {path}",
                context={"transform_type": self.TYPE_KEY, "path": path},
                original_exception=e
            )
