"""
Translatable text extraction and injection over arbitrary JSON documents.

Paths look like `hero.title`, `items[2].title` or `[0]` for a root list.
Keys that are empty or contain `.`, `[`, `]` or `"` are bracket-quoted
(`hero["a.b"]`) so every leaf has exactly one path.
Both functions are pure: inputs are never mutated.
"""

import json
import re
from typing import Any, Dict, Mapping, Optional

from sitecfg.core.rules import TextTreeRules


PLAIN_KEY_RE = re.compile(r'^[^.\[\]"]+$')


def _child(path: str, key: str) -> str:
    if not PLAIN_KEY_RE.match(key):
        return f"{path}[{json.dumps(key)}]"
    return f"{path}.{key}" if path else key


def _item(path: str, index: int) -> str:
    return f"{path}[{index}]"


def is_translatable(text: str, rules: Optional[TextTreeRules] = None) -> bool:
    rules = rules or TextTreeRules()
    stripped = text.strip()
    if not stripped:
        return False
    if re.match(rules.url_pattern, stripped):
        return False
    return re.fullmatch(rules.slug_pattern, stripped) is None


def extract_text(value: Any, rules: Optional[TextTreeRules] = None) -> Dict[str, str]:
    """Collect {path: text} for every translatable string leaf, in document order."""
    rules = rules or TextTreeRules()
    found: Dict[str, str] = {}

    def walk(node: Any, path: str):
        if isinstance(node, dict):
            for key, child in node.items():
                if rules.skips(str(key)):
                    continue
                walk(child, _child(path, str(key)))
        elif isinstance(node, list):
            for index, child in enumerate(node):
                walk(child, _item(path, index))
        elif isinstance(node, str) and is_translatable(node, rules):
            found[path] = node

    walk(value, "")
    return found


def inject_text(value: Any, translations: Mapping[str, str]) -> Any:
    """Rebuild `value` with string leaves replaced where their path has a translation."""

    def build(node: Any, path: str) -> Any:
        if isinstance(node, dict):
            return {key: build(child, _child(path, str(key))) for key, child in node.items()}
        if isinstance(node, list):
            return [build(child, _item(path, index)) for index, child in enumerate(node)]
        if isinstance(node, str) and path in translations:
            return translations[path]
        return node

    return build(value, "")
