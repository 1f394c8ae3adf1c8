"""
Sandboxed template resolution for task text.

Resolves {{ input.topic }} style references in task descriptions and
expected outputs from the inputs given at kickoff, without eval/exec.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional


class TemplateValidationError(Exception):
    """Raised when template validation fails."""

    def __init__(self, message: str, template: str, position: Optional[int] = None):
        self.template = template
        self.position = position
        super().__init__(message)


@dataclass
class TemplateReference:
    """Represents a parsed template reference."""

    full_match: str
    root: str
    path: list  # Keys and list indices below the root
    start_pos: int
    end_pos: int


class TemplateResolver:
    """
    Resolves template expressions safely.

    Supports:
    - {{ input.topic }} - a kickoff input
    - {{ input.company.name }} - nested dict values
    - {{ input.tickers[0] }} - list items

    Security:
    - No eval/exec
    - Restricted to the registered roots
    - Path traversal only through dict keys and list indices
    """

    # Pattern to match {{ reference }}
    TEMPLATE_PATTERN = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")

    # Pattern to validate reference format
    REFERENCE_PATTERN = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_\-]*)(?:\.([a-zA-Z_][a-zA-Z0-9_.\[\]]*)?)?$")

    def __init__(
        self,
        inputs: Optional[dict[str, Any]] = None,
        strict: bool = False,
    ):
        """
        Initialize resolver.

        Args:
            inputs: Kickoff inputs, exposed under the ``input`` root
            strict: Raise on references that cannot be resolved instead
                of leaving them untouched
        """
        self.roots: dict[str, Any] = {"input": inputs or {}}
        self.strict = strict

    def resolve(self, template: Any) -> Any:
        """
        Resolve all template expressions in a value.

        Handles strings, dicts, and lists recursively.
        """
        if isinstance(template, str):
            return self._resolve_string(template)
        elif isinstance(template, dict):
            return {k: self.resolve(v) for k, v in template.items()}
        elif isinstance(template, list):
            return [self.resolve(v) for v in template]
        else:
            return template

    def resolve_text(self, template: Optional[str]) -> Optional[str]:
        """Resolve a template and always return text."""
        if template is None:
            return None
        value = self._resolve_string(template)
        return value if isinstance(value, str) else str(value)

    def _resolve_string(self, template: str) -> Any:
        """Resolve template expressions in a string."""
        references = self.find_references(template)

        if not references:
            return template

        # A string that is exactly one reference keeps the value's type
        if len(references) == 1 and references[0].full_match == template.strip():
            value = self._resolve_reference(references[0], template)
            return references[0].full_match if value is None else value

        result = template
        for ref in reversed(references):  # Reverse to maintain positions
            value = self._resolve_reference(ref, template)
            # Unresolved references stay in place so they remain visible
            str_value = ref.full_match if value is None else str(value)
            result = result[:ref.start_pos] + str_value + result[ref.end_pos:]

        return result

    def find_references(self, template: str) -> list[TemplateReference]:
        """Find all template references in a string."""
        references = []

        for match in self.TEMPLATE_PATTERN.finditer(template):
            parsed = self._parse_reference(match.group(1).strip())
            if parsed:
                references.append(TemplateReference(
                    full_match=match.group(0),
                    root=parsed[0],
                    path=parsed[1],
                    start_pos=match.start(),
                    end_pos=match.end(),
                ))
            elif self.strict:
                raise TemplateValidationError(
                    f"Invalid template reference: {match.group(0)}",
                    template,
                    match.start(),
                )

        return references

    def _parse_reference(self, reference: str) -> Optional[tuple[str, list]]:
        """
        Parse a reference string into (root, path).

        Examples:
            "input.topic" -> ("input", ["topic"])
            "input.tickers[0]" -> ("input", ["tickers", 0])
        """
        match = self.REFERENCE_PATTERN.match(reference)
        if not match:
            return None

        root = match.group(1)
        path_str = match.group(2) or ""

        path: list = []
        if path_str:
            parts = re.split(r"\.(?![^\[]*\])", path_str)
            for part in parts:
                array_match = re.match(r"([a-zA-Z_][a-zA-Z0-9_]*)\[(\d+)\]", part)
                if array_match:
                    path.append(array_match.group(1))
                    path.append(int(array_match.group(2)))
                else:
                    path.append(part)

        return (root, path)

    def _resolve_reference(self, ref: TemplateReference, template: str) -> Any:
        """Resolve a single reference to its value."""
        if ref.root not in self.roots:
            value = None
        else:
            value = self._navigate_path(self.roots[ref.root], ref.path)

        if value is None and self.strict:
            raise TemplateValidationError(
                f"Unresolved template reference: {ref.full_match}",
                template,
                ref.start_pos,
            )
        return value

    def _navigate_path(self, value: Any, path: list) -> Any:
        """
        Navigate a path through nested data structures.

        Only dict keys and list indices are followed; attributes are never
        read, so templates cannot reach object internals.
        """
        current = value

        for key in path:
            if current is None:
                return None

            if isinstance(key, int):
                if isinstance(current, list) and 0 <= key < len(current):
                    current = current[key]
                else:
                    return None
            elif isinstance(current, dict):
                current = current.get(key)
            else:
                return None

        return current
