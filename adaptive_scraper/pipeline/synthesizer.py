"""Selector synthesis — infer an XPath expression from a known field value.

Given a parsed document and the value a field is known to hold, the
synthesizer walks the tree for elements carrying that value and builds the
most robust XPath expression that locates them. Attribute based steps
(`h1[@class='title']`) are preferred over positional ones (`div[2]`) since
they survive small layout changes between pages of the same type.

The synthesizer is pure: same document and value, same expression.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from itertools import product
from typing import Any, Iterable, Iterator, Sequence

from adaptive_scraper.pipeline.document import (
    DocumentNode,
    absolute_path,
    node_text,
    normalize_text,
    select,
    xpath_literal,
)

logger = logging.getLogger(__name__)

_SIMPLE_TAG = re.compile(r"^[A-Za-z][A-Za-z0-9_.-]*$")
_POSITIONAL_STEP = re.compile(r"\[\d+\]")


class SynthesisError(ValueError):
    """Base class for selector synthesis failures."""


class FieldNotFoundError(SynthesisError):
    """No element in the document carries the requested value."""


class AmbiguousMatchError(SynthesisError):
    """A unique match was required but several targets rank equally."""


@dataclass(frozen=True)
class _Step:
    text: str
    kind: str  # "id" | "class" | "position" | "tag"


@dataclass(frozen=True)
class Candidate:
    """A valid selector together with the measures used to rank it."""

    expression: str
    positional_steps: int
    attribute_steps: int
    total_steps: int
    target_order: int

    @property
    def robustness(self) -> tuple[int, float, int]:
        return (
            self.positional_steps,
            -self.attribute_steps / self.total_steps,
            len(self.expression),
        )

    @property
    def rank(self) -> tuple[int, float, int, int, str]:
        return (*self.robustness, self.target_order, self.expression)


class PathSynthesizer:
    """Builds XPath selectors for scalar and list values."""

    def __init__(self, ignored_identifiers: Iterable[str] = (), max_depth: int = 4) -> None:
        self._ignored = frozenset(ignored_identifiers)
        self._max_depth = max_depth

    def find(self, root: DocumentNode, value: Any, unique: bool = False) -> str:
        """Return the best selector locating `value` in `root`.

        Scalars resolve to an expression whose every match carries the value.
        Lists resolve to an expression whose matches yield exactly the list,
        in document order.

        Raises:
            FieldNotFoundError: nothing in the document matches.
            AmbiguousMatchError: `unique` is set and the best rank is shared
                by selectors pointing at different elements.
        """
        candidates = self.candidates(root, value)
        if not candidates:
            raise FieldNotFoundError(f"Value {value!r} not found in document")

        best = candidates[0]
        if unique:
            rivals = {
                c.target_order for c in candidates if c.robustness == best.robustness
            }
            if len(rivals) > 1:
                raise AmbiguousMatchError(
                    f"Value {value!r} matches {len(rivals)} equally ranked elements"
                )
        return best.expression

    def candidates(self, root: DocumentNode, value: Any) -> list[Candidate]:
        """All valid selectors for `value`, best first."""
        if isinstance(value, (list, tuple)):
            expected = [normalize_text(str(v)) for v in value]
            if not expected or not expected[0]:
                return []
            first = expected[0]

            def accept(nodes: list[Any], target: DocumentNode) -> bool:
                return [node_text(n) for n in nodes] == expected
        else:
            first = normalize_text(str(value))
            if not first:
                return []

            def accept(nodes: list[Any], target: DocumentNode) -> bool:
                return target in nodes and all(node_text(n) == first for n in nodes)

        found: dict[str, Candidate] = {}
        for order, target in enumerate(self._matching_elements(root, first)):
            for expression, steps in self._expressions(target):
                if expression in found:
                    continue
                nodes = select(root, expression)
                if not nodes or not accept(nodes, target):
                    continue
                found[expression] = Candidate(
                    expression=expression,
                    positional_steps=sum(1 for s in steps if s.kind == "position"),
                    attribute_steps=sum(1 for s in steps if s.kind in ("id", "class")),
                    total_steps=len(steps),
                    target_order=order,
                )

        ranked = sorted(found.values(), key=lambda c: c.rank)
        logger.debug("Synthesized %d selectors for %r", len(ranked), value)
        return ranked

    # --- Tree search ---

    @staticmethod
    def _matching_elements(root: DocumentNode, value: str) -> list[DocumentNode]:
        """Innermost elements, in document order, whose text equals `value`."""
        matches = []
        for element in root.iter():
            if not isinstance(element.tag, str) or node_text(element) != value:
                continue
            if any(isinstance(child.tag, str) and node_text(child) == value for child in element):
                continue
            matches.append(element)
        return matches

    def _expressions(self, target: DocumentNode) -> Iterator[tuple[str, Sequence[_Step]]]:
        chain = [target]
        parent = target.getparent()
        while parent is not None and len(chain) < self._max_depth:
            chain.append(parent)
            parent = parent.getparent()

        options = [self._step_options(node) for node in chain]
        for length in range(1, len(chain) + 1):
            # Outermost step first
            for steps in product(*reversed(options[:length])):
                yield "//" + "/".join(step.text for step in steps), steps

        segments = absolute_path(target).strip("/").split("/")
        yield self._absolute(segments)

        # Relax the absolute path from the target outwards so repeated
        # siblings below a distant distinguishing ancestor still match.
        relaxed = list(segments)
        for index in range(len(relaxed) - 1, -1, -1):
            stripped = _POSITIONAL_STEP.sub("", relaxed[index])
            if stripped == relaxed[index]:
                continue
            relaxed[index] = stripped
            yield self._absolute(relaxed)

    @staticmethod
    def _absolute(segments: Sequence[str]) -> tuple[str, list[_Step]]:
        return "/" + "/".join(segments), [
            _Step(segment, "position" if _POSITIONAL_STEP.search(segment) else "tag")
            for segment in segments
        ]

    def _step_options(self, node: DocumentNode) -> list[_Step]:
        tag = node.tag if _SIMPLE_TAG.match(node.tag) else "*"
        options: list[_Step] = []

        node_id = (node.get("id") or "").strip()
        if node_id and node_id not in self._ignored:
            options.append(_Step(f"{tag}[@id={xpath_literal(node.get('id'))}]", "id"))

        classes = node.get("class") or ""
        if classes.strip() and not self._ignored.intersection(classes.split()):
            options.append(_Step(f"{tag}[@class={xpath_literal(classes)}]", "class"))

        parent = node.getparent()
        if parent is not None and tag != "*":
            siblings = [s for s in parent if s.tag == node.tag]
            if len(siblings) > 1:
                options.append(_Step(f"{tag}[{siblings.index(node) + 1}]", "position"))

        options.append(_Step(tag, "tag"))
        return options
