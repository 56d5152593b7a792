from __future__ import annotations

import html as html_lib
import logging
import re
from typing import List, Optional, Tuple

from reconciler.dom.models import PageDocument
from reconciler.model import (
    CANONICAL_CATEGORIES,
    FixOutcome,
    ScanPolicy,
    Violation,
    ViolationCategory,
)
from reconciler.utils.url_utils import UrlUtils

logger = logging.getLogger(__name__)

LINK_TAG_RE = re.compile(r"<link\b[^>]*>", re.IGNORECASE)
HREF_ATTR_RE = re.compile(
    r"""(?P<prefix>\bhref\s*=\s*)(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\s"'>]+))""",
    re.IGNORECASE,
)
H1_OPEN_RE = re.compile(r"<h1\b[^>]*>", re.IGNORECASE)
H1_TOKEN_RE = re.compile(r"<h1\b[^>]*>|</h1\s*>", re.IGNORECASE)

Edit = Tuple[int, int, str]


class FixService:
    """
    Produces rewritten page content for fixable violations.

    Stateless and side-effect free: the caller decides whether to persist the
    returned content. Fixes are idempotent, applying them to their own output
    changes nothing.
    """

    def __init__(self, policy: Optional[ScanPolicy] = None):
        self.policy = policy or ScanPolicy()

    def apply_fixes(self, doc: PageDocument, violations: List[Violation]) -> FixOutcome:
        """
        Applies the canonical and duplicate-H1 fixes that `violations` call for.

        Args:
            doc (PageDocument): The document the violations were derived from.
            violations (List[Violation]): Output of the RuleEvaluator for `doc`.

        Returns:
            FixOutcome: New content, a changed flag and a list of applied fixes.
        """
        raw = doc.raw_content
        categories = {v.category for v in violations}
        edits: List[Edit] = []
        fixes: List[str] = []
        already_correct = False

        if categories & CANONICAL_CATEGORIES:
            edit, note, already_correct = self._canonical_edit(doc)
            if edit:
                edits.append(edit)
                fixes.append(note)
        elif doc.canonical_url is not None:
            already_correct = doc.canonical_url == self._target_canonical(doc)

        if ViolationCategory.DUPLICATE_H1 in categories:
            h1_edits, demoted = self._duplicate_h1_edits(doc)
            edits.extend(h1_edits)
            fixes.extend(["Converted extra H1 to H2"] * demoted)

        new_content = self._apply_edits(raw, edits)
        changed = new_content != raw
        if changed:
            logger.debug("Fixed %s: %s", doc.relative_path, "; ".join(fixes))

        return FixOutcome(
            new_content=new_content,
            changed=changed,
            fixes=fixes if changed else [],
            already_correct=already_correct and not changed,
        )

    # --- Canonical ---

    def _target_canonical(self, doc: PageDocument) -> str:
        return UrlUtils.to_canonical_url(doc.relative_path, self.policy.site_origin, self.policy.require_www)

    def _is_amp_index(self, doc: PageDocument) -> bool:
        path = doc.relative_path.lower()
        return any(path == p.strip("/").lower() for p in self.policy.amp_index_pages)

    def _canonical_edit(self, doc: PageDocument) -> Tuple[Optional[Edit], str, bool]:
        """Returns (edit, note, already_correct) for the extracted canonical tag."""
        if doc.canonical_offset is None or doc.canonical_url is None:
            # Injecting a missing canonical is a separate, explicit operation.
            return None, "", False

        target = self._target_canonical(doc)
        if doc.canonical_url == target:
            return None, "", True
        if self._is_amp_index(doc):
            logger.info("Leaving canonical of AMP index page %s untouched", doc.relative_path)
            return None, "", False

        raw = doc.raw_content
        tag = LINK_TAG_RE.match(raw, doc.canonical_offset)
        if not tag:
            logger.warning("Canonical tag not found at offset %d in %s", doc.canonical_offset, doc.relative_path)
            return None, "", False

        href = HREF_ATTR_RE.search(tag.group(0))
        if not href:
            logger.warning("Canonical tag without href in %s; not rewritten", doc.relative_path)
            return None, "", False

        escaped = html_lib.escape(target, quote=True)
        if href.group("dq") is not None:
            group, replacement = "dq", escaped
        elif href.group("sq") is not None:
            group, replacement = "sq", escaped
        else:
            group, replacement = "bare", f'"{escaped}"'

        start = tag.start() + href.start(group)
        end = tag.start() + href.end(group)
        note = f"Canonical '{doc.canonical_url}' -> '{target}'"
        return (start, end, replacement), note, False

    # --- Headings ---

    def _duplicate_h1_edits(self, doc: PageDocument) -> Tuple[List[Edit], int]:
        """
        Edits that rename every H1 after the first to H2, plus the number of demoted headings.
        Only the level digit of the opening and matching closing tag changes.
        """
        raw = doc.raw_content
        h1_offsets = [h.source_offset for h in doc.headings if h.level == 1][1:]
        edits: List[Edit] = []
        demoted = 0

        for offset in h1_offsets:
            opening = H1_OPEN_RE.match(raw, offset)
            if not opening:
                logger.warning("H1 tag not found at offset %d in %s", offset, doc.relative_path)
                continue
            edits.append((offset + 2, offset + 3, "2"))
            demoted += 1

            closing = self._matching_close(raw, opening.end())
            if closing is not None:
                edits.append((closing + 3, closing + 4, "2"))
        return edits, demoted

    @staticmethod
    def _matching_close(raw: str, start: int) -> Optional[int]:
        depth = 0
        for token in H1_TOKEN_RE.finditer(raw, start):
            if token.group(0).startswith("</"):
                if depth == 0:
                    return token.start()
                depth -= 1
            else:
                depth += 1
        return None

    # --- Helpers ---

    @staticmethod
    def _apply_edits(raw: str, edits: List[Edit]) -> str:
        """Applies non-overlapping (start, end, text) edits, back to front."""
        result = raw
        last_start = len(raw) + 1
        for start, end, text in sorted(set(edits), key=lambda e: e[0], reverse=True):
            if end > last_start:
                logger.warning("Skipping overlapping edit at %d", start)
                continue
            result = result[:start] + text + result[end:]
            last_start = start
        return result
