"""Gathers code context for a request and formats it for the model."""

from __future__ import annotations

import logging
from typing import Iterable

from .base import ContextBlock, ContextSource, Document, SourceScope
from .errors import ContextUnavailable

logger = logging.getLogger(__name__)


def format_document(document: Document) -> str:
    """Wrap a document in a ``<code>`` tag.

    The text is passed through verbatim, without escaping embedded markup.
    """
    return f"<code filename='../{document.path}'>{document.text}</code>"


class ContextAssembler:
    """Builds a ContextBlock from the active document or the repository."""

    def __init__(self, include_patterns: Iterable[str]):
        """Initialize the assembler.

        Args:
            include_patterns: Glob patterns resolved for repository-scope
                requests, in priority order.
        """
        self.include_patterns = list(include_patterns)

    def build(self, scope: SourceScope, source: ContextSource) -> ContextBlock:
        """Gather and format context for the given scope.

        Raises:
            ContextUnavailable: If no document is open (active-document scope),
                or no include patterns are configured or none match
                (repository scope).
        """
        if scope is SourceScope.ACTIVE_DOCUMENT:
            documents = [self._active_document(source)]
        else:
            documents = self._repository_documents(source)

        fragments = tuple(format_document(document) for document in documents)
        logger.info(
            "Assembled context: %d file(s), %d characters",
            len(fragments),
            sum(len(fragment) for fragment in fragments),
        )
        return ContextBlock(scope=scope, fragments=fragments)

    def _active_document(self, source: ContextSource) -> Document:
        document = source.get_active_document()
        if document is None:
            raise ContextUnavailable("No active document is open")
        return document

    def _repository_documents(self, source: ContextSource) -> list[Document]:
        if not self.include_patterns:
            raise ContextUnavailable("No include patterns are configured")

        # Overlapping patterns may match the same file twice; both copies are kept.
        documents: list[Document] = []
        for pattern in self.include_patterns:
            matches = source.find_files(pattern)
            logger.debug("Pattern %s matched %d file(s)", pattern, len(matches))
            documents.extend(matches)

        if not documents:
            raise ContextUnavailable(
                f"No files matched the include patterns: {', '.join(self.include_patterns)}"
            )
        return documents
