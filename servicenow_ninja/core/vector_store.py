"""Namespace-scoped access to the documentation vector index."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from redisvl.query import FilterQuery, VectorQuery
from redisvl.query.filter import Tag, Text

from servicenow_ninja.core.config import settings
from servicenow_ninja.core.keys import RedisKeys
from servicenow_ninja.core.redis import get_docs_index, get_vectorizer

logger = logging.getLogger(__name__)

RETURN_FIELDS = ["text", "title", "url", "page_id", "chunk", "total_chunks"]
_TERM_RE = re.compile(r"\w+", re.UNICODE)


@dataclass
class VectorHit:
    id: str
    score: float
    text: str = ""
    title: str = ""
    url: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


def _vector_id_from_key(key: str) -> str:
    return key.rsplit(":", 1)[-1]


def _to_hit(doc: Dict[str, Any], score: float) -> VectorHit:
    return VectorHit(
        id=_vector_id_from_key(str(doc.get("id", ""))),
        score=score,
        text=doc.get("text", "") or "",
        title=doc.get("title", "") or "",
        url=doc.get("url", "") or "",
        metadata={
            "page_id": doc.get("page_id", ""),
            "chunk": doc.get("chunk"),
            "total_chunks": doc.get("total_chunks"),
        },
    )


def keyword_terms(query: str) -> List[str]:
    """Lowercased word tokens of a query, deduplicated in order."""
    terms: List[str] = []
    for term in _TERM_RE.findall(query.lower()):
        if term not in terms:
            terms.append(term)
    return terms


class DocsVectorStore:
    """Upserts, deletes and searches chunk records inside one namespace."""

    def __init__(self, namespace: Optional[str] = None, index=None, vectorizer=None):
        self.namespace = namespace or settings.vector_namespace
        self._index = index
        self._vectorizer = vectorizer

    async def _get_index(self):
        if self._index is None:
            self._index = await get_docs_index()
        return self._index

    def _get_vectorizer(self):
        if self._vectorizer is None:
            self._vectorizer = get_vectorizer()
        return self._vectorizer

    def _namespace_filter(self):
        return Tag("namespace") == self.namespace

    async def upsert_record(self, vector_id: str, text: str, metadata: Dict[str, Any]) -> str:
        """Embed ``text`` and store it with its metadata under ``vector_id``."""
        vector = await self._get_vectorizer().aembed(text, as_buffer=True)
        record = {
            "id": vector_id,
            "text": text,
            "title": metadata.get("title", ""),
            "url": metadata.get("url", ""),
            "page_id": metadata.get("page_id", ""),
            "namespace": self.namespace,
            "chunk": metadata.get("chunk", 0),
            "total_chunks": metadata.get("total_chunks", 0),
            "created_at": datetime.now(timezone.utc).timestamp(),
            "vector": vector,
        }
        key = RedisKeys.doc_chunk(self.namespace, vector_id)
        index = await self._get_index()
        await index.load(data=[record], id_field="id", keys=[key])
        return key

    async def delete(self, vector_ids: List[str]) -> int:
        """Delete records by vector id; returns the number of keys removed."""
        if not vector_ids:
            return 0
        index = await self._get_index()
        keys = [RedisKeys.doc_chunk(self.namespace, vector_id) for vector_id in vector_ids]
        return await index.drop_keys(keys)

    async def search_by_text(self, query: str, top_k: int = 5) -> List[VectorHit]:
        """Nearest-neighbour search for ``query`` (cosine similarity as score)."""
        query_vector = await self._get_vectorizer().aembed(query)
        vector_query = VectorQuery(
            vector=query_vector,
            vector_field_name="vector",
            return_fields=RETURN_FIELDS,
            num_results=top_k,
            filter_expression=self._namespace_filter(),
        )
        index = await self._get_index()
        results = await index.query(vector_query)
        return [_to_hit(doc, 1.0 - float(doc.get("vector_distance", 1.0))) for doc in results]

    async def keyword_search(self, query: str, top_k: int = 5) -> List[VectorHit]:
        """Chunks whose text contains any query term; every hit scores 0.0."""
        terms = keyword_terms(query)
        if not terms:
            return []
        filter_query = FilterQuery(
            filter_expression=self._namespace_filter() & (Text("text") % "|".join(terms)),
            return_fields=RETURN_FIELDS,
            num_results=top_k,
        )
        index = await self._get_index()
        results = await index.query(filter_query)
        return [_to_hit(doc, 0.0) for doc in results]
