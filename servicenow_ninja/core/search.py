"""Documentation search: vector retrieval, snippets and answer generation."""

import logging
import re
from typing import Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel

from servicenow_ninja.core.config import settings
from servicenow_ninja.core.vector_store import DocsVectorStore, VectorHit
from servicenow_ninja.observability.crawl_metrics import SEARCHES

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200
QUERY_PREVIEW_LENGTH = 50

CANNED_ANSWER = (
    "ServiceNow is a cloud computing platform that automates IT business management "
    "workflows. It includes products for IT service, operations, and business management. "
    "The core of ServiceNow's platform is IT service management (ITSM), which helps "
    "organizations to consolidate and automate service relationships across the enterprise."
    "\n\n"
    "ServiceNow was founded in 2004 by Fred Luddy, who previously served as CTO at Peregrine "
    "Systems and Remedy Corporation. The company initially focused on IT service management "
    "but has since expanded into other areas like IT operations management, IT business "
    "management, customer service management, HR service delivery, and security operations."
    "\n\n"
    "ServiceNow's platform is built on a single data model and uses a common service data "
    "platform. This allows for seamless integration between different modules and "
    "applications. The platform includes features such as workflow automation, AI and "
    "machine learning capabilities, virtual agents, performance analytics, and a mobile "
    "experience."
    "\n\n"
    "Many large enterprises use ServiceNow to manage their IT services and business "
    "workflows. The platform is highly customizable and can be tailored to meet specific "
    "organizational needs. ServiceNow also offers a developer program that allows developers "
    "to build custom applications on the Now Platform."
)

# Ordered: images before links, fenced code before inline code
_MARKDOWN_PATTERNS = [
    (re.compile(r"```[^\n]*\n?"), ""),
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE), ""),
    (re.compile(r"^\s{0,3}>\s?", re.MULTILINE), ""),
    (re.compile(r"^\s*(?:[-*+]|\d+\.)\s+", re.MULTILINE), ""),
    (re.compile(r"`([^`]*)`"), r"\1"),
    # Emphasis markers must not touch word characters, so sys_user_group survives
    (re.compile(r"(?<!\w)(\*\*|__)(?=\S)(.+?)(?<=\S)\1(?!\w)"), r"\2"),
    (re.compile(r"(?<!\w)(\*|_)(?=\S)(.+?)(?<=\S)\1(?!\w)"), r"\2"),
    (re.compile(r"~~(.*?)~~"), r"\1"),
]
_WHITESPACE_RE = re.compile(r"\s+")


def strip_markdown(text: str) -> str:
    """Remove common markdown markup, keeping the readable text."""
    for pattern, replacement in _MARKDOWN_PATTERNS:
        text = pattern.sub(replacement, text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def make_snippet(text: str, length: int = SNIPPET_LENGTH) -> str:
    """First ``length`` characters of the plain text, with ``...`` when cut."""
    plain = strip_markdown(text)
    if len(plain) <= length:
        return plain
    return plain[:length] + "..."


def query_preview(query: str) -> str:
    if len(query) > QUERY_PREVIEW_LENGTH:
        return query[:QUERY_PREVIEW_LENGTH] + "..."
    return query


class SearchResult(BaseModel):
    id: str
    score: float
    title: str
    url: str
    snippet: str


def to_search_result(hit: VectorHit) -> SearchResult:
    return SearchResult(
        id=hit.id,
        score=hit.score,
        title=hit.title,
        url=hit.url,
        snippet=make_snippet(hit.text),
    )


@runtime_checkable
class AnswerGenerator(Protocol):
    """Produces an answer for a query from ranked search results."""

    async def generate_answer(self, query: str, ranked_snippets: List[SearchResult]) -> str: ...


class StaticAnswerGenerator:
    """Returns the same canned ServiceNow overview for every query."""

    def __init__(self, answer: str = CANNED_ANSWER):
        self.answer = answer

    async def generate_answer(self, query: str, ranked_snippets: List[SearchResult]) -> str:
        return self.answer


_generator_class_cache: Dict[str, type] = {}


def load_answer_generator(class_path: Optional[str] = None) -> AnswerGenerator:
    """Instantiate the answer generator named by a fully qualified class path."""
    class_path = class_path or settings.answer_generator
    if class_path not in _generator_class_cache:
        module_path, class_name = class_path.rsplit(".", 1)
        module = __import__(module_path, fromlist=[class_name])
        _generator_class_cache[class_path] = getattr(module, class_name)
    generator = _generator_class_cache[class_path]()
    if not isinstance(generator, AnswerGenerator):
        raise TypeError(f"{class_path} does not implement generate_answer()")
    return generator


async def search_documentation(
    query: str,
    top_k: int = 5,
    vector_store: Optional[DocsVectorStore] = None,
) -> List[SearchResult]:
    """Vector search for ``query``, degrading to a keyword filter on failure."""
    store = vector_store or DocsVectorStore()
    try:
        hits = await store.search_by_text(query, top_k=top_k)
        SEARCHES.labels(mode="vector").inc()
    except Exception as e:
        logger.warning(f"Vector search failed, falling back to keyword filter: {e}")
        hits = await store.keyword_search(query, top_k=top_k)
        SEARCHES.labels(mode="keyword").inc()
    return [to_search_result(hit) for hit in hits]


async def answer_query(
    query: str,
    is_lucky: bool = False,
    top_k: Optional[int] = None,
    vector_store: Optional[DocsVectorStore] = None,
    answer_generator: Optional[AnswerGenerator] = None,
) -> Dict[str, object]:
    """Search, generate an answer and shape the response.

    Results are still retrieved in lucky mode so the generator can use them;
    they are only left out of the response.
    """
    logger.info(f"Search query received: {query[:100]}{'...' if len(query) > 100 else ''}")
    results = await search_documentation(
        query, top_k=top_k or settings.search_default_top_k, vector_store=vector_store
    )
    generator = answer_generator or load_answer_generator()
    answer = await generator.generate_answer(query, results)

    return {
        "answer": answer,
        "results": [] if is_lucky else results,
        "queryPreview": query_preview(query),
    }
