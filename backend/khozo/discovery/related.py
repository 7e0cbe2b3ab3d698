"""Related content scoring.

Similarity is a weighted sum of five signals, capped at 1.0:

    category     0.30  same category
    type         0.10  same non-empty program type
    tags         0.30  Jaccard over lower-cased tag sets
    title        0.20  overlap of words longer than 3 characters
    eligibility  0.10  share of eligibility fields equal in both records

The full ranked list for a (source, min_similarity, categories) key is cached;
requests with a smaller limit are served by truncating the cached list.
"""

import logging
import re

from sqlalchemy.orm import Session

from ..clock import as_utc
from ..config import settings
from ..errors import NotFound
from ..integrations.cache import CacheService
from ..opportunities.models import Opportunity, OpportunityCategory, OpportunityStatus
from ..opportunities.service import get_opportunity

logger = logging.getLogger(__name__)

WEIGHT_CATEGORY = 0.30
WEIGHT_TYPE = 0.10
WEIGHT_TAGS = 0.30
WEIGHT_TITLE = 0.20
WEIGHT_ELIGIBILITY = 0.10

ELIGIBILITY_FIELDS = ("state", "min_age", "max_age", "education", "gender")

_WORD_RE = re.compile(r"\w+")


def jaccard(a: set, b: set) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def _tag_set(tags) -> set[str]:
    return {t.strip().lower() for t in (tags or []) if t and t.strip()}


def _title_words(title: str | None) -> set[str]:
    return {w for w in _WORD_RE.findall((title or "").lower()) if len(w) > 3}


def title_similarity(a: str | None, b: str | None) -> float:
    words_a, words_b = _title_words(a), _title_words(b)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / max(len(words_a), len(words_b))


def eligibility_similarity(a: dict | None, b: dict | None) -> float:
    a, b = a or {}, b or {}
    common = [f for f in ELIGIBILITY_FIELDS if a.get(f) is not None and b.get(f) is not None]
    if not common:
        return 0.0
    matches = sum(1 for f in common if a[f] == b[f])
    return matches / len(common)


def _same_type(a: Opportunity, b: Opportunity) -> bool:
    return bool(a.program_type) and a.program_type == b.program_type


def score(source: Opportunity, candidate: Opportunity) -> float:
    total = 0.0
    if source.category == candidate.category:
        total += WEIGHT_CATEGORY
    if _same_type(source, candidate):
        total += WEIGHT_TYPE
    total += WEIGHT_TAGS * jaccard(_tag_set(source.tags), _tag_set(candidate.tags))
    total += WEIGHT_TITLE * title_similarity(source.title, candidate.title)
    total += WEIGHT_ELIGIBILITY * eligibility_similarity(source.eligibility, candidate.eligibility)
    return min(total, 1.0)


def reason(source: Opportunity, candidate: Opportunity) -> str:
    if source.category == candidate.category:
        return f"Same category: {candidate.category.value}"
    shared = _tag_set(source.tags) & _tag_set(candidate.tags)
    if shared:
        ordered = [t for t in dict.fromkeys(t.strip().lower() for t in source.tags or []) if t in shared]
        return f"Similar tags: {', '.join(ordered[:3])}"
    if _same_type(source, candidate):
        return f"Same type: {candidate.program_type}"
    return "Related content"


def _candidates(db: Session, source: Opportunity, categories: list[OpportunityCategory] | None) -> list[Opportunity]:
    query = db.query(Opportunity).filter(
        Opportunity.id != source.id,
        Opportunity.status != OpportunityStatus.ARCHIVED,
    )
    if categories:
        query = query.filter(Opportunity.category.in_(categories))
    return query.order_by(Opportunity.created_at.desc()).limit(settings.related_candidate_pool).all()


def _to_row(candidate: Opportunity, similarity: float, why: str) -> dict:
    row = {
        "id": str(candidate.id),
        "title": candidate.title,
        "type": candidate.program_type or "",
        "category": candidate.category.value,
        "similarity": round(similarity, 3),
        "reason": why,
    }
    deadline = as_utc(candidate.deadline)
    if deadline:
        row["deadline"] = deadline.isoformat()
    if candidate.tags:
        row["tags"] = list(candidate.tags)
    return row


def cache_key(item_id: str, min_similarity: float, categories: list[OpportunityCategory] | None) -> str:
    types = ",".join(sorted(c.value for c in categories)) if categories else "all"
    return f"related:{item_id}:{min_similarity}:{types}"


def rank_related(db: Session, source: Opportunity, min_similarity: float, categories=None) -> list[dict]:
    scored = []
    for candidate in _candidates(db, source, categories):
        similarity = score(source, candidate)
        if similarity < min_similarity:
            continue
        scored.append((similarity, candidate))
    # sorted() is stable: equal scores keep candidate order
    scored = sorted(scored, key=lambda pair: pair[0], reverse=True)
    return [_to_row(c, s, reason(source, c)) for s, c in scored]


def get_related_items(
    db: Session,
    cache: CacheService,
    item_id: str,
    limit: int = 5,
    min_similarity: float = 0.3,
    include_types: list[OpportunityCategory] | None = None,
) -> list[dict]:
    key = cache_key(item_id, min_similarity, include_types)
    cached = cache.get_json(key)
    if cached is not None:
        return cached[:limit]

    source = get_opportunity(db, item_id)
    if source is None:
        raise NotFound("Opportunity", item_id)

    ranked = rank_related(db, source, min_similarity, include_types)
    cache.set_json(key, ranked, settings.related_cache_ttl)
    logger.debug("Related for %s: %d candidates above %.2f", item_id, len(ranked), min_similarity)
    return ranked[:limit]
