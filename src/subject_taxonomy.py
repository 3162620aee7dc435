"""
Subject taxonomy and keyword classifier.

The category set is closed. Keyword triggers are matched as case-insensitive
substrings, scanning categories in declaration order: the first category with
any matching trigger wins.
"""

CATEGORIES = (
    'MATH', 'ELA', 'SCI', 'HIST', 'CTE', 'ART', 'LANG', 'HEALTH',
    'PE', 'REL', 'LIB', 'SEL', 'EL', 'SPED', 'OTHER',
)

# Coarse label set offered to the remote classifier.
FALLBACK_CATEGORIES = ('MATH', 'ELA', 'SCI', 'HIST', 'CTE', 'ART', 'OTHER')

# Order matters: earlier categories take priority.
CATEGORY_KEYWORDS = (
    ('MATH', ('mathematics', 'math', 'algebra', 'geometry', 'calculus')),
    ('ELA', ('ela', 'english', 'language arts', 'reading', 'writing', 'literature')),
    ('SCI', ('science', 'biology', 'chemistry', 'physics', 'astronomy', 'stem')),
    ('HIST', ('history', 'social studies', 'geography', 'civics', 'government', 'economics')),
    ('CTE', ('cte', 'career', 'technical', 'vocational', 'technology', 'business', 'computer science')),
    ('ART', ('art', 'visual & performing art', 'dance', 'music', 'choral')),
    ('LANG', ('world language', 'modern languages', 'foreign language')),
    ('HEALTH', ('health',)),
    ('PE', ('physical education',)),
    ('REL', ('religion',)),
    ('LIB', ('library',)),
    ('SEL', ('social emotional', 'social and emotional')),
    ('EL', ('early learning',)),
    ('SPED', ('special education',)),
)


class TaxonomyError(Exception):
    pass


def validate_keyword_table(keyword_table=CATEGORY_KEYWORDS, categories=CATEGORIES) -> None:
    seen = set()
    for i, (category, keywords) in enumerate(keyword_table):
        if category not in categories:
            raise TaxonomyError(f"keyword_table[{i}] unknown category '{category}'")
        if category in seen:
            raise TaxonomyError(f"keyword_table[{i}] duplicate category '{category}'")
        seen.add(category)
        if not keywords:
            raise TaxonomyError(f"keyword_table[{i}] '{category}' has no triggers")
        for keyword in keywords:
            if not keyword or keyword != keyword.lower():
                raise TaxonomyError(
                    f"keyword_table[{i}] '{category}' trigger must be non-empty lowercase: '{keyword}'"
                )


def categorize_by_keyword(subject: str, keyword_table=CATEGORY_KEYWORDS) -> str | None:
    """Return the first category whose triggers occur in ``subject``, else None.

    Matching is plain substring containment on the lowercased subject, so
    "Mathematical Thinking" hits MATH and "Relationships" hits ELA ("ela").
    """
    if not isinstance(subject, str) or not subject:
        return None
    lower_subject = subject.lower()
    for category, keywords in keyword_table:
        if any(keyword in lower_subject for keyword in keywords):
            return category
    return None
