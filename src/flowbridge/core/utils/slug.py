"""Slug generation for section ids, token manifests, and node id bases"""

import re


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphen-separated identifier-safe slug."""
    text = text.lower()
    text = re.sub(r'[^\w\s-]', '', text)
    text = re.sub(r'[\s_]+', '-', text)
    return re.sub(r'-+', '-', text).strip('-')


def unique_slug(text: str, taken: set[str], fallback: str = "item") -> str:
    """Slugify text and suffix `-1`, `-2`, ... until unused; records the result in taken."""
    base = slugify(text) or fallback
    slug, n = base, 0
    while slug in taken:
        n += 1
        slug = f"{base}-{n}"
    taken.add(slug)
    return slug
