# Overview: URL slug derivation and collision probing shared by categories and products.

from __future__ import annotations

import re

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lowercase, collapse every run of non-alphanumerics to '-', trim hyphens."""
    return _NON_ALNUM.sub("-", (name or "").lower()).strip("-")


def slug_taken(session, model, slug: str, exclude_id: int | None = None) -> bool:
    query = session.query(model.id).filter(model.slug == slug)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    return session.query(query.exists()).scalar()


def unique_slug(
    session,
    model,
    name: str,
    *,
    exclude_id: int | None = None,
    reserved: set[str] | None = None,
    fallback: str = "item",
) -> str:
    """
    Probe base, base-1, base-2, ... and return the first slug no other row uses.

    `reserved` holds slugs already handed out in the current flush so two
    pending rows with the same name do not both receive `base`. The unique
    index on the slug column is the backstop against concurrent writers.
    """
    reserved = reserved if reserved is not None else set()
    base = slugify(name) or fallback
    candidate = base
    counter = 1
    with session.no_autoflush:
        while candidate in reserved or slug_taken(session, model, candidate, exclude_id):
            candidate = f"{base}-{counter}"
            counter += 1
    reserved.add(candidate)
    return candidate
