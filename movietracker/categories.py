from enum import Enum


class Category(str, Enum):
    WATCHING = "watching"
    WILL_WATCH = "will-watch"
    ALREADY_WATCHED = "already-watched"


# Labels the clients send. Keys are matched case-sensitively.
CATEGORY_LABELS: dict[str, Category] = {
    "Watching": Category.WATCHING,
    "Will Watch": Category.WILL_WATCH,
    "Already Watched": Category.ALREADY_WATCHED,
    "watching": Category.WATCHING,
    "will watch": Category.WILL_WATCH,
    "already watched": Category.ALREADY_WATCHED,
    "will-watch": Category.WILL_WATCH,
    "already-watched": Category.ALREADY_WATCHED,
}

# Stored values (compared lower-cased) that land in each bucket on read.
BUCKET_ALIASES: dict[Category, tuple[str, ...]] = {
    Category.WATCHING: ("watching",),
    Category.WILL_WATCH: ("will watch", "will-watch"),
    Category.ALREADY_WATCHED: ("already watched", "already-watched"),
}


def normalize_category(label: str) -> Category | None:
    return CATEGORY_LABELS.get(label)


def bucket_for(stored: str | None) -> Category | None:
    value = (stored or "").lower()
    for category, aliases in BUCKET_ALIASES.items():
        if value in aliases:
            return category
    return None


def partition_by_category(entries) -> dict[str, list]:
    """Group entries into the three buckets, keeping their input order.

    Entries whose stored category matches no bucket are left out.
    """
    buckets: dict[str, list] = {category.value: [] for category in Category}
    for entry in entries:
        category = bucket_for(entry.category)
        if category is not None:
            buckets[category.value].append(entry)
    return buckets
