# Overview: Service-layer operations for sample data; bootstraps a demo catalog, clients and one representative.

"""
Sample data bootstrap.

Idempotent: rows are matched on their natural keys (rep_code, client_id,
article/gift/pack names, pack/article pair) and only missing ones are
inserted, so running it against a populated store is safe.
"""

from __future__ import annotations

import bcrypt

from .live_store import LiveStore


DEFAULT_REP_PASSWORD = "123456"

SAMPLE_REPRESENTATIVE = {
    "rep_code": "REP001",
    "rep_name": "Ahmed Benali",
    "username": "ahmed",
    "phone": "0555123456",
    "city": "Setif",
    "wilaya": "Setif",
}

SAMPLE_CLIENTS = [
    ("C001", "Amina Boukerche", "Setif", "Setif", "0555987654", "Cite El Hidhab, Setif"),
    ("C002", "Mohamed Rami", "Algiers", "Algiers", "0555123789", "Hydra, Algiers"),
    ("C003", "Fatima Zahra", "Oran", "Oran", "0555456123", "Centre Ville, Oran"),
    ("C004", "Youssef Kaddour", "Constantine", "Constantine", "0555789456", "Panorama, Constantine"),
    ("C005", "Leila Messaoudi", "Annaba", "Annaba", "0555321654", "Centre, Annaba"),
]

SAMPLE_ARTICLES = [
    ("Premium Face Cream", 25.99, "Anti-aging face cream with natural ingredients"),
    ("Vitamin C Serum", 18.50, "Brightening serum with vitamin C"),
    ("Moisturizing Lotion", 15.75, "Daily moisturizer for all skin types"),
    ("Cleansing Foam", 12.25, "Gentle foaming cleanser"),
    ("Eye Cream", 22.00, "Anti-aging eye cream"),
    ("Sunscreen SPF 50", 19.99, "Broad spectrum sun protection"),
    ("Night Repair Serum", 28.50, "Overnight skin repair treatment"),
    ("Exfoliating Scrub", 16.25, "Weekly exfoliating treatment"),
]

SAMPLE_GIFTS = [
    ("Travel Kit", "Compact travel-sized essentials"),
    ("Beauty Bag", "Elegant cosmetic bag"),
    ("Hand Mirror", "Portable beauty mirror"),
    ("Sample Set", "Mini product samples"),
    ("Face Mask Set", "Collection of facial masks"),
]

# (pack name, total price, gift name or None, article names)
SAMPLE_PACKS = [
    ("Pack A", 45.99, "Travel Kit", ["Premium Face Cream", "Moisturizing Lotion"]),
    ("Pack B", 65.50, "Beauty Bag", ["Premium Face Cream", "Vitamin C Serum", "Eye Cream"]),
    ("Pack C", 38.75, None, ["Cleansing Foam", "Sunscreen SPF 50"]),
    ("Premium Pack", 89.99, "Hand Mirror",
     ["Premium Face Cream", "Vitamin C Serum", "Eye Cream", "Night Repair Serum"]),
    ("Starter Pack", 29.99, "Sample Set", ["Cleansing Foam", "Exfoliating Scrub"]),
]


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Hash password using bcrypt; stored as a string."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _find_or_insert(store: LiveStore, table_name: str, match: dict, values: dict) -> tuple[int, bool]:
    existing = store.find(table_name, **match)
    if existing:
        return existing[0]["id"], False
    return store.insert(table_name, {**match, **values}), True


def seed_sample_data(
    store: LiveStore,
    *,
    rep_password: str = DEFAULT_REP_PASSWORD,
    bcrypt_rounds: int = 12,
) -> dict[str, int]:
    """
    Insert the sample representative, clients, articles, gifts and packs.

    Returns the number of rows created per table.
    """
    created = {name: 0 for name in ("representatives", "clients", "articles", "gifts", "packs", "pack_articles")}

    rep = dict(SAMPLE_REPRESENTATIVE)
    rep_code = rep.pop("rep_code")
    if not store.find("representatives", rep_code=rep_code):
        rep["password_hash"] = hash_password(rep_password, rounds=bcrypt_rounds)
        store.insert("representatives", {"rep_code": rep_code, **rep})
        created["representatives"] += 1

    for client_id, full_name, city, wilaya, phone, location in SAMPLE_CLIENTS:
        _, was_created = _find_or_insert(
            store, "clients", {"client_id": client_id},
            {"full_name": full_name, "city": city, "wilaya": wilaya, "phone": phone, "location": location},
        )
        created["clients"] += int(was_created)

    article_ids = {}
    for name, price, description in SAMPLE_ARTICLES:
        article_ids[name], was_created = _find_or_insert(
            store, "articles", {"name": name}, {"price": price, "description": description},
        )
        created["articles"] += int(was_created)

    gift_ids = {}
    for gift_name, description in SAMPLE_GIFTS:
        gift_ids[gift_name], was_created = _find_or_insert(
            store, "gifts", {"gift_name": gift_name}, {"description": description},
        )
        created["gifts"] += int(was_created)

    for pack_name, total_price, gift_name, article_names in SAMPLE_PACKS:
        pack_id, was_created = _find_or_insert(
            store, "packs", {"pack_name": pack_name},
            {"total_price": total_price, "gift_id": gift_ids.get(gift_name)},
        )
        created["packs"] += int(was_created)

        for article_name in article_names:
            article_id = article_ids[article_name]
            if store.get("pack_articles", (pack_id, article_id)) is None:
                store.insert("pack_articles", {"pack_id": pack_id, "article_id": article_id, "quantity": 1})
                created["pack_articles"] += 1

    store.commit()
    return created
