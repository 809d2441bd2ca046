"""Badge catalog seed data: 17 badges across the five categories."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from folies.db.models import BadgeDefinition

logger = logging.getLogger(__name__)

BADGE_SEED_DATA: list[dict] = [
    # Orders
    {
        "name": "Première Bouchée",
        "description": "Passer votre première commande",
        "category": "orders",
        "level": 1,
        "icon": "🍽️",
        "xp_reward": 50,
        "requirement_value": 1,
        "color": "bronze",
        "sort_order": 1,
    },
    {
        "name": "Habitué",
        "description": "Passer 10 commandes",
        "category": "orders",
        "level": 2,
        "icon": "🥡",
        "xp_reward": 100,
        "requirement_value": 10,
        "color": "silver",
        "sort_order": 2,
    },
    {
        "name": "Fidèle du Frigo",
        "description": "Passer 50 commandes",
        "category": "orders",
        "level": 3,
        "icon": "🧊",
        "xp_reward": 250,
        "requirement_value": 50,
        "color": "gold",
        "sort_order": 3,
    },
    {
        "name": "Légende des Folies",
        "description": "Passer 100 commandes",
        "category": "orders",
        "level": 4,
        "icon": "👑",
        "xp_reward": 500,
        "requirement_value": 100,
        "color": "platinum",
        "sort_order": 4,
    },
    # Spending
    {
        "name": "Petit Gourmand",
        "description": "Dépenser 50 € au total",
        "category": "spending",
        "level": 1,
        "icon": "💶",
        "xp_reward": 50,
        "requirement_value": 50,
        "color": "bronze",
        "sort_order": 5,
    },
    {
        "name": "Gourmet",
        "description": "Dépenser 200 € au total",
        "category": "spending",
        "level": 2,
        "icon": "🥂",
        "xp_reward": 150,
        "requirement_value": 200,
        "color": "silver",
        "sort_order": 6,
    },
    {
        "name": "Grand Chef",
        "description": "Dépenser 500 € au total",
        "category": "spending",
        "level": 3,
        "icon": "👨‍🍳",
        "xp_reward": 300,
        "requirement_value": 500,
        "color": "gold",
        "sort_order": 7,
    },
    # Streaks (consecutive days with at least one order)
    {
        "name": "Bon Rythme",
        "description": "Commander 3 jours d'affilée",
        "category": "streak",
        "level": 1,
        "icon": "🔥",
        "xp_reward": 75,
        "requirement_value": 3,
        "color": "bronze",
        "sort_order": 8,
    },
    {
        "name": "Semaine Parfaite",
        "description": "Commander 7 jours d'affilée",
        "category": "streak",
        "level": 2,
        "icon": "📅",
        "xp_reward": 200,
        "requirement_value": 7,
        "color": "silver",
        "sort_order": 9,
    },
    {
        "name": "Inarrêtable",
        "description": "Commander 30 jours d'affilée",
        "category": "streak",
        "level": 3,
        "icon": "⚡",
        "xp_reward": 750,
        "requirement_value": 30,
        "color": "platinum",
        "sort_order": 10,
    },
    # Voting
    {
        "name": "Première Voix",
        "description": "Voter à votre premier sondage",
        "category": "voting",
        "level": 1,
        "icon": "🗳️",
        "xp_reward": 25,
        "requirement_value": 1,
        "color": "bronze",
        "sort_order": 11,
    },
    {
        "name": "Citoyen Gourmand",
        "description": "Voter à 5 sondages",
        "category": "voting",
        "level": 2,
        "icon": "📣",
        "xp_reward": 75,
        "requirement_value": 5,
        "color": "silver",
        "sort_order": 12,
    },
    {
        "name": "Voix du Menu",
        "description": "Voter à 20 sondages",
        "category": "voting",
        "level": 3,
        "icon": "🏛️",
        "xp_reward": 200,
        "requirement_value": 20,
        "color": "gold",
        "sort_order": 13,
    },
    # Special
    {
        "name": "Collectionneur",
        "description": "Débloquer 10 badges",
        "category": "special",
        "level": 3,
        "icon": "🏆",
        "xp_reward": 300,
        "requirement_value": 10,
        "color": "gold",
        "sort_order": 14,
    },
    # Special badges without an automatic rule; granted manually.
    {
        "name": "Lève-tôt",
        "description": "Récupérer une commande avant 8h",
        "category": "special",
        "level": 1,
        "icon": "🌅",
        "xp_reward": 50,
        "requirement_value": 1,
        "color": "bronze",
        "sort_order": 15,
    },
    {
        "name": "Ambassadeur",
        "description": "Parrainer un ami",
        "category": "special",
        "level": 2,
        "icon": "🤝",
        "xp_reward": 100,
        "requirement_value": 1,
        "color": "silver",
        "sort_order": 16,
    },
    {
        "name": "Pionnier",
        "description": "Faire partie des premiers utilisateurs",
        "category": "special",
        "level": 4,
        "icon": "🚀",
        "xp_reward": 500,
        "requirement_value": 1,
        "color": "platinum",
        "sort_order": 17,
    },
]

_UPDATABLE_FIELDS = (
    "description",
    "category",
    "level",
    "icon",
    "xp_reward",
    "requirement_value",
    "color",
    "sort_order",
)


async def seed_badges(db: AsyncSession) -> int:
    """Upsert the badge catalog, keyed by name. Returns number of badges seeded.

    Existing unlocks keep pointing at the same rows; only definitions change.
    """
    dialect = db.get_bind().dialect.name
    seeded = 0
    for badge_data in BADGE_SEED_DATA:
        if dialect == "postgresql":
            stmt = pg_insert(BadgeDefinition).values(**badge_data)
            stmt = stmt.on_conflict_do_update(
                index_elements=["name"],
                set_={field: stmt.excluded[field] for field in _UPDATABLE_FIELDS},
            )
            await db.execute(stmt)
        else:
            result = await db.execute(
                select(BadgeDefinition).where(BadgeDefinition.name == badge_data["name"])
            )
            badge = result.scalar_one_or_none()
            if badge is None:
                db.add(BadgeDefinition(**badge_data))
            else:
                for field in _UPDATABLE_FIELDS:
                    setattr(badge, field, badge_data[field])
        seeded += 1

    await db.commit()
    logger.info("Seeded %d badge definitions", seeded)
    return seeded
