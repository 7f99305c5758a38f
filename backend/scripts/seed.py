"""
Seed a local development database with demo users, events and registrations.

Everything goes through the services, so the seeded data obeys the same
validation and capacity rules as data created over the API.

Usage (from backend/, with the package installed):
    python scripts/seed.py

WARNING: drops and recreates every table of DATABASE_URL.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventhub import models  # noqa: F401
from eventhub.core.logging import get_logger, setup_logging
from eventhub.db.base import Base
from eventhub.db.session import engine
from eventhub.models.user import UserRole
from eventhub.schemas.event import EventCreate
from eventhub.schemas.user import UserCreate
from eventhub.services.auth_service import AuthService
from eventhub.services.event_service import EventService
from eventhub.services.registration_service import RegistrationService
from eventhub.storage import get_storage

logger = get_logger(__name__)

USERS = [
    {"email": "admin@eventhub.ma", "username": "admin", "password": "Admin123!", "role": UserRole.ADMIN.value},
    {"email": "user@eventhub.ma", "username": "youssef", "password": "User123!"},
    {"email": "fatima@eventhub.ma", "username": "fatima", "password": "Fatima123!"},
    {"email": "omar@eventhub.ma", "username": "omar", "password": "Omar123!"},
]

# (organizer index, start in days, duration in days, fields)
EVENTS = [
    (0, 15, 0.5, {
        "title": "Conférence Tech 2026 - Intelligence Artificielle",
        "description": "Une journée complète dédiée aux dernières avancées en Intelligence Artificielle.",
        "category": "conference",
        "location": {"address": "Technopark, Route de Nouaceur", "city": "Casablanca", "postal_code": "20000"},
        "capacity": 500,
        "price": 800,
        "tags": ["IA", "Tech", "Machine Learning", "Innovation"],
    }),
    (1, 7, 0.3, {
        "title": "Atelier React & Node.js - Développement Full Stack",
        "description": "Apprenez à créer des applications web modernes, de la base de données à l'interface.",
        "category": "workshop",
        "location": {"address": "INPT, Madinat Al Irfane", "city": "Rabat", "postal_code": "10100"},
        "capacity": 30,
        "price": 400,
        "tags": ["React", "Node.js", "JavaScript", "Web"],
    }),
    (2, 21, 2, {
        "title": "Festival Gnaoua et Musiques du Monde",
        "description": "Artistes Gnaoua de renommée mondiale et concerts en plein air face à l'océan.",
        "category": "concert",
        "location": {"address": "Place Moulay Hassan", "city": "Essaouira", "postal_code": "44000"},
        "capacity": 5000,
        "price": 150,
        "tags": ["Gnaoua", "Musique", "Festival", "Culture"],
    }),
    (0, 45, 0.4, {
        "title": "Marathon International de Marrakech 2026",
        "description": "Parcours certifié à travers la ville ocre, médaille finisher pour tous les participants.",
        "category": "sport",
        "location": {"address": "Place Jemaa el-Fna", "city": "Marrakech", "postal_code": "40000"},
        "capacity": 8000,
        "price": 300,
        "tags": ["Marathon", "Course", "Sport", "Marrakech"],
    }),
    (1, 10, 0.2, {
        "title": "Networking Startups & Investisseurs - Morocco Tech",
        "description": "Pitchs de 5 minutes, sessions de networking et cocktail de clôture.",
        "category": "networking",
        "location": {"address": "CasaNearshore Park", "city": "Casablanca", "postal_code": "20250"},
        "capacity": 150,
        "price": 0,
        "tags": ["Startup", "Investissement", "Networking", "Business"],
    }),
    (2, 30, 2, {
        "title": "Hackathon Green Tech Morocco",
        "description": "48h pour développer des solutions technologiques pour l'environnement au Maroc.",
        "category": "other",
        "location": {"address": "UM6P", "city": "Benguerir", "postal_code": "43150"},
        "capacity": 100,
        "price": 100,
        "tags": ["Hackathon", "Green Tech", "Innovation", "Écologie"],
    }),
    (0, 20, 2, {
        "title": "Formation Cybersécurité - Niveau Avancé",
        "description": "Deux jours de formation intensive aux techniques avancées de sécurité informatique.",
        "category": "workshop",
        "location": {"address": "ENSIAS, Avenue Mohammed Ben Abdellah Regragui", "city": "Rabat", "postal_code": "10000"},
        "capacity": 20,
        "price": 2500,
        "tags": ["Cybersécurité", "Formation", "Sécurité informatique"],
    }),
    (3, 60, 7, {
        "title": "Mawazine - Rythmes du Monde",
        "description": "Une semaine de concerts internationaux sur les scènes de Rabat.",
        "category": "concert",
        "location": {"address": "OLM Souissi", "city": "Rabat", "postal_code": "10000"},
        "capacity": 25000,
        "price": 500,
        "tags": ["Musique", "Festival", "Mawazine", "Concert"],
    }),
    (1, 25, 0.4, {
        "title": "Conférence Management Agile - Agile Morocco",
        "description": "Retours d'expérience Scrum et Kanban par des praticiens de l'agilité.",
        "category": "conference",
        "status": "draft",
        "location": {"address": "Sofitel Casablanca Tour Blanche", "city": "Casablanca", "postal_code": "20000"},
        "capacity": 200,
        "price": 600,
        "tags": ["Agile", "Management", "Scrum", "Organisation"],
    }),
    (3, 35, 3, {
        "title": "Tournoi International de Golf - Hassan II Trophy",
        "description": "Trois jours de compétition internationale sur le parcours rouge du Royal Golf.",
        "category": "sport",
        "location": {"address": "Royal Golf Dar Es Salam", "city": "Rabat", "postal_code": "10000"},
        "capacity": 200,
        "price": 1500,
        "tags": ["Golf", "Sport", "Tournoi", "International"],
    }),
]

REGISTERED_EVENTS = 5
REGISTRANTS_PER_EVENT = 2


def event_data(start_in_days: float, duration_days: float, fields: dict) -> EventCreate:
    start = datetime.now(timezone.utc) + timedelta(days=start_in_days)
    payload = {**fields, "location": {**fields["location"], "country": "Maroc"}}
    payload.setdefault("status", "published")
    return EventCreate(start_date=start, end_date=start + timedelta(days=duration_days), **payload)


async def seed(session_factory: async_sessionmaker) -> dict:
    """Create demo data on empty tables. Returns how many rows of each kind were created."""
    async with session_factory() as session:
        auth = AuthService(session)
        users = []
        for account in USERS:
            user = await auth.register_user(UserCreate(**{k: account[k] for k in ("email", "username", "password")}))
            if account.get("role"):
                user.role = account["role"]
                await session.commit()
            users.append(user)

        events = EventService(session, get_storage())
        created = []
        for organizer_index, start_in_days, duration_days, fields in EVENTS:
            data = event_data(start_in_days, duration_days, fields)
            created.append(await events.create_event(data, users[organizer_index].id))

        # Two attendees on each of the first published events
        registrations = RegistrationService(session)
        registered = 0
        published = [event for event in created if event.status == "published"][:REGISTERED_EVENTS]
        for event in published:
            eligible = [u for u in users if u.id != event.organizer_id and u.role != UserRole.ADMIN.value]
            for user in eligible[:REGISTRANTS_PER_EVENT]:
                await registrations.register(event.id, user.id, user.role)
                registered += 1

    counts = {"users": len(users), "events": len(created), "registrations": registered}
    logger.info("seed_completed", **counts)
    return counts


async def main():
    setup_logging()
    logger.info("seed_starting", database=engine.url.render_as_string(hide_password=True))

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    try:
        await seed(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    finally:
        await engine.dispose()

    for account in USERS:
        logger.info("seed_account", email=account["email"], password=account["password"], role=account.get("role", "user"))


if __name__ == "__main__":
    asyncio.run(main())
