"""Persistence for pet progression records"""

from soulpet.db.gateway import InMemoryGateway, PersistenceGateway, PostgresGateway

__all__ = [
    "PersistenceGateway",
    "PostgresGateway",
    "InMemoryGateway",
]
