"""Schema management for relational providers.

The memory provider needs no schema; PostgreSQL and SQLite need their tables
created once the domain's aggregates are registered.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

RELATIONAL_PROVIDERS = ("sqlite", "postgresql")


def _relational_providers(domain: Domain):
    return [
        provider
        for provider in domain.providers.values()
        if provider.conn_info["provider"] in RELATIONAL_PROVIDERS
    ]


def _register_models(domain: Domain, provider) -> None:
    # Touching ``_dao`` makes the provider build the SQLAlchemy model for each class
    for registry in (domain.registry.aggregates, domain.registry.entities):
        for record in registry.values():
            if record.cls.meta_.provider == provider.name:
                domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> None:
    """Create tables for every aggregate and entity held by a relational provider."""
    with domain.domain_context():
        for provider in _relational_providers(domain):
            _register_models(domain, provider)
            provider._metadata.create_all(create_engine(provider.conn_info["database_uri"]))


def drop_db(domain: Domain) -> None:
    with domain.domain_context():
        for provider in _relational_providers(domain):
            provider._metadata.drop_all(create_engine(provider.conn_info["database_uri"]))
