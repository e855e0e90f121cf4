from protean.domain import Domain
from sqlalchemy import create_engine


def configure_database(domain: Domain, settings) -> None:
    """Point the default provider at ``settings.database_url`` when one is set.

    Must run before ``domain.init()``. Without a URL the domain keeps
    Protean's in-memory provider.
    """
    if not settings.database_url:
        return
    provider = "postgresql" if settings.database_url.startswith("postgresql") else "sqlite"
    domain.config["databases"]["default"] = {
        "provider": provider,
        "database_uri": settings.database_url,
    }


def setup_db(domain: Domain):
    """Setup database schema"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                engine = create_engine(provider.conn_info["database_uri"])

                # Accessing _dao registers each model with SQLAlchemy's metadata
                for _, aggregate_record in domain.registry.aggregates.items():
                    if aggregate_record.cls.meta_.provider == provider.name:
                        domain.repository_for(aggregate_record.cls)._dao  # noqa: B018

                for _, entity_record in domain.registry.entities.items():
                    if entity_record.cls.meta_.provider == provider.name:
                        domain.repository_for(entity_record.cls)._dao  # noqa: B018

                provider._metadata.create_all(engine)


def drop_db(domain: Domain):
    """Drop database schema"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                engine = create_engine(provider.conn_info["database_uri"])
                provider._metadata.drop_all(engine)
