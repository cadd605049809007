"""Statistics store: ORM models, engine/session factory and StatsStore."""
