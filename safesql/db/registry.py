"""Registry of named Database instances owned by the application."""

import logging
from typing import Any, Dict, Optional

from safesql.config.models import SafeSQLConfig
from safesql.db.database import Database
from safesql.db.reporting import ErrorHandler
from safesql.exceptions import DatabaseError

logger = logging.getLogger(__name__)


class DatabaseRegistry:
    """Creates and caches one :class:`Database` per configured name.

    Databases are created lazily on first lookup; none of them connects
    before it runs its first statement.
    """

    def __init__(
        self,
        config: Optional[SafeSQLConfig] = None,
        error_handler: Optional[ErrorHandler] = None,
    ) -> None:
        """Initialize the registry.

        Args:
            config: SafeSQL configuration. May be omitted when every database is
                added with :meth:`register`.
            error_handler: Error handler given to every database created here.
        """
        self.config = config
        self.error_handler = error_handler
        self._databases: Dict[str, Database] = {}
        self._default: Optional[str] = config.default_database if config else None

    @property
    def default_database(self) -> Optional[str]:
        return self._default

    def names(self) -> list:
        configured = list(self.config.databases) if self.config else []
        return configured + [name for name in self._databases if name not in configured]

    def register(self, name: str, database: Database, default: bool = False) -> Database:
        """Add an already built database under ``name``."""
        if name in self._databases:
            raise DatabaseError(f"Database '{name}' is already registered")
        self._databases[name] = database
        if default or self._default is None:
            self._default = name
        return database

    def get(self, db_name: Optional[str] = None) -> Database:
        """Get database by name, creating it from configuration on first use.

        Raises:
            DatabaseError: If the name is unknown or no default is configured.
        """
        if db_name is None:
            db_name = self._default

        if not db_name:
            raise DatabaseError("No database specified and no default database configured")

        if db_name in self._databases:
            return self._databases[db_name]

        if self.config is None or db_name not in self.config.databases:
            raise DatabaseError(
                f"Database '{db_name}' not found. Available databases: {self.names()}"
            )

        database = Database(
            self.config.databases[db_name],
            self.config.policy_for(db_name),
            error_handler=self.error_handler,
        )
        self._databases[db_name] = database
        logger.debug(f"Created database '{db_name}' ({database.config.type.value})")
        return database

    def __getitem__(self, db_name: str) -> Database:
        return self.get(db_name)

    def __contains__(self, db_name: str) -> bool:
        return db_name in self.names()

    def close(self, db_name: str) -> None:
        """Close one database; it reconnects on its next statement."""
        if db_name in self._databases:
            self._databases[db_name].close()

    def close_all(self) -> None:
        for name, database in self._databases.items():
            try:
                database.close()
            except Exception as e:
                logger.warning(f"Error closing database '{name}': {e}")

    def status(self) -> Dict[str, Any]:
        """Describe every known database and its connection state."""
        connections = {}
        for name in self.names():
            database = self._databases.get(name)
            if database is not None:
                db_config = database.config
                state = database.state.value
            else:
                db_config = self.config.databases[name]
                state = "not created"
            connections[name] = {
                'type': db_config.type.value,
                'url': db_config.display_url(),
                'state': state,
                'default': name == self._default,
            }
        return {
            'total_configured': len(self.config.databases) if self.config else 0,
            'total_created': len(self._databases),
            'default_database': self._default,
            'connections': connections,
        }

    def __enter__(self) -> "DatabaseRegistry":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_all()
