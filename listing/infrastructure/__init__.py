"""Infrastructure - settings, database, logging and the object store client."""
