"""PostgreSQL adapter: bulk loading of processed sheets and read-only querying."""
