"""PostgreSQL with the pgvector extension."""

from __future__ import annotations

from ai_testbed.containers.base import SharedContainer
from ai_testbed.models.service import PortBinding, ReadinessCheck, ServiceDescriptor

IMAGE = "pgvector/pgvector:0.8.1-pg18-trixie"
HOST_PORT = 25433
CONTAINER_PORT = 5432
DATABASE = "test"
USERNAME = "pg"
PASSWORD = "postgres"

# Runs once, right after the first start of the label.
ENABLE_EXTENSIONS = """\
set -euo pipefail
USER="${POSTGRES_USER:-postgres}"
DB="${POSTGRES_DB:-$USER}"
export PGPASSWORD="${POSTGRES_PASSWORD:-}"
psql -h 127.0.0.1 -p 5432 -U "$USER" -d "$DB" -v ON_ERROR_STOP=1 -c '
  CREATE EXTENSION IF NOT EXISTS vector;
  CREATE EXTENSION IF NOT EXISTS hstore;
  CREATE EXTENSION IF NOT EXISTS "uuid-ossp";
'
"""


class PgVectorContainer(SharedContainer):
    label = "Pg-vector"

    def build_descriptor(self) -> ServiceDescriptor:
        return ServiceDescriptor(
            label=self.label,
            image=IMAGE,
            ports=(PortBinding(host_port=HOST_PORT, container_port=CONTAINER_PORT),),
            environment={
                "POSTGRES_DB": DATABASE,
                "POSTGRES_USER": USERNAME,
                "POSTGRES_PASSWORD": PASSWORD,
            },
            readiness=(ReadinessCheck(),),
            init_command=("bash", "-lc", ENABLE_EXTENSIONS),
            exports={
                "datasource.postgres.url": f"postgresql://{{host}}:{{port}}/{DATABASE}",
                "datasource.postgres.username": USERNAME,
                "datasource.postgres.password": PASSWORD,
            },
        )
