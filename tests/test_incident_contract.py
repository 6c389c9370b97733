"""
IncidentRepository contract tests: SQLite (:memory:) and in-memory adapters.
"""

from src.adapters.memory_simulator import InMemoryIncidentRepository
from src.adapters.sqlite_incidents import SqliteIncidentRepository
from tests.contracts.incident_repository_contract import IncidentRepositoryContract


class TestSqliteIncidentRepository(IncidentRepositoryContract):

    def create_repository(self):
        return SqliteIncidentRepository(":memory:")


class TestInMemoryIncidentRepository(IncidentRepositoryContract):

    def create_repository(self):
        return InMemoryIncidentRepository()
