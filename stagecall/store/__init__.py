from stagecall.store.base import AuditSink, PhaseStore
from stagecall.store.memory import InMemoryPhaseStore
from stagecall.store.sql import SqlPhaseStore

__all__ = ["AuditSink", "InMemoryPhaseStore", "PhaseStore", "SqlPhaseStore"]
