"""
Record storage for the certification engine.

SQLite-backed store for AI systems, risk assessments, maturity
assessments and issued certificates. Records are kept as JSON alongside
the columns needed for lookup.

Certificate numbers carry a UNIQUE constraint; inserting a duplicate
raises SerialCollisionError and nothing is overwritten.
"""

import json
import sqlite3
import threading
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterator, List, Optional

from . import config as settings
from .certificate import AiSystemRecord, CertificateRecord
from .errors import RecordNotFoundError, SerialCollisionError
from .logging_config import audit_log
from .maturity import MaturityAssessmentResult
from .risk import RiskAssessmentResult


class RecordStore(ABC):
    """Abstract interface for engine persistence."""

    @abstractmethod
    def create_ai_system(self, user_id: str, system: AiSystemRecord) -> AiSystemRecord:
        pass

    @abstractmethod
    def get_ai_system(self, system_id: str) -> AiSystemRecord:
        pass

    @abstractmethod
    def create_risk_assessment(self, user_id: str, result: RiskAssessmentResult,
                               ai_system_id: Optional[str] = None) -> str:
        pass

    @abstractmethod
    def get_risk_assessment(self, assessment_id: str) -> RiskAssessmentResult:
        pass

    @abstractmethod
    def create_maturity_assessment(self, user_id: str, result: MaturityAssessmentResult) -> str:
        pass

    @abstractmethod
    def get_maturity_assessment(self, assessment_id: str) -> MaturityAssessmentResult:
        pass

    @abstractmethod
    def create_certificate(self, user_id: str, record: CertificateRecord) -> None:
        """Insert a certificate. Raises SerialCollisionError on a duplicate number."""
        pass

    @abstractmethod
    def get_certificate(self, certificate_number: str) -> CertificateRecord:
        pass

    @abstractmethod
    def get_certificate_json(self, certificate_number: str) -> Optional[dict]:
        pass

    @abstractmethod
    def list_certificates(self, user_id: str) -> List[CertificateRecord]:
        pass


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS ai_systems (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        record_json TEXT NOT NULL,
        created_at INTEGER NOT NULL
    );""",
    """
    CREATE TABLE IF NOT EXISTS risk_assessments (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        ai_system_id TEXT,
        risk_level TEXT NOT NULL,
        result_json TEXT NOT NULL,
        created_at INTEGER NOT NULL
    );""",
    """
    CREATE TABLE IF NOT EXISTS maturity_assessments (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        overall_maturity TEXT NOT NULL,
        result_json TEXT NOT NULL,
        created_at INTEGER NOT NULL
    );""",
    """
    CREATE TABLE IF NOT EXISTS certificates (
        certificate_number TEXT NOT NULL UNIQUE,
        user_id TEXT NOT NULL,
        certificate_type TEXT NOT NULL,
        certificate_hash TEXT NOT NULL,
        record_json TEXT NOT NULL,
        created_at INTEGER NOT NULL
    );""",
    """
    CREATE INDEX IF NOT EXISTS idx_certificates_user
    ON certificates(user_id);""",
    """
    CREATE INDEX IF NOT EXISTS idx_risk_assessments_system
    ON risk_assessments(ai_system_id);""",
)


class SqliteRecordStore(RecordStore):
    """
    SQLite implementation of RecordStore.

    Connections are thread-local and reused within a thread.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = Path(db_path or settings.DB_PATH)
        self._local = threading.local()
        self.init_db()

    def _get_connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, 'conn', None)
        if conn is None:
            if str(self.db_path) != ":memory:":
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on failure."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def init_db(self) -> None:
        """Create tables and indexes. Safe to call repeatedly."""
        with self._transaction() as conn:
            for statement in SCHEMA:
                conn.execute(statement)

    def reset(self) -> None:
        """Delete all records (testing only)."""
        with self._transaction() as conn:
            for table in ("certificates", "maturity_assessments", "risk_assessments", "ai_systems"):
                conn.execute(f"DELETE FROM {table}")

    def close(self) -> None:
        conn = getattr(self._local, 'conn', None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    # AI systems

    def create_ai_system(self, user_id: str, system: AiSystemRecord) -> AiSystemRecord:
        stored = replace(system, id=system.id or str(uuid.uuid4()))
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO ai_systems(id, user_id, record_json, created_at) VALUES(?,?,?,?)",
                (stored.id, user_id, json.dumps(stored.to_dict()), int(time.time()))
            )
        return stored

    def get_ai_system(self, system_id: str) -> AiSystemRecord:
        row = self._fetch_one("SELECT record_json FROM ai_systems WHERE id=?", system_id)
        if row is None:
            raise RecordNotFoundError("ai_system", system_id)
        return AiSystemRecord.from_dict(json.loads(row['record_json']))

    # Assessments

    def create_risk_assessment(self, user_id: str, result: RiskAssessmentResult,
                               ai_system_id: Optional[str] = None) -> str:
        assessment_id = str(uuid.uuid4())
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO risk_assessments(id, user_id, ai_system_id, risk_level, result_json, created_at) "
                "VALUES(?,?,?,?,?,?)",
                (assessment_id, user_id, ai_system_id, result.risk_level.value,
                 json.dumps(result.to_dict()), int(time.time()))
            )
        return assessment_id

    def get_risk_assessment(self, assessment_id: str) -> RiskAssessmentResult:
        row = self._fetch_one("SELECT result_json FROM risk_assessments WHERE id=?", assessment_id)
        if row is None:
            raise RecordNotFoundError("risk_assessment", assessment_id)
        return RiskAssessmentResult.from_dict(json.loads(row['result_json']))

    def create_maturity_assessment(self, user_id: str, result: MaturityAssessmentResult) -> str:
        assessment_id = str(uuid.uuid4())
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO maturity_assessments(id, user_id, overall_maturity, result_json, created_at) "
                "VALUES(?,?,?,?,?)",
                (assessment_id, user_id, result.overall_maturity.value,
                 json.dumps(result.to_dict()), int(time.time()))
            )
        return assessment_id

    def get_maturity_assessment(self, assessment_id: str) -> MaturityAssessmentResult:
        row = self._fetch_one("SELECT result_json FROM maturity_assessments WHERE id=?", assessment_id)
        if row is None:
            raise RecordNotFoundError("maturity_assessment", assessment_id)
        return MaturityAssessmentResult.from_dict(json.loads(row['result_json']))

    # Certificates

    def create_certificate(self, user_id: str, record: CertificateRecord) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO certificates(certificate_number, user_id, certificate_type, "
                    "certificate_hash, record_json, created_at) VALUES(?,?,?,?,?,?)",
                    (record.certificate_number, user_id, record.certificate_type,
                     record.certification.hash, json.dumps(record.to_dict()), int(time.time()))
                )
        except sqlite3.IntegrityError as e:
            audit_log.serial_collision(record.certificate_number)
            raise SerialCollisionError(record.certificate_number) from e

    def get_certificate(self, certificate_number: str) -> CertificateRecord:
        row = self.get_certificate_json(certificate_number)
        if row is None:
            raise RecordNotFoundError("certificate", certificate_number)
        return CertificateRecord.from_dict(row)

    def get_certificate_json(self, certificate_number: str) -> Optional[dict]:
        """Stored certificate dict exactly as persisted, or None."""
        row = self._fetch_one(
            "SELECT record_json FROM certificates WHERE certificate_number=?", certificate_number
        )
        return json.loads(row['record_json']) if row else None

    def list_certificates(self, user_id: str) -> List[CertificateRecord]:
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT record_json FROM certificates WHERE user_id=? ORDER BY created_at DESC, rowid DESC",
            (user_id,)
        )
        return [CertificateRecord.from_dict(json.loads(row['record_json'])) for row in cur.fetchall()]

    def _fetch_one(self, query: str, key: str) -> Optional[sqlite3.Row]:
        conn = self._get_connection()
        return conn.execute(query, (key,)).fetchone()
