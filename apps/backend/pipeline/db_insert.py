"""
Database persistence for scraped jobs and job descriptions.

Both repositories upsert a whole batch in one statement and one transaction.
Job descriptions reference jobs, so jobs must be saved first.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

import psycopg2
from psycopg2.extras import Json, RealDictCursor, execute_values

from crawler.models import DetailRecord, ListingRecord

logger = logging.getLogger(__name__)

JOB_COLUMNS = ("id", "title", "company", "company_link", "location", "job_link")

UPSERT_JOBS_SQL = """
    INSERT INTO jobs (id, title, company, company_link, location, job_link)
    VALUES %s
    ON CONFLICT (id) DO UPDATE SET
        title = EXCLUDED.title,
        company = EXCLUDED.company,
        company_link = EXCLUDED.company_link,
        location = EXCLUDED.location,
        job_link = EXCLUDED.job_link
"""

UPSERT_DESCRIPTIONS_SQL = """
    INSERT INTO job_descriptions (job_id, description, job_criteria)
    VALUES %s
    ON CONFLICT (job_id) DO UPDATE SET
        description = EXCLUDED.description,
        job_criteria = EXCLUDED.job_criteria,
        updated_at = CURRENT_TIMESTAMP
"""


def dedupe_jobs(jobs: Sequence[ListingRecord]) -> List[ListingRecord]:
    """Keep one record per job id; the last occurrence wins."""
    by_id: Dict[int, ListingRecord] = {}
    for job in jobs:
        by_id.pop(job.job_id, None)
        by_id[job.job_id] = job
    return list(by_id.values())


def dedupe_descriptions(descriptions: Sequence[DetailRecord]) -> List[DetailRecord]:
    by_id: Dict[int, DetailRecord] = {}
    for description in descriptions:
        by_id.pop(description.job_id, None)
        by_id[description.job_id] = description
    return list(by_id.values())


class JobSink(ABC):
    """Batch upsert target for listing records."""

    @abstractmethod
    def save_jobs(self, jobs: Sequence[ListingRecord]) -> int:
        """Upsert jobs keyed by id and return the number of rows written."""


class JobDescriptionSink(ABC):
    """Batch upsert target for detail records."""

    @abstractmethod
    def save_job_descriptions(self, descriptions: Sequence[DetailRecord]) -> int:
        """Upsert descriptions keyed by job id and return the number of rows written."""


class _PostgresRepository:
    def __init__(self, db_url: str, page_size: int = 500):
        """
        Args:
            db_url: PostgreSQL connection string
            page_size: Rows per VALUES page sent by execute_values
        """
        if not db_url:
            raise ValueError("db_url is required")
        self.db_url = db_url
        self.page_size = page_size

    def _get_db_conn(self):
        """Get database connection"""
        return psycopg2.connect(self.db_url, connect_timeout=5)

    def _upsert(self, sql: str, rows: List[Tuple], label: str) -> int:
        conn = self._get_db_conn()
        try:
            with conn.cursor() as cur:
                execute_values(cur, sql, rows, page_size=self.page_size)
            conn.commit()
            logger.info(f"[db_insert] Upserted {len(rows)} {label}")
            return len(rows)
        except psycopg2.Error as e:
            logger.error(f"[db_insert] Error saving {label}: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()


class JobRepository(_PostgresRepository, JobSink):
    """jobs table access"""

    def save_jobs(self, jobs: Sequence[ListingRecord]) -> int:
        if not jobs:
            return 0
        unique = dedupe_jobs(jobs)
        rows = [
            (job.job_id, job.title, job.company, job.company_link, job.location, job.job_link)
            for job in unique
        ]
        return self._upsert(UPSERT_JOBS_SQL, rows, "jobs")

    def get_all_jobs(self) -> List[ListingRecord]:
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(f"SELECT {', '.join(JOB_COLUMNS)} FROM jobs")
                return [self._row_to_job(row) for row in cur.fetchall()]
        finally:
            conn.close()

    def get_job_by_id(self, job_id: int) -> Optional[ListingRecord]:
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(f"SELECT {', '.join(JOB_COLUMNS)} FROM jobs WHERE id = %s", (job_id,))
                row = cur.fetchone()
                return self._row_to_job(row) if row else None
        finally:
            conn.close()

    @staticmethod
    def _row_to_job(row) -> ListingRecord:
        return ListingRecord(
            job_id=row["id"],
            title=row["title"],
            company=row["company"],
            company_link=row["company_link"] or "",
            location=row["location"],
            job_link=row["job_link"],
        )


class JobDescriptionRepository(_PostgresRepository, JobDescriptionSink):
    """job_descriptions table access"""

    def save_job_descriptions(self, descriptions: Sequence[DetailRecord]) -> int:
        if not descriptions:
            return 0
        unique = dedupe_descriptions(descriptions)
        rows = [(d.job_id, d.description, Json(d.criteria or {})) for d in unique]
        return self._upsert(UPSERT_DESCRIPTIONS_SQL, rows, "job descriptions")

    def get_job_description(self, job_id: int) -> Optional[Tuple[str, Dict[str, str]]]:
        """
        Returns:
            (description, criteria), or None when the job has no description
        """
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    "SELECT description, job_criteria FROM job_descriptions WHERE job_id = %s",
                    (job_id,),
                )
                row = cur.fetchone()
        finally:
            conn.close()

        if not row:
            return None
        criteria = row["job_criteria"] or {}
        if isinstance(criteria, (str, bytes)):
            criteria = json.loads(criteria)
        return row["description"], criteria
