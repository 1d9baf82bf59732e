"""
Proof Service Data Repository

Data access layer - PostgreSQL (Async)
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from core.config import InfraConfig
from core.postgres_client import PostgresClientWrapper

from .models import (
    Address,
    Cadence,
    Owner,
    Proof,
    ProofStatus,
    Seed,
    SeedStatus,
)

logger = logging.getLogger(__name__)


class ExtendedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and datetime types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


def json_dumps(obj):
    """JSON dumps with Decimal and datetime support"""
    return json.dumps(obj, cls=ExtendedJSONEncoder)


def _json_field(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


SCHEMA_SQL = """
CREATE SCHEMA IF NOT EXISTS {schema};

CREATE TABLE IF NOT EXISTS {schema}.owners (
    user_id TEXT PRIMARY KEY,
    email TEXT,
    provider_api_key TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS {schema}.seeds (
    seed_id TEXT PRIMARY KEY,
    public_id TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    front TEXT NOT NULL,
    back TEXT NOT NULL,
    cadence TEXT NOT NULL DEFAULT 'one_time',
    to_address JSONB NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    last_run_at TIMESTAMPTZ,
    next_run_at TIMESTAMPTZ,
    metadata JSONB NOT NULL DEFAULT '{{}}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS seeds_user_id_idx ON {schema}.seeds (user_id);
CREATE INDEX IF NOT EXISTS seeds_due_idx ON {schema}.seeds (status, next_run_at);

CREATE TABLE IF NOT EXISTS {schema}.proofs (
    proof_id TEXT PRIMARY KEY,
    public_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    seed_id TEXT,
    seed_name TEXT,
    resource_id TEXT NOT NULL,
    provider_url TEXT,
    front_thumbnail_url TEXT,
    back_thumbnail_url TEXT,
    status TEXT NOT NULL DEFAULT 'created',
    tracking_number TEXT,
    mailed_at TIMESTAMPTZ,
    delivered_at TIMESTAMPTZ,
    quality_rating INTEGER CHECK (quality_rating BETWEEN 1 AND 5),
    printer_vendor TEXT,
    notes TEXT,
    live_proof_url TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS proofs_resource_id_idx ON {schema}.proofs (resource_id);
CREATE INDEX IF NOT EXISTS proofs_user_id_idx ON {schema}.proofs (user_id);
CREATE INDEX IF NOT EXISTS proofs_seed_id_idx ON {schema}.proofs (seed_id);
CREATE INDEX IF NOT EXISTS proofs_public_id_idx ON {schema}.proofs (user_id, public_id);
"""


class ProofRepository:
    """Seed/proof data repository - PostgreSQL (Async)"""

    SEED_COLUMNS = {
        "name", "front", "back", "cadence", "to_address", "status",
        "last_run_at", "next_run_at", "metadata",
    }
    PROOF_COLUMNS = {
        "seed_id", "seed_name", "provider_url", "front_thumbnail_url", "back_thumbnail_url",
        "status", "tracking_number", "mailed_at", "delivered_at", "quality_rating",
        "printer_vendor", "notes", "live_proof_url",
    }

    def __init__(self, config: Optional[InfraConfig] = None, db: Optional[PostgresClientWrapper] = None):
        self.db = db or PostgresClientWrapper("proof_service", config=config)
        self.schema = "proofs"

        # Table names
        self.seeds_table = "seeds"
        self.proofs_table = "proofs"
        self.owners_table = "owners"

    async def initialize(self):
        """Initialize database connection and schema"""
        await self.db.connect()
        await self.db.execute(SCHEMA_SQL.format(schema=self.schema))
        logger.info("Proof repository initialized with PostgreSQL")

    async def close(self):
        """Close database connection"""
        await self.db.close()
        logger.info("Proof repository database connection closed")

    async def health_check(self) -> bool:
        """Check repository health"""
        result = await self.db.health_check()
        return bool(result and result.get("healthy"))

    def _set_clause(self, updates: Dict[str, Any], allowed: set) -> tuple:
        unknown = set(updates) - allowed
        if unknown:
            raise ValueError(f"Unknown columns in update: {sorted(unknown)}")

        set_clauses = []
        params = []
        for key, value in updates.items():
            params.append(self._to_db_value(value))
            set_clauses.append(f"{key} = ${len(params)}")

        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")
        return set_clauses, params

    @staticmethod
    def _to_db_value(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, list):
            return json_dumps([v.model_dump() if hasattr(v, "model_dump") else v for v in value])
        if isinstance(value, dict):
            return json_dumps(value)
        return value

    # ====================
    # Seeds
    # ====================

    async def save_seed(self, seed: Seed) -> Seed:
        """Save a seed"""
        try:
            query = f'''
                INSERT INTO {self.schema}.{self.seeds_table} (
                    seed_id, public_id, user_id, name, front, back, cadence,
                    to_address, status, last_run_at, next_run_at, metadata,
                    created_at, updated_at
                ) VALUES (
                    $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14
                )
                ON CONFLICT (seed_id) DO UPDATE SET
                    name = EXCLUDED.name,
                    front = EXCLUDED.front,
                    back = EXCLUDED.back,
                    cadence = EXCLUDED.cadence,
                    to_address = EXCLUDED.to_address,
                    status = EXCLUDED.status,
                    last_run_at = EXCLUDED.last_run_at,
                    next_run_at = EXCLUDED.next_run_at,
                    metadata = EXCLUDED.metadata,
                    updated_at = EXCLUDED.updated_at
                RETURNING *
            '''
            params = [
                seed.seed_id,
                seed.public_id,
                seed.user_id,
                seed.name,
                seed.front,
                seed.back,
                seed.cadence.value,
                json_dumps([a.model_dump() for a in seed.to_address]),
                seed.status.value,
                seed.last_run_at,
                seed.next_run_at,
                json_dumps(seed.metadata),
                seed.created_at,
                seed.updated_at,
            ]

            row = await self.db.query_row(query, params)
            return self._row_to_seed(row) if row else seed

        except Exception as e:
            logger.error(f"Error saving seed {seed.seed_id}: {e}")
            raise

    async def get_seed(self, seed_id: str) -> Optional[Seed]:
        """Get seed by ID"""
        query = f"SELECT * FROM {self.schema}.{self.seeds_table} WHERE seed_id = $1"
        row = await self.db.query_row(query, [seed_id])
        return self._row_to_seed(row) if row else None

    async def get_seed_for_owner(self, user_id: str, seed_id: str) -> Optional[Seed]:
        """Get seed by owner and ID"""
        query = f'''
            SELECT * FROM {self.schema}.{self.seeds_table}
            WHERE user_id = $1 AND seed_id = $2
        '''
        row = await self.db.query_row(query, [user_id, seed_id])
        return self._row_to_seed(row) if row else None

    async def get_seed_for_owner_by_public_id(self, user_id: str, public_id: str) -> Optional[Seed]:
        """Get seed by owner and public code"""
        query = f'''
            SELECT * FROM {self.schema}.{self.seeds_table}
            WHERE user_id = $1 AND public_id = $2
        '''
        row = await self.db.query_row(query, [user_id, public_id])
        return self._row_to_seed(row) if row else None

    async def list_seeds(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Seed]:
        """List an owner's seeds, newest first"""
        query = f'''
            SELECT * FROM {self.schema}.{self.seeds_table}
            WHERE user_id = $1
            ORDER BY created_at DESC
            LIMIT $2 OFFSET $3
        '''
        rows = await self.db.query(query, [user_id, limit, offset])
        return [self._row_to_seed(row) for row in rows]

    async def update_seed(self, seed_id: str, updates: Dict[str, Any]) -> Optional[Seed]:
        """Update seed fields"""
        try:
            if not updates:
                return await self.get_seed(seed_id)

            set_clauses, params = self._set_clause(updates, self.SEED_COLUMNS)
            params.append(seed_id)

            query = f'''
                UPDATE {self.schema}.{self.seeds_table}
                SET {", ".join(set_clauses)}
                WHERE seed_id = ${len(params)}
                RETURNING *
            '''
            row = await self.db.query_row(query, params)
            return self._row_to_seed(row) if row else None

        except Exception as e:
            logger.error(f"Error updating seed {seed_id}: {e}")
            raise

    async def delete_seed(self, seed_id: str) -> bool:
        """Delete a seed"""
        query = f"DELETE FROM {self.schema}.{self.seeds_table} WHERE seed_id = $1"
        return await self.db.execute(query, [seed_id]) > 0

    async def list_due_seeds(self, now: datetime) -> List[Seed]:
        """Active seeds whose next_run_at is set and not after now"""
        query = f'''
            SELECT * FROM {self.schema}.{self.seeds_table}
            WHERE status = $1
              AND next_run_at IS NOT NULL
              AND next_run_at <= $2
            ORDER BY next_run_at ASC
        '''
        rows = await self.db.query(query, [SeedStatus.ACTIVE.value, now])
        return [self._row_to_seed(row) for row in rows]

    # ====================
    # Proofs
    # ====================

    async def save_proof(self, proof: Proof) -> Proof:
        """Save a proof"""
        try:
            query = f'''
                INSERT INTO {self.schema}.{self.proofs_table} (
                    proof_id, public_id, user_id, seed_id, seed_name, resource_id,
                    provider_url, front_thumbnail_url, back_thumbnail_url, status,
                    tracking_number, mailed_at, delivered_at, quality_rating,
                    printer_vendor, notes, live_proof_url, created_at, updated_at
                ) VALUES (
                    $1, $2, $3, $4, $5, $6, $7, $8, $9, $10,
                    $11, $12, $13, $14, $15, $16, $17, $18, $19
                )
                RETURNING *
            '''
            params = [
                proof.proof_id,
                proof.public_id,
                proof.user_id,
                proof.seed_id,
                proof.seed_name,
                proof.resource_id,
                proof.provider_url,
                proof.front_thumbnail_url,
                proof.back_thumbnail_url,
                proof.status.value,
                proof.tracking_number,
                proof.mailed_at,
                proof.delivered_at,
                proof.quality_rating,
                proof.printer_vendor,
                proof.notes,
                proof.live_proof_url,
                proof.created_at,
                proof.updated_at,
            ]

            row = await self.db.query_row(query, params)
            return self._row_to_proof(row) if row else proof

        except Exception as e:
            logger.error(f"Error saving proof for resource {proof.resource_id}: {e}")
            raise

    async def get_proof(self, proof_id: str) -> Optional[Proof]:
        """Get proof by ID"""
        query = f"SELECT * FROM {self.schema}.{self.proofs_table} WHERE proof_id = $1"
        row = await self.db.query_row(query, [proof_id])
        return self._row_to_proof(row) if row else None

    async def get_proof_for_owner(self, user_id: str, proof_id: str) -> Optional[Proof]:
        """Get proof by owner and ID"""
        query = f'''
            SELECT * FROM {self.schema}.{self.proofs_table}
            WHERE user_id = $1 AND proof_id = $2
        '''
        row = await self.db.query_row(query, [user_id, proof_id])
        return self._row_to_proof(row) if row else None

    async def get_proof_for_owner_by_public_id(self, user_id: str, public_id: str) -> Optional[Proof]:
        """Get an owner's newest proof carrying the public code"""
        query = f'''
            SELECT * FROM {self.schema}.{self.proofs_table}
            WHERE user_id = $1 AND public_id = $2
            ORDER BY created_at DESC
            LIMIT 1
        '''
        row = await self.db.query_row(query, [user_id, public_id])
        return self._row_to_proof(row) if row else None

    async def get_proof_by_resource_id(self, resource_id: str) -> Optional[Proof]:
        """Get proof by mail provider resource ID"""
        query = f'''
            SELECT * FROM {self.schema}.{self.proofs_table}
            WHERE resource_id = $1
            ORDER BY created_at DESC
            LIMIT 1
        '''
        row = await self.db.query_row(query, [resource_id])
        return self._row_to_proof(row) if row else None

    async def list_proofs(
        self,
        user_id: str,
        status: Optional[ProofStatus] = None,
        seed_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Proof]:
        """List an owner's proofs, newest first"""
        conditions = ["user_id = $1"]
        params: List[Any] = [user_id]

        if status:
            params.append(status.value)
            conditions.append(f"status = ${len(params)}")
        if seed_id:
            params.append(seed_id)
            conditions.append(f"seed_id = ${len(params)}")

        params.extend([limit, offset])
        query = f'''
            SELECT * FROM {self.schema}.{self.proofs_table}
            WHERE {" AND ".join(conditions)}
            ORDER BY created_at DESC
            LIMIT ${len(params) - 1} OFFSET ${len(params)}
        '''
        rows = await self.db.query(query, params)
        return [self._row_to_proof(row) for row in rows]

    async def update_proof(self, proof_id: str, updates: Dict[str, Any]) -> Optional[Proof]:
        """Update proof fields"""
        try:
            if not updates:
                return await self.get_proof(proof_id)

            set_clauses, params = self._set_clause(updates, self.PROOF_COLUMNS)
            params.append(proof_id)

            query = f'''
                UPDATE {self.schema}.{self.proofs_table}
                SET {", ".join(set_clauses)}
                WHERE proof_id = ${len(params)}
                RETURNING *
            '''
            row = await self.db.query_row(query, params)
            return self._row_to_proof(row) if row else None

        except Exception as e:
            logger.error(f"Error updating proof {proof_id}: {e}")
            raise

    async def delete_proof(self, proof_id: str) -> bool:
        """Delete a proof"""
        query = f"DELETE FROM {self.schema}.{self.proofs_table} WHERE proof_id = $1"
        return await self.db.execute(query, [proof_id]) > 0

    async def orphan_proofs(self, seed_id: str, seed_name: str) -> int:
        """Null the seed back-link of every proof of a seed and snapshot its name"""
        query = f'''
            UPDATE {self.schema}.{self.proofs_table}
            SET seed_id = NULL, seed_name = $1, updated_at = $2
            WHERE seed_id = $3
        '''
        count = await self.db.execute(query, [seed_name, datetime.now(timezone.utc), seed_id])
        logger.info(f"Orphaned {count} proofs of seed {seed_id}")
        return count

    # ====================
    # Owners
    # ====================

    async def get_owner(self, user_id: str) -> Optional[Owner]:
        """Get owner with provider credentials"""
        query = f"SELECT * FROM {self.schema}.{self.owners_table} WHERE user_id = $1"
        row = await self.db.query_row(query, [user_id])
        if not row:
            return None
        return Owner(
            user_id=row["user_id"],
            email=row.get("email"),
            provider_api_key=row.get("provider_api_key"),
        )

    async def update_owner_api_key(self, user_id: str, api_key: Optional[str]) -> Owner:
        """Store (or clear) an owner's provider API key"""
        query = f'''
            INSERT INTO {self.schema}.{self.owners_table} (user_id, provider_api_key, updated_at)
            VALUES ($1, $2, $3)
            ON CONFLICT (user_id) DO UPDATE SET
                provider_api_key = EXCLUDED.provider_api_key,
                updated_at = EXCLUDED.updated_at
            RETURNING *
        '''
        row = await self.db.query_row(query, [user_id, api_key, datetime.now(timezone.utc)])
        return Owner(user_id=row["user_id"], email=row.get("email"), provider_api_key=row.get("provider_api_key"))

    # ====================
    # Row converters
    # ====================

    def _row_to_seed(self, row: Dict[str, Any]) -> Seed:
        """Convert database row to Seed model"""
        addresses = _json_field(row.get("to_address"), [])
        metadata = _json_field(row.get("metadata"), {})

        # Rows were validated on the way in
        return Seed.model_construct(
            seed_id=row.get("seed_id"),
            public_id=row.get("public_id"),
            user_id=row.get("user_id"),
            name=row.get("name"),
            front=row.get("front"),
            back=row.get("back"),
            cadence=Cadence(row.get("cadence")),
            to_address=[Address.model_construct(**a) for a in addresses],
            status=SeedStatus(row.get("status")),
            last_run_at=row.get("last_run_at"),
            next_run_at=row.get("next_run_at"),
            metadata=metadata,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def _row_to_proof(self, row: Dict[str, Any]) -> Proof:
        """Convert database row to Proof model"""
        return Proof.model_construct(
            proof_id=row.get("proof_id"),
            public_id=row.get("public_id"),
            user_id=row.get("user_id"),
            seed_id=row.get("seed_id"),
            seed_name=row.get("seed_name"),
            resource_id=row.get("resource_id"),
            provider_url=row.get("provider_url"),
            front_thumbnail_url=row.get("front_thumbnail_url"),
            back_thumbnail_url=row.get("back_thumbnail_url"),
            status=ProofStatus(row.get("status")),
            tracking_number=row.get("tracking_number"),
            mailed_at=row.get("mailed_at"),
            delivered_at=row.get("delivered_at"),
            quality_rating=row.get("quality_rating"),
            printer_vendor=row.get("printer_vendor"),
            notes=row.get("notes"),
            live_proof_url=row.get("live_proof_url"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


__all__ = ["ProofRepository", "SCHEMA_SQL"]
