"""Access grants issued to buyers after a confirmed payment."""

import logging
from typing import Optional

from asyncpg.exceptions import PostgresError

from database import DatabaseError, get_pool

logger = logging.getLogger(__name__)

class AccessGrantError(Exception):
    """Raised when a grant cannot be written or read."""
    pass

class AccessGrantManager:
    """Records which buyer may retrieve which dataset's content."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def grant_access(
        self,
        dataset_id: str,
        cid: str,
        buyer_address: str,
        tx_hash: Optional[str] = None
    ) -> None:
        """Grant a buyer access to a dataset's content. Granting twice is a no-op.

        Raises:
            AccessGrantError: If the grant cannot be stored
        """
        try:
            await self.ensure_pool()
            async with self.pool.acquire() as conn:
                await conn.execute(
                    '''
                    INSERT INTO access_grants (dataset_id, buyer_address, cid, tx_hash)
                    VALUES ($1, $2, $3, $4)
                    ON CONFLICT (dataset_id, buyer_address) DO NOTHING
                    ''',
                    dataset_id, buyer_address.lower(), cid, tx_hash
                )
        except (PostgresError, DatabaseError, OSError) as e:
            logger.error(f"Error granting {buyer_address} access to {dataset_id}: {e}")
            raise AccessGrantError(f"Failed to grant access: {e}")

        logger.info(f"Granted {buyer_address} access to {dataset_id}")

    async def has_access(self, dataset_id: str, buyer_address: str) -> bool:
        try:
            await self.ensure_pool()
            async with self.pool.acquire() as conn:
                return bool(await conn.fetchval(
                    '''
                    SELECT EXISTS(
                        SELECT 1 FROM access_grants
                        WHERE dataset_id = $1 AND buyer_address = $2
                    )
                    ''',
                    dataset_id, buyer_address.lower()
                ))
        except (PostgresError, DatabaseError, OSError) as e:
            logger.error(f"Error reading access grant for {dataset_id}: {e}")
            raise AccessGrantError(f"Failed to read access grant: {e}")
