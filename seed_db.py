import asyncio
import sys

from sqlmodel import SQLModel

from sitecfg.core.db import engine
from sitecfg.core.tenants import initialize_tenant, seed_master_settings


async def seed_data(tenant_ids):
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    inserted, skipped = await seed_master_settings()
    print(f"Master settings: {inserted} inserted, {skipped} already present.")

    for tenant_id in tenant_ids:
        copied = await initialize_tenant(tenant_id)
        print(f"Tenant {tenant_id}: {copied} settings copied from master.")


if __name__ == "__main__":
    # Usage: python seed_db.py [tenant_id ...]
    asyncio.run(seed_data(sys.argv[1:]))
