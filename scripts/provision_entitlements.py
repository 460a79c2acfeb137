#!/usr/bin/env python3
"""Yearly entitlement provisioning — one record per active employee ×
active bounded leave category, granted the category's default allowance.

Designed to run once at the start of each leave year:
    5 0 1 1 *

Existing records are never touched, so re-running is safe.

Usage:
    python scripts/provision_entitlements.py                  # all orgs, current year
    python scripts/provision_entitlements.py --org ACME --year 2027
    python scripts/provision_entitlements.py --seed-permissions  # also seed role matrix
    python scripts/provision_entitlements.py --dry-run        # count only, roll back

Requires .env at project root:
    DATABASE_URL, JWT_SECRET
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

from sqlalchemy import select  # noqa: E402

from hrcore.auth.service import AuthorizationService  # noqa: E402
from hrcore.common.log_config import configure_logging  # noqa: E402
from hrcore.config import settings  # noqa: E402
from hrcore.database import Database  # noqa: E402
from hrcore.leave.admin import LeaveAdminService  # noqa: E402
from hrcore.organization.models import Organization  # noqa: E402

import hrcore.approvals.models  # noqa: E402,F401
import hrcore.auth.models  # noqa: E402,F401
import hrcore.common.audit  # noqa: E402,F401
import hrcore.leave.models  # noqa: E402,F401

logger = logging.getLogger("provision_entitlements")


async def provision(
    database: Database,
    year: int,
    org_code: str | None = None,
    seed_permissions: bool = False,
    dry_run: bool = False,
) -> dict[str, int]:
    """Provision every (or one) organization; returns created counts per org code."""
    results: dict[str, int] = {}
    async with database.session_factory() as session:
        query = select(Organization).order_by(Organization.code)
        if org_code:
            query = query.where(Organization.code == org_code)
        organizations = list((await session.execute(query)).scalars().all())
        if org_code and not organizations:
            raise SystemExit(f"Organization '{org_code}' not found")

        admin = LeaveAdminService(session)
        for organization in organizations:
            if seed_permissions:
                await AuthorizationService(session).seed_defaults(organization.id)
            results[organization.code] = await admin.provision_entitlements(
                organization.id, year,
            )

        if dry_run:
            await session.rollback()
            logger.info("Dry run: changes rolled back")
        else:
            await session.commit()
    return results


def main():
    parser = argparse.ArgumentParser(
        description="Provision yearly leave entitlements",
    )
    parser.add_argument("--year", type=int, default=date.today().year,
                        help="Leave year (default: current year)")
    parser.add_argument("--org", type=str, help="Organization code (default: all)")
    parser.add_argument("--seed-permissions", action="store_true",
                        help="Insert missing default role permissions first")
    parser.add_argument("--dry-run", action="store_true",
                        help="Compute counts but roll back")
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL)
    database = Database.from_settings(settings)

    async def _run() -> dict[str, int]:
        try:
            return await provision(
                database,
                args.year,
                org_code=args.org,
                seed_permissions=args.seed_permissions,
                dry_run=args.dry_run,
            )
        finally:
            await database.dispose()

    results = asyncio.run(_run())

    print(f"\n{'=' * 60}\n  PROVISIONING {args.year}{' (dry run)' if args.dry_run else ''}\n{'=' * 60}")
    for code, created in results.items():
        print(f"  {code:<25} {created} records")
    print(f"  {'TOTAL':<25} {sum(results.values())} records")


if __name__ == "__main__":
    main()
