from __future__ import annotations

import argparse
import asyncio
import sys

from rspoassist.domain.catalog import TIERS, get_plan
from rspoassist.persistence.db import SessionLocal, create_schema
from rspoassist.services.accounts import PROVIDER_DEMO, LoginRequest, login
from rspoassist.services.payments import SUBSCRIPTION_ACTIVE


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create a demo auditor account and print its bearer token.")
    parser.add_argument("--tier", default="Professional", choices=TIERS, help="Plan tier for the account")
    parser.add_argument("--ni", default="ni-malaysia", help="National interpretation id")
    return parser


async def seed_demo(tier: str, national_interpretation_id: str) -> int:
    await create_schema()
    async with SessionLocal() as session:
        user, raw_token = await login(
            session,
            LoginRequest(
                provider=PROVIDER_DEMO,
                accepted_terms=True,
                national_interpretation_id=national_interpretation_id,
            ),
        )
        plan = get_plan(tier)
        user.tier = plan.tier
        user.token_limit = plan.tokens
        if tier != "Free":
            user.subscription_status = SUBSCRIPTION_ACTIVE
        await session.commit()
    print(f"user_id={user.id} tier={tier}")
    print(f"Authorization: Bearer {raw_token}")
    return 0


def main() -> int:
    args = _build_parser().parse_args()
    # Surface clear failures and exit non-zero so dev scripts can detect issues.
    try:
        return asyncio.run(seed_demo(args.tier, args.ni))
    except Exception as exc:  # noqa: BLE001 - surface any setup or DB errors
        print(f"seed_demo failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
