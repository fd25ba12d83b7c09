"""
Account provisioning.

The ledger never creates accounts on its own: they must exist before any
transaction is applied. provision_accounts() inserts the given accounts
if their ids are missing and leaves existing rows (and their balances)
alone, so it is safe to run on every startup.

DEFAULT_ACCOUNTS are the five accounts the service ships with. Limits are
in the smallest currency unit.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.account import Account

# (id, credit_limit), all starting at balance 0
DEFAULT_ACCOUNTS: list[tuple[int, int]] = [
    (1, 100_000),
    (2, 80_000),
    (3, 1_000_000),
    (4, 10_000_000),
    (5, 500_000),
]


async def provision_accounts(
    session_factory: async_sessionmaker[AsyncSession],
    accounts: list[tuple[int, int]] = DEFAULT_ACCOUNTS,
) -> list[int]:
    """
    Insert any missing accounts with balance 0.

    Returns:
        The ids that were actually created.
    """
    wanted = dict(accounts)

    async with session_factory() as session:
        async with session.begin():
            result = await session.execute(
                select(Account.id).where(Account.id.in_(list(wanted)))
            )
            existing = set(result.scalars().all())

            created = [account_id for account_id in wanted if account_id not in existing]
            session.add_all([
                Account(id=account_id, balance=0, credit_limit=wanted[account_id])
                for account_id in created
            ])

    return created
