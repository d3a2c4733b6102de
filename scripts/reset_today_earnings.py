"""Daily job: zero every driver's today_earnings counter.

Schedule it once a day, e.g. from cron: ``5 0 * * * python scripts/reset_today_earnings.py``.
"""

import asyncio

from courier.state.drivers import DriverRegistry
from courier.state.manager import StateManager
from courier.utils.logging import setup_logging


async def reset_today_earnings() -> int:
    state_manager = StateManager()
    await state_manager.connect()
    try:
        return await DriverRegistry(state_manager).reset_today_earnings()
    finally:
        await state_manager.disconnect()


if __name__ == "__main__":
    setup_logging()
    count = asyncio.run(reset_today_earnings())
    print(f"✓ Reset today's earnings for {count} drivers")
