"""Delete all courier data from Redis (useful for local development).

Only keys written by the platform are removed; anything else sharing the
database is left in place.
"""

import argparse
import asyncio

from courier.state import KEY_PATTERNS
from courier.state.manager import StateManager
from courier.utils.logging import setup_logging


async def reset_courier_state() -> int:
    state_manager = StateManager()
    await state_manager.connect()
    try:
        return await state_manager.delete_matching(*KEY_PATTERNS)
    finally:
        await state_manager.disconnect()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--yes", action="store_true", help="skip the confirmation prompt")
    args = parser.parse_args()

    if not args.yes:
        print("\n⚠️  WARNING: This deletes every driver, identity, order and pending OTP!")
        if input("Are you sure? (yes/no): ").lower() != "yes":
            print("Cancelled.")
            return

    setup_logging()
    deleted = asyncio.run(reset_courier_state())
    print(f"✓ Deleted {deleted} courier keys\n")


if __name__ == "__main__":
    main()
