import asyncio
import sys
import signal
import platform
import logging

from pump_sniper.config import Settings
from pump_sniper.core.bot import SniperBot
from pump_sniper.exceptions import ConfigurationException, WalletException
from pump_sniper.utils.logging import setup_logging

logger = logging.getLogger(__name__)

BANNER = """
╔══════════════════════════════════════════════════════════════╗
║               PUMP.FUN BONDING CURVE SNIPER                  ║
╚══════════════════════════════════════════════════════════════╝
Trading Strategy:
- Buy when bonding curve < {max_bc:.0f}%
- Sell 50% at +{take_profit:.0f}%
- Sell 75% at each next x{profit_target:.2f} market cap milestone
- Stop loss at {stop_loss:.0f}% or {sell_bc:.0f}% bonding curve
Keys (then Enter): R reset timer | C continue | S sell 75%
"""


async def main(settings: Settings) -> int:
    setup_logging(settings)
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_shutdown(sig):
        """Handle shutdown signals."""
        logger.info("Received signal %s, shutting down bot...", sig)
        shutdown_event.set()

    # Add signal handlers (not supported on Windows - use fallback)
    if platform.system() != "Windows":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: handle_shutdown(s))
    else:
        signal.signal(signal.SIGINT, lambda s, f: loop.call_soon_threadsafe(handle_shutdown, s))

    bot = SniperBot(settings)
    bot_task = asyncio.create_task(bot.start())
    stop_task = asyncio.create_task(shutdown_event.wait())
    exit_code = 0

    try:
        done, _ = await asyncio.wait({bot_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if bot_task in done:
            bot_task.result()
    except WalletException as e:
        logger.error("%s", e)
        exit_code = 1
    finally:
        stop_task.cancel()
        logger.info("Initiating graceful shutdown...")
        await bot.stop()
        bot_task.cancel()
        await asyncio.gather(bot_task, return_exceptions=True)
        logger.info("Shutdown complete")

    return exit_code


def run() -> None:
    try:
        settings = Settings.from_env()
    except ConfigurationException as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    strategy = settings.strategy
    print(BANNER.format(
        max_bc=strategy.entry.max_bonding_curve_progress,
        take_profit=strategy.exit.take_profit_pct,
        profit_target=strategy.exit.profit_target,
        stop_loss=strategy.exit.stop_loss_pct,
        sell_bc=strategy.exit.sell_bonding_curve_progress,
    ))
    try:
        sys.exit(asyncio.run(main(settings)))
    except KeyboardInterrupt:
        print("Bot stopped by user.")


if __name__ == "__main__":
    run()
