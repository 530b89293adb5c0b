import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from app_config import AppConfig, AppConfigurationError, load_app_config, resolve_config_path
from monitor import LogMonitor, MonitorConfig, MonitorConfigurationError
from tts import (
    AnnouncementPipeline,
    InitializationError,
    PiperTTSEngine,
    SoundDeviceAudioOutput,
    TTSConfig,
    TTSConfigurationError,
    TTSError,
)

# Upper bound for letting queued announcements finish during shutdown.
SHUTDOWN_DRAIN_TIMEOUT_SECONDS = 10.0


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure logging for the application."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("log_announcer")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="log-announcer",
        description="Watch a game log and speak configured announcements",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to config.toml (defaults to $APP_CONFIG_FILE or ./config.toml)",
    )
    parser.add_argument(
        "--say",
        metavar="TEXT",
        default=None,
        help="Speak one test announcement and exit",
    )
    parser.add_argument(
        "--no-precache",
        action="store_true",
        help="Skip synthesizing configured announcements at startup",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def format_cause_chain(error: BaseException) -> str:
    """Render `error` and its chained causes as one readable line."""
    parts: list[str] = []
    current: Optional[BaseException] = error
    while current is not None and len(parts) < 10:
        parts.append(f"{type(current).__name__}: {current}")
        current = current.__cause__ or current.__context__
    return " <- caused by ".join(parts)


def install_stop_handlers(stop_event: asyncio.Event) -> None:
    """Set `stop_event` on SIGINT/SIGTERM where the event loop supports it."""
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops: Ctrl+C surfaces as KeyboardInterrupt instead.
            return


async def run_announcer(
    app_config: AppConfig,
    pipeline: AnnouncementPipeline,
    monitor_config: MonitorConfig,
    *,
    precache: bool,
    logger: logging.Logger,
) -> int:
    if precache and app_config.messages:
        try:
            await pipeline.precache(app_config.announcements)
        except TTSError as error:
            logger.warning("Pre-caching failed, continuing with on-demand synthesis: %s", error)

    monitor = LogMonitor(
        monitor_config,
        app_config.messages,
        pipeline,
        logger=logging.getLogger("monitor"),
    )
    stop_event = asyncio.Event()
    install_stop_handlers(stop_event)

    monitor.start()
    logger.info("Ready! Watching for %d configured message(s)...", len(app_config.messages))

    waiter = asyncio.ensure_future(monitor.wait())
    stopper = asyncio.ensure_future(stop_event.wait())
    exit_code = 0
    try:
        done, _ = await asyncio.wait(
            {waiter, stopper},
            return_when=asyncio.FIRST_COMPLETED,
        )
        if waiter in done and waiter.exception() is not None:
            logger.error("Log monitor failed: %s", format_cause_chain(waiter.exception()))
            exit_code = 1
        elif stopper in done:
            logger.info("Shutdown requested.")
    finally:
        stopper.cancel()
        waiter.cancel()
        await monitor.stop()
        try:
            await asyncio.wait_for(pipeline.drain(), SHUTDOWN_DRAIN_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Dropping announcements still queued at shutdown")

    return exit_code


async def _async_main(args: argparse.Namespace, app_config: AppConfig, logger: logging.Logger) -> int:
    try:
        tts_config = TTSConfig.from_settings(app_config.tts)
        monitor_config = MonitorConfig.from_settings(app_config.monitor)
    except (TTSConfigurationError, MonitorConfigurationError) as error:
        logger.error("Configuration error: %s", error)
        return 1

    try:
        # Model loading is disk-bound; keep it off the event loop.
        engine = await asyncio.to_thread(
            PiperTTSEngine,
            tts_config,
            logging.getLogger("tts.engine"),
        )
    except InitializationError as error:
        logger.error("TTS initialization error: %s", format_cause_chain(error))
        return 1

    output = SoundDeviceAudioOutput(
        output_device_index=tts_config.output_device_index,
        logger=logging.getLogger("tts.output"),
    )
    pipeline = AnnouncementPipeline(engine, output, logger=logging.getLogger("tts.pipeline"))
    try:
        if args.say is not None:
            try:
                await pipeline.announce(args.say)
            except TTSError as error:
                logger.error("Failed to play announcement: %s", format_cause_chain(error))
                return 1
            return 0

        return await run_announcer(
            app_config,
            pipeline,
            monitor_config,
            precache=app_config.tts.precache and not args.no_precache,
            logger=logger,
        )
    finally:
        pipeline.close()


def main(argv: Optional[list[str]] = None) -> int:
    """Run the log announcer."""
    args = parse_args(argv)
    logger = setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config_path = resolve_config_path(args.config)
        app_config = load_app_config(str(config_path))
        logger.info("Loaded runtime config: %s", config_path)
    except AppConfigurationError as error:
        logger.error("App configuration error: %s", error)
        return 1

    try:
        return asyncio.run(_async_main(args, app_config, logger))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by keyboard interrupt.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
