"""Main application entry point for Scribe."""

import sys
import asyncio
import argparse
import logging
import signal
from pathlib import Path
from typing import Any, Dict, Optional

import discord
from pubsub import pub
from rich.logging import RichHandler

from . import __version__
from .audio.ffmpeg import FFmpegRunner
from .config import ScribeConfig
from .delivery.base import AbstractNotifier, AbstractUploader
from .delivery.discord_notifier import DiscordChannelNotifier
from .delivery.drive_uploader import GoogleDriveUploader
from .delivery.logging_notifier import LoggingNotifier
from .errors import ConfigurationError
from .services.connection_controller import ConnectionController
from .services.postprocess_service import AudioPostProcessor
from .services.recording_service import RecordingService
from .services.session_pipeline import SessionPipeline
from .status_server import StatusServer
from .storage.file_manager import FileManager
from .summarization.gemini_engine import GeminiSummarizationEngine
from .summarization.orchestrator import MODE_TRANSCRIPT, SummarizationOrchestrator
from .summarization.retry import RetryPolicy
from .transcription.google_backend import GoogleSpeechBackend
from .transport.presence_pub import PRESENCE_TOPIC, PresencePublisher
from .transport.pycord_transport import PycordVoiceTransport, presence_event_from_voice_state

logger = logging.getLogger(__name__)


class Server:

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = ScribeConfig(config_path)
        # Set up logging (command line overrides config)
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self._stop_event: Optional[asyncio.Event] = None

    def init(self) -> None:
        logger.info("Initializing services...")

        self.target_user_id = self.config.get_target_user_id()
        self.token = self.config.get_discord_token()

        intents = discord.Intents.default()
        intents.voice_states = True
        intents.guilds = True
        self.bot = discord.Bot(intents=intents)
        self.bot.event(self.on_ready)
        self.bot.event(self.on_voice_state_update)

        self.file_manager = FileManager(self.config.get_data_directory())
        removed = self.file_manager.cleanup_old_sessions(int(self.config.get('storage.max_age_days', 1)))
        if removed:
            logger.info(f"Removed {removed} stale session directories from a previous run")

        ffmpeg = FFmpegRunner(
            executable=self.config.get('ffmpeg.executable'),
            timeout=float(self.config.get('ffmpeg.timeout_seconds', 360)),
        )
        postprocessor = AudioPostProcessor(self.config, self.file_manager, ffmpeg)

        self.pipeline = SessionPipeline(
            postprocessor=postprocessor,
            orchestrator=self._build_orchestrator(),
            notifier=self._build_notifier(),
            uploader=self._build_uploader(),
        )

        self.recording_service = RecordingService(self.config, self.file_manager)
        self.transport = PycordVoiceTransport(
            self.bot, ready_timeout=float(self.config.get('voice.ready_timeout_seconds', 30))
        )
        self.controller = ConnectionController(self.config, self.transport, self.recording_service, self.pipeline)

        self.presence_publisher = PresencePublisher(PRESENCE_TOPIC)
        pub.subscribe(self.controller.on_presence, PRESENCE_TOPIC)

        self.status_server = StatusServer(
            bot_status=self.bot_status,
            active_groups=self.controller.active_groups,
            storage_stats=self.file_manager.get_storage_stats,
            host=self.config.get('status.host', '0.0.0.0'),
            port=int(self.config.get('status.port', 3000)),
        )
        logger.info(f"Monitoring voice activity for user ID: {self.target_user_id}")

    def _build_orchestrator(self) -> SummarizationOrchestrator:
        backend = GeminiSummarizationEngine(
            api_key=self.config.require('gemini.api_key'),
            model=self.config.get('gemini.model', 'gemini-2.5-flash'),
            timeout=float(self.config.get('gemini.timeout_seconds', 300)),
            max_input_bytes=int(self.config.get('postprocess.max_summary_bytes', 20 * 1024 * 1024)),
        )
        retry_policy = RetryPolicy(
            max_attempts=int(self.config.get('summarization.max_attempts', 3)),
            base_delay_seconds=float(self.config.get('summarization.base_delay_seconds', 2.0)),
            jitter_seconds=float(self.config.get('summarization.jitter_seconds', 0.0)),
        )

        mode = self.config.get('summarization.mode', 'audio')
        transcriber = None
        if mode == MODE_TRANSCRIPT:
            transcriber = GoogleSpeechBackend(
                credentials_path=self.config.require('google_cloud.credentials_path'),
                language=self.config.get('transcription.language', 'en-US'),
                use_enhanced=self.config.get('transcription.google_cloud.use_enhanced', True),
                enable_automatic_punctuation=self.config.get(
                    'transcription.google_cloud.enable_automatic_punctuation', True),
            )
            transcriber.initialize()

        return SummarizationOrchestrator(
            backend,
            retry_policy=retry_policy,
            transcriber=transcriber,
            mode=mode,
            min_duration_seconds=float(self.config.get('summarization.min_duration_seconds', 120)),
        )

    def _build_notifier(self) -> AbstractNotifier:
        channel_id = self.config.get_notes_channel_id()
        if not channel_id:
            logger.warning("No meeting notes channel configured, summaries will only be logged")
            return LoggingNotifier()
        return DiscordChannelNotifier(self.bot, channel_id)

    def _build_uploader(self) -> Optional[AbstractUploader]:
        service_account_file = self.config.get('drive.service_account_file')
        if not service_account_file:
            logger.warning("Google Drive not configured, recordings will not be uploaded")
            return None
        return GoogleDriveUploader(service_account_file, folder_id=self.config.get('drive.folder_id'))

    def bot_status(self) -> Dict[str, Any]:
        if self.bot.user is None:
            return {"ready": False}
        return {
            "username": str(self.bot.user),
            "id": str(self.bot.user.id),
            "ready": self.bot.is_ready(),
        }

    async def on_ready(self) -> None:
        logger.info(f"Discord bot logged in as {self.bot.user}")

    async def on_voice_state_update(self, member: discord.Member,
                                    before: discord.VoiceState, after: discord.VoiceState) -> None:
        if str(member.id) != self.target_user_id:
            return
        event = presence_event_from_voice_state(member, before, after)
        if event is not None:
            self.presence_publisher.publish_presence_event(event)

    async def serve(self) -> None:
        # py-cord binds the client to the running loop
        self.init()
        await self.run()

    async def run(self) -> None:
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._stop_event.set)

        await self.status_server.start()
        bot_task = asyncio.create_task(self.bot.start(self.token), name="discord-bot")
        stop_task = asyncio.create_task(self._stop_event.wait(), name="stop-signal")
        try:
            done, _ = await asyncio.wait({bot_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            if bot_task in done and bot_task.exception() is not None:
                logger.error(f"Discord client stopped: {bot_task.exception()}")
        finally:
            stop_task.cancel()
            await self.cleanup()
            if not bot_task.done():
                bot_task.cancel()

    async def cleanup(self) -> None:
        logger.info("Shutting down...")
        await self.controller.shutdown()
        pub.unsubscribe(self.controller.on_presence, PRESENCE_TOPIC)
        await self.status_server.stop()
        if not self.bot.is_closed():
            await self.bot.close()


def setup_logging(config, level: str = "INFO") -> None:

    """Set up logging configuration from YAML config."""
    # Get log file path from config
    log_file_path = config.get('logging.file_path', 'data/logs/scribe.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    if console_output:
        console_handler = RichHandler(rich_tracebacks=True, show_path=False)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(logging.Formatter('%(name)s - %(message)s'))
        handlers.append(console_handler)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)
    for handler in handlers:
        root_logger.addHandler(handler)

    # py-cord's gateway logging is noisy at debug level
    logging.getLogger("discord").setLevel(logging.INFO)

    logger.info("=" * 50)
    logger.info("Scribe starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Console log level: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for Scribe."""
    parser = argparse.ArgumentParser(
        description="Scribe - records voice meetings and posts their summaries"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: looks for scribe.yaml, then environment only)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console logging level (default: logging.level from config, else INFO)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Scribe v{__version__}"
    )

    args = parser.parse_args()

    try:
        server = Server(args.config, args.log_level)
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        print("\nGoodbye!")
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
