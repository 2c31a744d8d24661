"""Configuration loading and validation for shortstash."""

import os
import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from pathlib import Path
from dotenv import load_dotenv
from rich.logging import RichHandler

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / '.env')

KNOWN_VIEWS = ('shorts', 'videos')
NORMAL_VIDEO_MODES = ('ask', 'skip')


@dataclass(frozen=True)
class VideoSettings:
    """Scale and frame rate applied by non-passthrough profiles."""

    scale: str = '128:128'
    frame_rate: str = '21'


@dataclass(frozen=True)
class AppConfig:
    """Immutable runtime configuration handed to the batch driver."""

    channels: Tuple[str, ...] = ()
    download_after_date: str = '20250701'
    videos_to_inspect: int = 5
    listing_views: Tuple[str, ...] = KNOWN_VIEWS
    target_format: str = 'mp4'
    video_settings: VideoSettings = field(default_factory=VideoSettings)
    preferred_language: Optional[str] = None
    browser_cookies: Optional[str] = None
    output_folder: str = str(PROJECT_ROOT / 'output')
    temp_folder: Optional[str] = None
    max_concurrent_downloads: int = 2
    max_concurrent_channels: int = 1
    command_timeout_seconds: float = 900.0
    listing_retries: int = 1
    normal_video_mode: Optional[str] = None
    scheduler_enabled: bool = False
    schedule_hours: str = '8,20'
    database_path: str = str(PROJECT_ROOT / 'shortstash.sqlite')
    log_level: str = 'INFO'


def resolve_path(path: Optional[str], default_relative: str) -> str:
    """Resolve a configured path relative to the project root."""
    if not path:
        return str(PROJECT_ROOT / default_relative)
    if Path(path).is_absolute():
        return path
    return str(PROJECT_ROOT / path)


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def read_channels_file(path: str) -> List[str]:
    """Read channel URLs from a file, one per line, ignoring blanks and # comments."""
    urls = []
    with open(path, encoding='utf-8') as handle:
        for line in handle:
            line = line.split('#', 1)[0].strip()
            if line:
                urls.append(line)
    return urls


def normalize_channel_url(url: str) -> str:
    """Strip trailing slashes and a trailing listing tab from a channel URL."""
    url = url.strip().rstrip('/')
    for view in KNOWN_VIEWS:
        if url.endswith('/' + view):
            url = url[: -len(view) - 1]
    return url


def load_config() -> AppConfig:
    """Load configuration from environment variables."""
    channels = _split_list(os.getenv('CHANNELS'))
    channels_file = os.getenv('CHANNELS_FILE')
    if channels_file:
        channels.extend(read_channels_file(resolve_path(channels_file, channels_file)))

    # Preserve first occurrence order while dropping duplicates
    unique_channels = tuple(dict.fromkeys(normalize_channel_url(url) for url in channels))

    temp_folder = os.getenv('TEMP_FOLDER')
    normal_mode = os.getenv('NORMAL_VIDEO_MODE')

    return AppConfig(
        channels=unique_channels,
        download_after_date=os.getenv('DOWNLOAD_AFTER_DATE', '20250701').strip(),
        videos_to_inspect=int(os.getenv('VIDEOS_TO_INSPECT', '5')),
        listing_views=tuple(view.lower() for view in _split_list(os.getenv('LISTING_VIEWS', 'shorts,videos'))),
        target_format=os.getenv('TARGET_FORMAT', 'mp4').strip().lower(),
        video_settings=VideoSettings(
            scale=os.getenv('VIDEO_SCALE', '128:128'),
            frame_rate=os.getenv('VIDEO_FRAME_RATE', '21'),
        ),
        preferred_language=os.getenv('PREFERRED_LANGUAGE') or None,
        browser_cookies=os.getenv('BROWSER_COOKIES') or None,
        output_folder=resolve_path(os.getenv('OUTPUT_FOLDER'), 'output'),
        temp_folder=resolve_path(temp_folder, temp_folder) if temp_folder else None,
        max_concurrent_downloads=int(os.getenv('MAX_CONCURRENT_DOWNLOADS', '2')),
        max_concurrent_channels=int(os.getenv('MAX_CONCURRENT_CHANNELS', '1')),
        command_timeout_seconds=float(os.getenv('COMMAND_TIMEOUT_SECONDS', '900')),
        listing_retries=int(os.getenv('LISTING_RETRIES', '1')),
        normal_video_mode=normal_mode.strip().lower() if normal_mode else None,
        scheduler_enabled=_env_bool('SCHEDULER_ENABLED'),
        schedule_hours=os.getenv('SCHEDULE_HOURS', '8,20'),
        database_path=resolve_path(os.getenv('DATABASE_PATH'), 'shortstash.sqlite'),
        log_level=os.getenv('LOG_LEVEL', 'INFO'),
    )


def validate_config(config: AppConfig) -> List[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not config.channels:
        errors.append("At least one channel required: CHANNELS or CHANNELS_FILE")

    if not re.fullmatch(r'\d{8}', config.download_after_date):
        errors.append(f"DOWNLOAD_AFTER_DATE must be YYYYMMDD, got '{config.download_after_date}'")

    if config.videos_to_inspect < 1:
        errors.append("VIDEOS_TO_INSPECT must be at least 1")

    if not config.listing_views:
        errors.append("LISTING_VIEWS must name at least one of: " + ", ".join(KNOWN_VIEWS))
    for view in config.listing_views:
        if view not in KNOWN_VIEWS:
            errors.append(f"Unknown listing view '{view}' (expected one of: {', '.join(KNOWN_VIEWS)})")

    if config.max_concurrent_downloads < 1 or config.max_concurrent_channels < 1:
        errors.append("MAX_CONCURRENT_DOWNLOADS and MAX_CONCURRENT_CHANNELS must be at least 1")

    if config.listing_retries < 0:
        errors.append("LISTING_RETRIES cannot be negative")

    if config.normal_video_mode and config.normal_video_mode not in NORMAL_VIDEO_MODES:
        errors.append(f"NORMAL_VIDEO_MODE must be one of: {', '.join(NORMAL_VIDEO_MODES)}")

    output_path = Path(config.output_folder)
    try:
        output_path.mkdir(parents=True, exist_ok=True)
    except Exception as e:
        errors.append(f"Cannot create output folder: {e}")

    if config.temp_folder:
        try:
            Path(config.temp_folder).mkdir(parents=True, exist_ok=True)
        except Exception as e:
            errors.append(f"Cannot create temp folder: {e}")

    return errors


def setup_logging(log_level: str = "INFO") -> None:
    """Set up logging configuration with Rich for terminal output."""
    # Clear any existing handlers
    logging.root.handlers.clear()

    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False  # Titles may contain square brackets
    )

    # File handler for plain text logging
    log_file = PROJECT_ROOT / 'shortstash.log'
    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=[rich_handler, file_handler],
        format="%(message)s"
    )

    # Suppress noisy third-party loggers
    noisy_loggers = [
        'yt_dlp',
        'apscheduler',
        'apscheduler.scheduler',
        'apscheduler.executors.default',
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
