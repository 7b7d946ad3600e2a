"""Entry point for running whisper_dictate as a module: python -m whisper_dictate"""

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists (before reading config)
env_path = Path.cwd() / ".env"
if env_path.exists():
    load_dotenv(env_path)

from whisper_dictate.app import DictationApp  # noqa: E402
from whisper_dictate.config import Config  # noqa: E402

NOISY_LOGGERS = (
    "urllib3",
    "httpx",
    "httpcore",
    "huggingface_hub",
    "mlx",
    "sounddevice",
    "uvicorn",
)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity setting."""
    level = logging.INFO if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    # Reduce noise from all third-party libraries
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)


def main() -> int:
    """Main entry point."""
    config = Config.from_env()
    setup_logging(config.verbose)

    try:
        app = DictationApp(config)
        app.run()
        return 0
    except KeyboardInterrupt:
        print("\n👋 Interrupted")
        return 130
    except Exception as e:
        logging.exception("Fatal error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
