"""Application entry point."""
import logging
import os
from github_stalker import config
from github_stalker.monitor import GitHubStalker


def setup_logging():
    """Set up logging configuration."""
    log_level = logging.DEBUG if config.DEBUG else logging.INFO

    log_dir = config.LOG_DIR
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(os.path.join(log_dir, 'github_stalker.log')),
        ]
    )


def main():
    """Main entry point for the application."""
    setup_logging()
    logger = logging.getLogger(__name__)

    logger.info("Initializing GitHub Stalker")

    try:
        stalker = GitHubStalker(config)
        stalker.run()
    except Exception as e:
        logger.error("Failed to start GitHub Stalker: %s", e)
        raise


if __name__ == "__main__":
    main()
