"""
GazeBoard - Gaze-driven communication board

Main entry point.

Usage:
    python -m gazeboard.main
"""

import sys
from PyQt6.QtWidgets import QApplication

from gazeboard.core.config import get_default_config
from gazeboard.gui.app_window import MainWindow
from gazeboard.utils.logger import setup_logger, get_logger


def main():
    """Main entry point."""

    config = get_default_config()

    setup_logger(
        name="gazeboard",
        level=config.log_level,
        log_file=config.logging.log_path,
        enable_file_logging=config.logging.enable_file_logging,
    )

    logger = get_logger(__name__)
    logger.info("=" * 60)
    logger.info("GazeBoard Starting")
    logger.info(f"Version: {config.version}")
    logger.info("=" * 60)

    app = QApplication(sys.argv)
    app.setApplicationName("GazeBoard")
    app.setApplicationVersion(config.version)

    window = MainWindow(config)
    window.showFullScreen()

    logger.info("Application window created")

    exit_code = app.exec()

    logger.info("Application exiting")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
