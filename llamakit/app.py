"""Entry point: ``python -m llamakit.app``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import QApplication

from llamakit.core.setup_config import default_config_path, is_configured
from llamakit.modules.ollama import Ollama

logger = logging.getLogger("llamakit")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="llamakit-setup",
        description="First-run setup of Ollama models for code completion and chat.",
    )
    parser.add_argument(
        "--force", action="store_true", help="run setup even if already configured"
    )
    parser.add_argument("--config", type=Path, help="config file to write")
    parser.add_argument("--host", help="default Ollama host offered to the user")
    parser.add_argument("--ollama", default="ollama", help="ollama executable")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config_path = args.config or default_config_path()
    if is_configured(config_path) and not args.force:
        logger.info("Already configured (%s); use --force to run setup again", config_path)
        return 0

    from llamakit.ui.setup_window import SetupWindow

    app = QApplication.instance() or QApplication(sys.argv[:1])
    window = SetupWindow(config_path, host=args.host, ollama=Ollama(exe=args.ollama))
    window.show()
    QTimer.singleShot(0, window.start)
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
