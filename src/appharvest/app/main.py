import sys

from .cli import main as cli_main
from ..utils.logging import get_logger

logger = get_logger(__name__)


def main(argv=None):
    try:
        return cli_main(argv)
    except KeyboardInterrupt:
        logger.info("Program terminated.")
        return 130
    except Exception as e:
        logger.error("Error: %s", e, exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
