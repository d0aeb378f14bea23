import logging


def setup_logging(debug: bool = False) -> logging.Logger:
    """
    Debug runs log at INFO so state transitions are visible;
    otherwise only warnings reach the console.
    """
    level = logging.INFO if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return logging.getLogger("reptrack")
