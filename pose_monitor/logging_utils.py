import logging

FORMAT = "%(asctime)s %(levelname)s [%(session)s] %(message)s"


class SessionNameFilter(logging.Filter):
    def __init__(self, session_name: str):
        super().__init__()
        self.session_name = session_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.session = self.session_name
        return True


def setup_logger(session_name: str, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(f"pose_monitor.{session_name}")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(FORMAT))
        handler.addFilter(SessionNameFilter(session_name))
        logger.addHandler(handler)

    return logger


def add_file_handler(logger: logging.Logger, session_name: str, log_path: str) -> logging.Handler:
    handler = logging.FileHandler(log_path)
    handler.setFormatter(logging.Formatter(FORMAT))
    handler.addFilter(SessionNameFilter(session_name))
    logger.addHandler(handler)
    return handler
