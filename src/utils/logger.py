"""
Centralized logging for the EV trip planner.

All modules log through the 'ev_trip' hierarchy. Module helpers
(info/warning/...) take the short module name so a single module can be
muted from config/logging_config.py, and components such as the forward
simulation can keep their own per-run detail file.
"""

import logging
import os
import sys
import threading
from datetime import datetime
from typing import Optional, Dict, Any, List, Tuple

from config.logging_config import LOG_DIR, ROUTE_FAILURE_LOG, is_module_logging_enabled

ROOT_LOGGER_NAME = 'ev_trip'

FORMATS = {
    'detailed': '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
    'simple': '%(levelname)s - %(message)s',
    'minimal': '%(message)s',
}


class TripPlannerLogger:
    """
    Owns the handlers of the 'ev_trip' logger and the per-run detail files.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        enable_console: Log to stdout
        enable_file: Log to a timestamped file under ``log_dir``
        log_dir: Directory for log, detail and failure files
        detailed_logging: Allow components to write detail files
        log_format: "detailed", "simple" or "minimal"
    """

    def __init__(self,
                 log_level: str = "INFO",
                 enable_console: bool = True,
                 enable_file: bool = False,
                 log_dir: str = LOG_DIR,
                 detailed_logging: bool = False,
                 log_format: str = "detailed"):
        self.log_level = getattr(logging, log_level.upper())
        self.enable_console = enable_console
        self.enable_file = enable_file
        self.log_dir = log_dir
        self.detailed_logging = detailed_logging
        self.log_format = log_format if log_format in FORMATS else 'minimal'

        if self.enable_file or self.detailed_logging:
            os.makedirs(self.log_dir, exist_ok=True)

        self.log_file = None
        self.detailed_log_files: Dict[str, str] = {}
        self._file_lock = threading.Lock()
        self._configure()

    def _build_handler(self, handler: logging.Handler) -> logging.Handler:
        handler.setLevel(self.log_level)
        handler.setFormatter(logging.Formatter(FORMATS[self.log_format]))
        return handler

    def _configure(self):
        self.logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.logger.setLevel(self.log_level)

        # Reconfiguring replaces the previous handlers
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        if self.enable_console:
            self.logger.addHandler(self._build_handler(logging.StreamHandler(sys.stdout)))

        if self.enable_file:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            self.log_file = os.path.join(self.log_dir, f'ev_trip_{timestamp}.log')
            self.logger.addHandler(self._build_handler(logging.FileHandler(self.log_file, encoding='utf-8')))

    def get_logger(self, name: str = None) -> logging.Logger:
        return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}') if name else self.logger

    def log(self, level: int, message: str, module: str = None):
        if module and not is_module_logging_enabled(module):
            return
        self.get_logger(module).log(level, message)

    def debug(self, message: str, module: str = None):
        self.log(logging.DEBUG, message, module)

    def info(self, message: str, module: str = None):
        self.log(logging.INFO, message, module)

    def warning(self, message: str, module: str = None):
        self.log(logging.WARNING, message, module)

    def error(self, message: str, module: str = None):
        self.log(logging.ERROR, message, module)

    def print_summary(self, title: str, data: Dict[str, Any]):
        """Boxed key/value summary on stdout (skipped when the console is off)"""
        if not self.enable_console:
            return

        width = max(50, len(title) + 4)
        lines = ['', '=' * width, title, '=' * width]
        for key, value in data.items():
            if isinstance(value, bool):
                rendered = str(value)
            elif isinstance(value, float):
                rendered = f"{value:,.2f}"
            elif isinstance(value, int) and value >= 1000:
                rendered = f"{value:,}"
            else:
                rendered = str(value)
            lines.append(f"  {key}: {rendered}")
        lines.append('=' * width)
        print('\n'.join(lines))

    def _detail_file(self, component: str, run_id: str) -> str:
        path = self.detailed_log_files.get(component)
        if path is None:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            path = os.path.join(self.log_dir, f"{component}_{run_id}_{timestamp}.log")
            with open(path, 'w', encoding='utf-8') as f:
                f.write(f"Detailed Log: {component}\nRun ID: {run_id}\n"
                        f"Started: {datetime.now().isoformat()}\n{'=' * 60}\n\n")
            self.detailed_log_files[component] = path
        return path

    def log_detailed(self, message: str, component: str, run_id: str = "trip"):
        """Append to the detail file of ``component``; no-op unless detailed logging is on"""
        if not self.detailed_logging:
            return
        with self._file_lock:
            with open(self._detail_file(component, run_id), 'a', encoding='utf-8') as f:
                f.write(f"{message}\n")

    def log_route_failure(self, start: Tuple[float, float], end: Tuple[float, float],
                          waypoints: List[Tuple[float, float]], reason: str,
                          extra: str = None):
        """Record a failed route lookup; also appended to the failure file when file logging is on"""
        self.error(f"Route failure ({reason}) {start} -> {end} via {len(waypoints)} waypoints", 'trip_planner')
        if not self.enable_file:
            return

        entry = [
            '=' * 60,
            f"ROUTE FAILURE: {datetime.now().isoformat()}",
            f"Reason: {reason}",
            f"Start: {start}",
            f"End: {end}",
            f"Waypoints: {waypoints}",
        ]
        if extra:
            entry.append(f"Detail: {extra}")
        with self._file_lock:
            with open(os.path.join(self.log_dir, ROUTE_FAILURE_LOG), 'a', encoding='utf-8') as f:
                f.write('\n'.join(entry) + '\n')


_global_logger: Optional[TripPlannerLogger] = None


def setup_logger(**kwargs) -> TripPlannerLogger:
    """Replace the global logger (kwargs as returned by get_logging_config)"""
    global _global_logger
    _global_logger = TripPlannerLogger(**kwargs)
    return _global_logger


def get_global_logger() -> TripPlannerLogger:
    global _global_logger
    if _global_logger is None:
        _global_logger = TripPlannerLogger()
    return _global_logger


def get_logger(name: str = None) -> logging.Logger:
    return get_global_logger().get_logger(name)


def debug(message: str, module: str = None):
    get_global_logger().debug(message, module)


def info(message: str, module: str = None):
    get_global_logger().info(message, module)


def warning(message: str, module: str = None):
    get_global_logger().warning(message, module)


def error(message: str, module: str = None):
    get_global_logger().error(message, module)


def print_summary(title: str, data: Dict[str, Any]):
    get_global_logger().print_summary(title, data)


def log_detailed(message: str, component: str, run_id: str = "trip"):
    get_global_logger().log_detailed(message, component, run_id)


def log_route_failure(start, end, waypoints, reason: str, extra: str = None):
    get_global_logger().log_route_failure(start, end, waypoints, reason, extra)
