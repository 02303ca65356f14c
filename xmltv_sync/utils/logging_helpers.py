"""
Structured logging helpers for consistent log formatting.
"""
import logging


def log_section_start(logger: logging.Logger, section_name: str) -> None:
    """Log the start of a processing section."""
    logger.info("Starting: %s", section_name)


def log_section_end(logger: logging.Logger, section_name: str) -> None:
    """Log the end of a processing section."""
    logger.info("Completed: %s", section_name)
