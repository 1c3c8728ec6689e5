from __future__ import annotations

import re
import sys
from collections.abc import Iterable

from loguru import logger
from tqdm import tqdm

PAGERDUTY_ID_PATTERN = re.compile(r"^[0-9A-Z]{7}$")

DEBUG_LEVEL_NO = 10
LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | <level>{message}</level>"
)
DEBUG_LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <7}</level> | "
    "<cyan>{module}</cyan> | <level>{message}</level>"
)


def invalid_pagerduty_ids(ids: Iterable[str]) -> list[str]:
    """
    Return the ids that are not shaped like PagerDuty object ids.

    PagerDuty ids are seven upper-case alphanumerics, e.g. "PABC123".

    Args:
        ids (Iterable[str]): Candidate ids

    Returns:
        list[str]: The invalid ids, in input order
    """
    return [i for i in ids if not isinstance(i, str) or not PAGERDUTY_ID_PATTERN.match(i)]


def setup_logger(level: int | str = "INFO", colorize: bool = True) -> None:
    """
    Send pdcall's log records to stderr through tqdm.write.

    Writing through tqdm keeps log lines from breaking a batch's progress bar.
    Only records emitted by pdcall modules are shown; at DEBUG each line also
    names the module that logged it, e.g. "executor" for retries or "batch"
    for per-item failures.

    Args:
        level (int | str): Loguru level name or number, e.g. "DEBUG" or 20
        colorize (bool): Use ANSI colors
    """
    logger.remove()
    level_no = level if isinstance(level, int) else logger.level(level.upper()).no
    logger.add(
        lambda msg: tqdm.write(msg, end="", file=sys.stderr),
        format=DEBUG_LOG_FORMAT if level_no <= DEBUG_LEVEL_NO else LOG_FORMAT,
        filter="pdcall",
        colorize=colorize,
        level=level_no,
    )
