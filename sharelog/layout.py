"""Rendering of folder and file name templates from log records."""

import logging
from datetime import datetime

from sharelog.exceptions import ConfigurationError


def build_layout_context(record: logging.LogRecord) -> dict:
    """
    Build the values available to a layout template.

    Keys:
        date       datetime of the record, supports strftime specs: {date:%Y/%m}
        shortdate  record date as YYYY-MM-DD
        level      level name
        logger     logger name
        message    rendered message
    plus every LogRecord attribute (process, thread, module, ...).
    """
    created = datetime.fromtimestamp(record.created)
    context = dict(record.__dict__)
    context.update(
        date=created,
        shortdate=created.strftime('%Y-%m-%d'),
        level=record.levelname,
        logger=record.name,
        message=record.getMessage()
    )
    return context


def render_layout(template: str, record: logging.LogRecord) -> str:
    """
    Render a '{}'-style template against a record.

    Args:
        template: Layout such as '{logger}/{date:%Y}/{date:%m}'
        record: Log record being written

    Returns:
        Rendered string

    Raises:
        ConfigurationError: If the template references unknown keys or is malformed
    """
    if not template:
        return ""
    try:
        return template.format_map(build_layout_context(record))
    except KeyError as e:
        raise ConfigurationError(f"Unknown layout key {e} in '{template}'") from e
    except (ValueError, IndexError, AttributeError) as e:
        raise ConfigurationError(f"Invalid layout '{template}': {e}") from e
