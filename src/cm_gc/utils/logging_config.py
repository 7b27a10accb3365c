"""
Configuration centralisée du logging.
Texte lisible par défaut, ou JSON compatible Datadog avec LOG_FORMAT=json.
"""
import json
import sys

from loguru import logger

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level> {extra}"
)


def format_record(record, service_name: str = "cm-gc", component: str = "gc") -> str:
    """Sérialise un record loguru en une ligne JSON."""
    log_data = {
        "timestamp": record["time"].timestamp() * 1000,
        "level": record["level"].name,
        "message": record["message"],
        "service": service_name,
        "component": component,
        "logger": {
            "name": record["name"],
            "method": record["function"],
            "file": record["file"].name,
            "line": record["line"],
        },
        "process": {
            "pid": record["process"].id,
            "thread_name": record["thread"].name,
        },
    }

    # namespace / rollout liés via logger.bind()
    if record.get("extra"):
        log_data["extra"] = record["extra"]

    return json.dumps(log_data, default=str)


def configure_logger(level: str = "INFO", fmt: str = "text", service_name: str = "cm-gc", component: str = "gc"):
    """
    Configure le logger.

    Args:
        level: niveau loguru (TRACE ... CRITICAL)
        fmt: "text" ou "json"
        service_name: nom du service pour Datadog
        component: composant de l'application
    """

    def sink(message):
        sys.stderr.write(format_record(message.record, service_name, component) + "\n")
        sys.stderr.flush()

    # Supprimer les handlers par défaut
    logger.remove()

    if fmt == "json":
        logger.add(sink, level=level, colorize=False, catch=True)
    else:
        logger.add(sys.stderr, level=level, format=TEXT_FORMAT, colorize=None, catch=True)

    logger.debug(f"Logger configured for {service_name}/{component} with level {level} ({fmt})")
