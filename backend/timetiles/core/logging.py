import logging
import sys
import structlog

LEVELS = {"dev": logging.DEBUG, "test": logging.WARNING, "prod": logging.INFO}


def configure_logging(env: str = "dev") -> None:
    """structlog on top of stdlib logging; JSON lines in prod, console output elsewhere."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    processors.append(
        structlog.processors.JSONRenderer() if env == "prod"
        else structlog.dev.ConsoleRenderer(colors=env == "dev")
    )

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=LEVELS.get(env, logging.INFO))
    # celery and sqlalchemy are chatty at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.WARNING if env == "test" else logging.INFO)


logger = structlog.get_logger()


def job_logger(job_type: str, job_id: str | None = None, **context):
    return logger.bind(job_type=job_type, job_id=job_id, **context)
