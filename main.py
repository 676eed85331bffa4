#!/usr/bin/env python3
"""
Dorm laundry coordinator entry point
Starts the polling API under uvicorn with a single worker
"""
from tracking import t

import logging

import uvicorn

from infrastructure.settings import get_settings
from logging_config import setup_logging
from webapp import create_app
from webapp.bootstrap import build_dependencies


def main() -> None:
    """Configure logging, wire dependencies and serve the API."""
    t('main.main')
    settings = get_settings()
    setup_logging(settings.production_mode)
    logger = logging.getLogger('Main')

    dependencies = build_dependencies(settings)
    app = create_app(dependencies)

    logger.info(f"""LAUNDRY SERVICE STARTING
    Host: {settings.api_host}:{settings.api_port}
    State file: {settings.state_file}
    Timezone: {settings.timezone}
    Sweeper: {'every %.1fs' % settings.sweep_interval_seconds if settings.sweep_enabled else 'disabled'}
    Usage sink: {'supabase' if settings.supabase_enabled else 'disabled'}
    Telegram notices: {'enabled' if settings.telegram_enabled else 'disabled'}
    """)

    # One worker: the state lives in this process's memory
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, workers=1)


if __name__ == '__main__':
    main()
