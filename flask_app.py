import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import quote

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, Response, jsonify, render_template, request

from cache import CalendarCache
from config import Settings
from helpers import build_calendar_from_feed, slugify

logger = logging.getLogger(__name__)


def create_cache(settings: Settings) -> CalendarCache:
    return CalendarCache(
        lambda: build_calendar_from_feed(settings),
        stale_after=timedelta(minutes=settings.stale_after_minutes),
    )


def create_app(settings: Settings, cache: Optional[CalendarCache] = None) -> Flask:
    """Build the Flask app serving the cached calendar."""
    if cache is None:
        cache = create_cache(settings)

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    app.config["CALENDAR_CACHE"] = cache

    @app.route('/')
    def index():
        calendar_url = request.host_url.rstrip('/') + '/calendar.ics'
        return render_template(
            'index.html',
            settings=settings,
            last_update=cache.last_refresh,
            calendar_url=calendar_url,
            google_url='https://calendar.google.com/calendar/r?cid=' + quote(calendar_url, safe=''),
        )

    @app.route('/calendar.ics')
    def serve_calendar():
        try:
            ics_content = cache.get_fresh()
        except Exception:
            logger.exception("Error serving calendar")
            return Response('Error serving calendar', status=500, mimetype='text/plain')

        if not ics_content:
            return Response('Error generating calendar data', status=500, mimetype='text/plain')

        filename = f"{slugify(settings.calendar_name)}-calendar.ics"
        return Response(
            ics_content,
            headers={
                'Content-Type': 'text/calendar; charset=utf-8',
                'Content-Disposition': f'attachment; filename="{filename}"',
                'Cache-Control': 'public, max-age=3600',
            },
        )

    @app.route('/health')
    def health():
        return jsonify({
            'status': 'ok',
            'lastUpdate': cache.last_refresh.isoformat() if cache.last_refresh else None,
            'hasCachedData': cache.has_data,
        })

    return app


def start_scheduler(cache: CalendarCache, settings: Settings) -> BackgroundScheduler:
    """Refresh the cache every ``refresh_interval_hours``."""
    scheduler = BackgroundScheduler(timezone=settings.timezone)
    scheduler.add_job(
        cache.refresh_quietly,
        'interval',
        hours=settings.refresh_interval_hours,
        id='update_calendar',
    )
    scheduler.start()
    return scheduler


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    settings = Settings.from_env()
    cache = create_cache(settings)

    logger.info("Initializing %s calendar service", settings.calendar_name)
    logger.info("Team: %s, timezone: %s", settings.team_name, settings.timezone)

    # Initial cache update, the server starts even if it fails
    cache.refresh_quietly()

    scheduler = start_scheduler(cache, settings)
    app = create_app(settings, cache)
    logger.info("Calendar available at: http://localhost:%d/calendar.ics", settings.port)
    try:
        app.run(debug=False, host='0.0.0.0', port=settings.port)
    finally:
        scheduler.shutdown()
        logger.info("Shutting down %s calendar service", settings.calendar_name)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
