"""
Flask REST API for the ITP monitor.
Exposes consumption analysis and generator control to dashboards.
"""
import os
import logging
import threading
from collections import deque
from typing import Any, Dict, List

from flask import Flask, jsonify, request
from flask_cors import CORS

from interfaces import Notifier
from metering import (
    ConsumptionAnalyzer, ContinuousTelemetryGenerator, FetchError, HistoricalBackfill,
    TelemetryContext, TelemetryStoreError, seed_demo_buildings,
)

logger = logging.getLogger("WebAPI")


class EventFeed(Notifier):
    """
    Broadcast hook backing the web surface: keeps the most recent events
    so clients can poll /api/events.
    """

    def __init__(self, max_events: int = 50):
        self._events = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def notify(self, event: Dict[str, Any]) -> None:
        with self._lock:
            self._events.append(event)

    def recent(self, limit: int = None) -> List[Dict[str, Any]]:
        with self._lock:
            events = list(self._events)
        if limit is not None:
            events = events[-limit:]
        return events


def create_app(context: TelemetryContext,
               analyzer: ConsumptionAnalyzer,
               generator: ContinuousTelemetryGenerator,
               feed: EventFeed = None) -> Flask:
    """
    Factory function to create Flask app with injected collaborators (DIP).
    """
    app = Flask(__name__)
    app.config['SECRET_KEY'] = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
    app.config['JSON_SORT_KEYS'] = False

    CORS(app)

    def error(message: str, status: int):
        return jsonify({'error': message}), status

    @app.route('/api/buildings', methods=['GET'])
    def get_buildings():
        try:
            buildings = context.store.list_buildings()
        except TelemetryStoreError as e:
            logger.error(f"Listing buildings failed: {e}")
            return error("Storage unavailable", 502)
        return jsonify([b.to_dict() for b in buildings])

    @app.route('/api/buildings/<building_id>/analysis', methods=['GET'])
    def analyze_building(building_id: str):
        days = request.args.get('days', '7')
        try:
            window_days = float(days)
            analysis = analyzer.analyze(building_id, window_days)
        except ValueError as e:
            return error(f"Invalid days parameter: {e}", 400)
        except FetchError as e:
            logger.error(f"Analysis failed: {e}")
            return error(str(e), 502)
        return jsonify(analysis.to_dict())

    @app.route('/api/buildings/<building_id>/realtime', methods=['GET'])
    def realtime(building_id: str):
        try:
            return jsonify(analyzer.realtime(building_id))
        except FetchError as e:
            logger.error(f"Realtime read failed: {e}")
            return error(str(e), 502)

    @app.route('/api/generator/start', methods=['POST'])
    def start_generator():
        started = generator.start()
        return jsonify({'running': generator.is_running, 'changed': started})

    @app.route('/api/generator/stop', methods=['POST'])
    def stop_generator():
        stopped = generator.stop()
        return jsonify({'running': generator.is_running, 'changed': stopped})

    @app.route('/api/generator/status', methods=['GET'])
    def generator_status():
        return jsonify({
            'running': generator.is_running,
            'tasks': generator.active_threads(),
        })

    @app.route('/api/history', methods=['POST'])
    def generate_history():
        data = request.get_json(silent=True) or {}
        try:
            days = int(data.get('days', 7))
            counts = HistoricalBackfill(context).generate(days)
        except ValueError as e:
            return error(str(e), 400)
        except TelemetryStoreError as e:
            logger.error(f"History generation failed: {e}")
            return error(str(e), 502)
        logger.info(f"Historical data generated for {days} days")
        return jsonify({'days': days, 'inserted': counts})

    @app.route('/api/seed', methods=['POST'])
    def seed():
        try:
            created = seed_demo_buildings(context.store, context.clock)
        except TelemetryStoreError as e:
            logger.error(f"Seeding failed: {e}")
            return error(str(e), 502)
        return jsonify({'created': created})

    @app.route('/api/debug/counts', methods=['GET'])
    def debug_counts():
        try:
            return jsonify(context.store.count_readings())
        except TelemetryStoreError as e:
            return error(str(e), 502)

    @app.route('/api/events', methods=['GET'])
    def events():
        if feed is None:
            return jsonify([])
        limit = request.args.get('limit', type=int)
        return jsonify(feed.recent(limit))

    @app.route('/api/parameters', methods=['GET'])
    def get_parameters():
        return jsonify(context.parameters.get_by_category())

    return app


class WebServer:
    """
    Web server wrapper running the API on a background thread (SRP).
    """

    def __init__(self, context: TelemetryContext, analyzer: ConsumptionAnalyzer,
                 generator: ContinuousTelemetryGenerator, feed: EventFeed = None,
                 host: str = "0.0.0.0", port: int = 8080):
        self._context = context
        self._analyzer = analyzer
        self._generator = generator
        self._feed = feed
        self._host = host
        self._port = port
        self._app = None
        self._server = None
        self._thread = None

    def start(self) -> None:
        """Start the web server in a background thread."""
        from werkzeug.serving import make_server

        self._app = create_app(self._context, self._analyzer, self._generator, self._feed)
        self._server = make_server(self._host, self._port, self._app, threaded=True)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Web API started on http://{self._host}:{self._port}")

    def stop(self) -> None:
        """Stop the web server."""
        if self._server is not None:
            self._server.shutdown()
        logger.info("Web server stopped")
