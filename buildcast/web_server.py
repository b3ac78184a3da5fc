"""HTTP API exposing project forecasts and calendar queries."""

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from typing import Optional

from .exceptions import BuildcastError, NotFound, ValidationError
from .forecast import ForecastService
from .store import ProjectStore
from .utils import logger, parse_date
from .work_calendar import CalendarOracle


class ForecastWebServer:
    """Thin Flask transport over the forecast service."""

    def __init__(self, service: ForecastService, store: Optional[ProjectStore] = None,
                 calendar: Optional[CalendarOracle] = None,
                 host: str = "127.0.0.1", port: int = 5000,
                 max_range_days: int = 3660):
        """Initialize the web server.

        Args:
            service: Forecast service to serve
            store: Project store for forecast history
            calendar: Calendar oracle; defaults to the service's calendar
            host: Host address to bind to
            port: Port to listen on
            max_range_days: Longest inclusive date range for calendar queries
        """
        self.app = Flask(__name__)
        CORS(self.app)
        self.service = service
        self.store = store
        self.calendar = calendar or service.calendar
        self.host = host
        self.port = port
        self.max_range_days = max_range_days

        self._setup_routes()

    def _setup_routes(self):
        """Set up Flask routes."""

        @self.app.errorhandler(BuildcastError)
        def handle_domain_error(error):
            if error.http_status >= 500:
                logger.error(f"Error serving {request.path}: {error}")
                return jsonify({"error": "Internal server error"}), error.http_status
            return jsonify({"error": str(error)}), error.http_status

        @self.app.errorhandler(Exception)
        def handle_unexpected_error(error):
            if isinstance(error, HTTPException):
                return jsonify({"error": error.description}), error.code
            logger.error(f"Unhandled error serving {request.path}: {error}", exc_info=True)
            return jsonify({"error": "Internal server error"}), 500

        @self.app.route('/api/health')
        def health():
            return jsonify({"status": "ok"})

        @self.app.route('/api/projects/<project_id>/forecast', methods=['GET'])
        def get_forecast(project_id):
            """Get the current forecast for a project."""
            user_id = request.headers.get('X-User-Id')
            if not user_id:
                return jsonify({"error": "Authentication required"}), 401

            forecast = self.service.generate_forecast(project_id, user_id)
            return jsonify(forecast.to_dict())

        @self.app.route('/api/projects/<project_id>/forecast', methods=['DELETE'])
        def invalidate_forecast(project_id):
            """Drop the cached forecast for a project."""
            user_id = request.headers.get('X-User-Id')
            if not user_id:
                return jsonify({"error": "Authentication required"}), 401
            if self.service.repository.get_project(project_id, user_id) is None:
                raise NotFound(f"Project {project_id} not found")

            self.service.invalidate_forecast(project_id)
            return '', 204

        @self.app.route('/api/projects/<project_id>/forecasts', methods=['GET'])
        def forecast_history(project_id):
            """List persisted forecasts for a project."""
            user_id = request.headers.get('X-User-Id')
            if not user_id:
                return jsonify({"error": "Authentication required"}), 401
            if self.store is None:
                return jsonify({"error": "Forecast history unavailable"}), 404
            if self.store.get_project(project_id, user_id) is None:
                return jsonify({"error": f"Project {project_id} not found"}), 404

            limit = request.args.get('limit', default=20, type=int)
            forecasts = self.store.forecast_history(project_id, limit=limit)
            return jsonify({"forecasts": [f.to_dict() for f in forecasts]})

        @self.app.route('/api/calendar/non-working-days')
        def non_working_days():
            """List weekends and holidays in a date range."""
            start, end, region = self._range_args()
            days = self.calendar.non_working_days(start, end, region)
            return jsonify({"non_working_days": [d.to_dict() for d in days]})

        @self.app.route('/api/calendar/working-days')
        def working_days():
            """Count working days in a date range."""
            start, end, region = self._range_args()
            count = self.calendar.working_days_between(start, end, region)
            return jsonify({
                "start": start.isoformat(),
                "end": end.isoformat(),
                "region": region,
                "working_days": count
            })

    def _range_args(self):
        try:
            start = parse_date(request.args.get('start'))
            end = parse_date(request.args.get('end'))
        except ValueError as e:
            raise ValidationError(f"Invalid date: {e}")

        if start is None or end is None:
            raise ValidationError("Both start and end dates are required")
        if end < start:
            raise ValidationError("End date must not be before start date")
        if (end - start).days + 1 > self.max_range_days:
            raise ValidationError(f"Date range must not exceed {self.max_range_days} days")

        return start, end, request.args.get('region') or None

    def run(self, debug: bool = False):
        """Run the web server."""
        logger.info(f"Starting forecast server at http://{self.host}:{self.port}")
        self.app.run(host=self.host, port=self.port, debug=debug)
