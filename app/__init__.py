from __future__ import annotations

from typing import Mapping

from flask import Flask, Response
from prometheus_client import CONTENT_TYPE_LATEST

from .config import Config
from .logging import init_logging
from .routes.exporter import exporter_api


def create_app(config_object: object | Mapping[str, object] | None = None,
               collector=None, metrics=None) -> Flask:
    app = Flask(__name__)

    app.config.from_object(Config)
    if config_object:
        if isinstance(config_object, Mapping):
            app.config.from_mapping(config_object)
        else:
            app.config.from_mapping(config_object.as_mapping())

    init_logging(app, app.config['LOG_LEVEL'], app.config['LOG_FORMAT'])

    _initialise_extensions(app, collector, metrics)
    _register_blueprints(app)
    _register_metrics_route(app)

    return app


def _initialise_extensions(app: Flask, collector, metrics) -> None:
    app.extensions['disk_health_collector'] = collector
    app.extensions['disk_health_metrics'] = metrics


def _register_blueprints(app: Flask) -> None:
    app.register_blueprint(exporter_api)


def _register_metrics_route(app: Flask) -> None:
    def serve_metrics():
        metrics = app.extensions['disk_health_metrics']
        return Response(metrics.render(), content_type=CONTENT_TYPE_LATEST)

    app.add_url_rule(app.config['METRICS_PATH'], 'metrics', serve_metrics, methods=['GET'])
