from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from diskhealth import SERVICE_NAME, __version__
from diskhealth.health import build_health_report

exporter_api = Blueprint('exporter_api', __name__)

INDEX_TEMPLATE = """<html>
<head><title>Disk Health Exporter</title></head>
<body>
<h1>Disk Health Exporter</h1>
<p>Version: {version}</p>
<p><a href="{metrics_path}">Metrics</a></p>
<p><a href="/health">Health</a> | <a href="/health/json">Health report</a></p>
</body>
</html>
"""


def _collector():
    return current_app.extensions['disk_health_collector']


@exporter_api.route('/', methods=['GET'])
def index():
    body = INDEX_TEMPLATE.format(version=__version__, metrics_path=current_app.config['METRICS_PATH'])
    return body, 200, {'Content-Type': 'text/html; charset=utf-8'}


@exporter_api.route('/health', methods=['GET'])
def health():
    snapshot = _collector().snapshot()
    return jsonify({
        'status': 'ok',
        'service': SERVICE_NAME,
        'version': __version__,
        'last_collection': snapshot.collected_at.isoformat() if snapshot.collected_at else None,
    })


@exporter_api.route('/health/json', methods=['GET'])
def health_report():
    collector = _collector()
    return jsonify(build_health_report(collector.snapshot(), collector.system))
