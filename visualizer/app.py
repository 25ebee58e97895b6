"""
PipeSim Timeline Visualizer - Flask Backend

Provides REST API endpoints for the timeline frontend. Runs simulations on
uploaded instruction traces (or loads exported timelines) and serves the
cycle-by-cycle stage occupancy and run statistics.
"""

import os
import tempfile
from flask import Flask, request, jsonify, render_template
from werkzeug.utils import secure_filename

from pipesim.config import DEFAULT_MAX_CYCLES, SimConfig
from pipesim.errors import PipeSimError
from pipesim.parser import parse_trace_string
from pipesim.predictors import PREDICTORS, get_predictor_names, resolve_predictor_name
from pipesim.simulator import Simulator
from pipesim.timeline import STAGE_NAMES, TimelineReader


app = Flask(__name__, template_folder='templates', static_folder='static')
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max upload
app.config['DEBUG'] = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'

# Global state: flat cycle dicts ({'cycle', 'IF', ..., 'WB'}) plus stats
_cycles: list[dict] | None = None
_stats: dict | None = None


def error_response(error: str, message: str, status: int = 400) -> tuple:
    """Create a standardized error response."""
    return jsonify({'error': error, 'message': message}), status


def require_file_upload() -> tuple | None:
    """Validate file upload and return error response if invalid, None if valid."""
    if 'file' not in request.files:
        return error_response('No file provided', 'Request must include a file field')
    if request.files['file'].filename == '':
        return error_response('No file selected', 'File field is empty')
    return None


def parse_bool_field(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'on', 'yes')


def record_to_cycle(record) -> dict:
    cycle = {'cycle': record.cycle}
    for name, latch in record.stages.items():
        cycle[name] = latch.label
    cycle['hazard'] = {
        'stall_raw': record.raw_stall,
        'stall_ctrl': record.control_stall,
        'mispredict': record.mispredict,
    }
    return cycle


def reset_state() -> None:
    global _cycles, _stats
    _cycles = None
    _stats = None


@app.after_request
def add_cors_headers(response):
    """Add CORS headers to all responses for local development."""
    response.headers['Access-Control-Allow-Origin'] = '*'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
    response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
    return response


@app.errorhandler(400)
def bad_request(error):
    return error_response('Bad request', str(error.description), 400)


@app.errorhandler(404)
def not_found(error):
    return error_response('Not found', str(error.description), 404)


@app.errorhandler(500)
def internal_error(error):
    return error_response('Internal server error', str(error.description), 500)


@app.route('/')
def index():
    """Serve the main HTML page."""
    return render_template('index.html', stages=STAGE_NAMES)


@app.route('/api/predictors', methods=['GET'])
def list_predictors():
    """List predictor keys with their menu labels."""
    return jsonify({
        'predictors': [
            {'key': key, 'label': PREDICTORS[key].label}
            for key in get_predictor_names()
        ]
    })


@app.route('/api/simulate', methods=['POST', 'OPTIONS'])
def simulate():
    """Upload an instruction trace and run it through the pipeline."""
    global _cycles, _stats

    if request.method == 'OPTIONS':
        return '', 204

    file_error = require_file_upload()
    if file_error:
        return file_error

    try:
        max_cycles = int(request.form.get('max_cycles', DEFAULT_MAX_CYCLES))
    except ValueError:
        return error_response('Invalid max_cycles', 'max_cycles must be an integer')
    if max_cycles <= 0:
        return error_response('Invalid max_cycles', 'max_cycles must be positive')

    config = SimConfig(
        trace=secure_filename(request.files['file'].filename),
        forwarding=parse_bool_field(request.form.get('forwarding'), True),
        predictor=resolve_predictor_name(request.form.get('predictor', '')),
        max_cycles=max_cycles,
        output=None,
    )

    try:
        source = request.files['file'].read().decode('utf-8')
        program = parse_trace_string(source)
        result = Simulator(config).run(program)
    except UnicodeDecodeError:
        return error_response('Invalid trace file', 'Trace must be UTF-8 text')
    except PipeSimError as e:
        return error_response('Invalid trace file', str(e))

    _cycles = [record_to_cycle(r) for r in result.records]
    _stats = dict(result.metrics.to_dict(),
                  predictor=result.predictor_name,
                  forwarding=result.forwarding,
                  halted=result.halted)

    return jsonify({
        'success': True,
        'cycles': len(_cycles),
        'instructions': len(program),
        'summary': result.summary(),
    })


@app.route('/api/load', methods=['POST', 'OPTIONS'])
def load_timeline():
    """Upload a timeline exported earlier (CSV or JSONL)."""
    global _cycles, _stats

    if request.method == 'OPTIONS':
        return '', 204

    file_error = require_file_upload()
    if file_error:
        return file_error

    file = request.files['file']
    filename = secure_filename(file.filename) or 'timeline.csv'
    temp_dir = tempfile.mkdtemp()
    filepath = os.path.join(temp_dir, filename)

    try:
        file.save(filepath)
        reader = TimelineReader(filepath)
    except PipeSimError as e:
        return error_response('Failed to parse timeline', str(e))
    finally:
        if os.path.exists(filepath):
            os.remove(filepath)
        os.rmdir(temp_dir)

    _cycles = reader.cycles
    _stats = reader.get_stats()
    return jsonify({'success': True, 'cycles': reader.total_cycles})


def require_timeline_loaded() -> tuple | None:
    """Return error response if no timeline is available, None otherwise."""
    if _cycles is None:
        return error_response(
            'No timeline loaded',
            'Run a trace with /api/simulate or upload a timeline with /api/load',
            404
        )
    return None


@app.route('/api/cycle/<int:n>', methods=['GET'])
def get_cycle(n: int):
    """Get stage occupancy at cycle n (1-based)."""
    timeline_error = require_timeline_loaded()
    if timeline_error:
        return timeline_error

    for cycle_data in _cycles:
        if cycle_data['cycle'] == n:
            return jsonify(cycle_data)

    return error_response(
        'Cycle not found',
        f'Cycle {n} is out of range (1-{len(_cycles)})',
        404
    )


@app.route('/api/cycles', methods=['GET'])
def get_total_cycles():
    """Get total number of cycles in the current timeline."""
    timeline_error = require_timeline_loaded()
    if timeline_error:
        return timeline_error

    return jsonify({'total': len(_cycles)})


@app.route('/api/stats', methods=['GET'])
def get_stats():
    """Get execution statistics for the current timeline."""
    timeline_error = require_timeline_loaded()
    if timeline_error:
        return timeline_error

    return jsonify(_stats)


@app.route('/api/range/<int:start>/<int:end>', methods=['GET'])
def get_range(start: int, end: int):
    """Get cycles in range [start, end) for buffering."""
    timeline_error = require_timeline_loaded()
    if timeline_error:
        return timeline_error

    return jsonify({'cycles': [c for c in _cycles if start <= c['cycle'] < end]})


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5050))
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'

    print(f"Starting PipeSim Timeline Visualizer on port {port}")
    print(f"Debug mode: {debug}")
    print(f"Open http://localhost:{port} in your browser")

    app.run(host='0.0.0.0', port=port, debug=debug)
