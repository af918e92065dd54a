"""
Flask routes for the ShotSieve scan control API.

All endpoints return JSON. The engine (a ScanOrchestrator) is looked up in
``current_app.extensions['shotsieve']``, set by create_app().
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from ..exceptions import ShotSieveError
from ..scanner import calculate_score
from ..scanner.blur import classify
from .orchestrator import ScanOrchestrator

# Create blueprint for routes
api = Blueprint('api', __name__)

# Module logger
_logger = logging.getLogger(__name__)

EXTENSION_KEY = 'shotsieve'


def _engine() -> ScanOrchestrator:
    return current_app.extensions[EXTENSION_KEY]


def _status_dict(engine: ScanOrchestrator) -> dict[str, Any]:
    status = engine.get_status().to_dict()
    error = engine.last_error
    status['lastError'] = str(error) if error else None
    return status


# =============================================================================
# Scan control
# =============================================================================

@api.route('/api/scan/start', methods=['POST'])
def api_scan_start():
    """Start a full scan in the background."""
    engine = _engine()
    thread = engine.start_in_background()
    if thread is None:
        return jsonify({'status': 'already_running'})
    return jsonify({'status': 'started'})


@api.route('/api/scan/stop', methods=['POST'])
def api_scan_stop():
    """Request a cooperative stop of the current scan."""
    engine = _engine()
    if not engine.is_running:
        return jsonify({'status': 'no_scan_running'})
    engine.stop()
    return jsonify({'status': 'stop_requested'})


@api.route('/api/scan/resume-once', methods=['POST'])
def api_scan_resume_once():
    """Process a single batch in the background."""
    engine = _engine()
    thread = engine.start_in_background(once=True)
    if thread is None:
        return jsonify({'status': 'already_running'})
    return jsonify({'status': 'started'})


@api.route('/api/scan/status')
def api_scan_status():
    """Return totals, current batch, running flag and last error."""
    return jsonify(_status_dict(_engine()))


@api.route('/api/scan/reset-cursor', methods=['POST'])
def api_scan_reset_cursor():
    """Restart incremental scanning from the beginning."""
    _engine().reset_cursor()
    return jsonify({'status': 'cursor_reset'})


@api.route('/api/scan/reset-all', methods=['POST'])
def api_scan_reset_all():
    """Hard reset of all scan progress."""
    try:
        count = _engine().reset_all_progress()
    except ShotSieveError as e:
        _logger.warning(f"Reset failed: {e}")
        return jsonify({'error': str(e)}), 409
    return jsonify({'status': 'reset', 'assets': count})


# =============================================================================
# Results
# =============================================================================

@api.route('/api/groups')
def api_groups():
    """Return all duplicate groups, newest first."""
    groups = _engine().get_groups()
    return jsonify({
        'groups': [g.to_dict() for g in groups],
        'total': len(groups),
    })


@api.route('/api/groups/<group_id>')
def api_group_detail(group_id: str):
    """Return one group with member records and best-shot scores."""
    engine = _engine()
    group = engine.db.groups.get_group_by_id(group_id)
    if group is None:
        return jsonify({'error': 'Group not found'}), 404

    records = engine.db.assets.get_by_ids(group.member_ids)
    members = []
    for member in group.members:
        asset = records.get(member.asset_id)
        entry: dict[str, Any] = {'asset_id': member.asset_id, 'distance': member.distance}
        if asset is not None:
            entry['asset'] = asset.to_dict()
            entry.update(calculate_score(asset).to_dict())
        members.append(entry)

    result = group.to_dict()
    result['members'] = members
    return jsonify(result)


@api.route('/api/groups/<group_id>/merge', methods=['POST'])
def api_group_merge(group_id: str):
    """Merge another group into this one."""
    data = request.get_json(silent=True) or {}
    source = data.get('source')
    if not source:
        return jsonify({'error': 'source group id required'}), 400

    engine = _engine()
    for gid in (group_id, source):
        if engine.db.groups.get_group_by_id(gid, with_members=False) is None:
            return jsonify({'error': f'Group not found: {gid}'}), 404

    moved = engine.groups.merge_groups(group_id, source)
    return jsonify({'status': 'merged', 'moved': moved})


@api.route('/api/blurry')
def api_blurry():
    """Return assets currently classified as blurry."""
    engine = _engine()
    blur_config = engine.settings.blur
    assets = []
    for asset in engine.get_blurry_assets():
        entry = asset.to_dict()
        entry['adjusted_threshold'] = classify(asset.blur_score, asset.mean_luma, blur_config).adjusted_threshold
        assets.append(entry)
    return jsonify({'assets': assets, 'total': len(assets)})


@api.route('/api/stats')
def api_stats():
    """Return database, face and enrichment statistics."""
    engine = _engine()
    stats = engine.db.get_stats()
    stats['status'] = engine.db.assets.get_status_counts()
    stats['faces'] = engine.db.faces.get_statistics()
    stats['algo_version'] = engine.db.meta.get_global_algo_version()
    stats['enrichment'] = {
        'enabled': engine.enricher.enabled,
        'active': engine.enricher.active,
        'breaker_open': engine.enricher.breaker.is_open,
    }
    return jsonify(stats)


@api.route('/api/ping')
def api_ping():
    """Simple endpoint for connection monitoring."""
    return jsonify({'status': 'ok', 'time': datetime.now().isoformat()})


@api.errorhandler(ShotSieveError)
def handle_shotsieve_error(error: ShotSieveError):
    _logger.error(f"Request failed: {error}")
    return jsonify({'error': str(error)}), 500


__all__ = ['api', 'EXTENSION_KEY']
