"""
Admin ingestion API — runs, raw leads, evidence, matches and suggestions.

JSON only. Reads go straight to the store; writes go through the manager
(launch) and the review gate (approve / reject).
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from directory.errors import (
    AlreadyReviewedError, BusinessNotFoundError, FieldNotAllowedError, LeadValidationError,
    ReviewError, SuggestionNotFoundError,
)
from directory.pipeline.manager import launch_ingestion, run_ingestion
from directory.pipeline.review import SuggestionReviewGate

logger = logging.getLogger('routes.ingestion')

bp = Blueprint('ingestion', __name__, url_prefix='/api/ingestion')


def _store():
    return current_app.extensions['ingestion_store']


def _int_arg(name, default, maximum):
    raw = request.args.get(name)
    if raw in (None, ''):
        return default
    value = int(raw)
    if value < 1:
        raise ValueError(f"{name} must be positive")
    return min(value, maximum)


# ── Runs ─────────────────────────────────────────────────────────────────────

@bp.route('/runs')
def list_runs():
    """List runs, newest first. Filters: source, instance_key, status, limit."""
    try:
        limit = _int_arg('limit', 50, 500)
    except ValueError as e:
        return jsonify({'error': f'Invalid limit: {e}'}), 400
    runs = _store().list_runs(
        source=request.args.get('source'),
        instance_key=request.args.get('instance_key'),
        status=request.args.get('status'),
        limit=limit,
    )
    return jsonify({'runs': [r.to_dict() for r in runs]})


@bp.route('/runs/<run_id>')
def get_run(run_id):
    store = _store()
    run = store.get_run(run_id)
    if run is None:
        return jsonify({'error': 'Run not found'}), 404
    return jsonify({
        'run': run.to_dict(),
        'raw_leads': [lead.to_dict() for lead in store.list_raw_leads(run_id)],
    })


@bp.route('/runs', methods=['POST'])
def create_run():
    """
    Start an ingestion run.

    Body: {source, instance_key, payloads: [...], params?, created_by?, sync?}
    Enqueued on RQ (202) unless sync is true, in which case the batch runs
    in-request and its stats are returned (200).
    """
    data = request.get_json(silent=True) or {}
    source = data.get('source')
    instance_key = data.get('instance_key')
    payloads = data.get('payloads')
    params = data.get('params') or {}
    created_by = data.get('created_by') or 'admin-api'

    if not source or not instance_key:
        return jsonify({'error': 'source and instance_key are required'}), 400
    if not isinstance(payloads, list):
        return jsonify({'error': 'payloads must be a list'}), 400
    if not isinstance(params, dict):
        return jsonify({'error': 'params must be an object'}), 400

    try:
        if data.get('sync'):
            batch = run_ingestion(_store(), source, instance_key, payloads,
                                  params=params, created_by=created_by)
            return jsonify(batch.to_dict()), 200

        run_id = launch_ingestion(_store(), source, instance_key, payloads, params=params,
                                  created_by=created_by,
                                  queue=current_app.extensions.get('ingestion_queue'))
        return jsonify({'run_id': run_id, 'status': 'running'}), 202

    except LeadValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.error("Failed to start ingestion run: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500


# ── Leads ────────────────────────────────────────────────────────────────────

@bp.route('/leads/<raw_lead_id>')
def get_lead(raw_lead_id):
    """Raw lead with its evidence trail, match verdicts and suggestions."""
    store = _store()
    lead = store.get_raw_lead(raw_lead_id)
    if lead is None:
        return jsonify({'error': 'Raw lead not found'}), 404
    return jsonify({
        'raw_lead': lead.to_dict(),
        'evidence': [e.to_dict() for e in store.list_evidence(raw_lead_id)],
        'matches': [m.to_dict() for m in store.list_matches(raw_lead_id)],
        'suggestions': [s.to_dict() for s in store.list_suggestions(raw_lead_id=raw_lead_id)],
    })


# ── Suggestions ──────────────────────────────────────────────────────────────

@bp.route('/suggestions')
def list_suggestions():
    """Filters: status, business_id, raw_lead_id, field_name, min_confidence, limit."""
    try:
        limit = _int_arg('limit', 100, 1000)
        min_confidence = request.args.get('min_confidence')
        min_confidence = float(min_confidence) if min_confidence not in (None, '') else None
    except ValueError as e:
        return jsonify({'error': f'Invalid filter: {e}'}), 400

    suggestions = _store().list_suggestions(
        status=request.args.get('status'),
        business_id=request.args.get('business_id'),
        raw_lead_id=request.args.get('raw_lead_id'),
        field_name=request.args.get('field_name'),
        min_confidence=min_confidence,
        limit=limit,
    )
    return jsonify({'suggestions': [s.to_dict() for s in suggestions]})


@bp.route('/suggestions/<suggestion_id>/approve', methods=['POST'])
def approve_suggestion(suggestion_id):
    return _review(suggestion_id, 'approve')


@bp.route('/suggestions/<suggestion_id>/reject', methods=['POST'])
def reject_suggestion(suggestion_id):
    return _review(suggestion_id, 'reject')


def _review(suggestion_id, action):
    data = request.get_json(silent=True)
    reviewer = data.get('reviewer') if isinstance(data, dict) else None
    if not isinstance(reviewer, str) or not reviewer.strip():
        return jsonify({'error': 'reviewer is required'}), 400
    reviewer = reviewer.strip()

    gate = SuggestionReviewGate(_store())
    try:
        outcome = getattr(gate, action)(suggestion_id, reviewer)
    except ReviewError as e:
        return jsonify({'error': str(e)}), _review_status(e)

    # Approve against a non-draft business auto-rejects instead of applying
    if action == 'approve' and not outcome.applied:
        return jsonify({'error': outcome.reason, 'outcome': outcome.to_dict()}), 409
    return jsonify({'outcome': outcome.to_dict()})


def _review_status(error: ReviewError) -> int:
    if isinstance(error, (SuggestionNotFoundError, BusinessNotFoundError)):
        return 404
    if isinstance(error, AlreadyReviewedError):
        return 409
    if isinstance(error, FieldNotAllowedError):
        return 422
    return 400
