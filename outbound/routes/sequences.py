"""
Sequence routes — operator edits and sign-off.
"""
import logging
from flask import Blueprint, request, jsonify

from outbound.pipeline import orchestrator
from outbound.pipeline.errors import PreconditionFailed

logger = logging.getLogger('routes.sequences')

bp = Blueprint('sequences', __name__, url_prefix='/api/sequences')


@bp.route('/<sequence_id>/content', methods=['PUT'])
def update_content(sequence_id):
    """
    Partial thread update. Body: {thread1?, thread2?}

    A key that is absent keeps the stored thread; a key set to null clears it.
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PreconditionFailed("Request body must be a JSON object")

    kwargs = {}
    if 'thread1' in data:
        kwargs['thread1'] = data['thread1']
    if 'thread2' in data:
        kwargs['thread2'] = data['thread2']

    result = orchestrator.update_sequence_content(sequence_id, **kwargs)
    return jsonify(result), 200


@bp.route('/<sequence_id>/ready', methods=['POST'])
def mark_ready(sequence_id):
    """Operator sign-off: drafting → ready."""
    return jsonify(orchestrator.mark_sequence_ready(sequence_id)), 200
