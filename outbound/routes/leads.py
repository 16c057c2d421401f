"""
Lead routes — manual re-run, deploy request, derived pipeline stage, audit timeline.
"""
import logging
from flask import Blueprint, request, jsonify

from outbound.pipeline import orchestrator

logger = logging.getLogger('routes.leads')

bp = Blueprint('leads', __name__, url_prefix='/api/leads')


@bp.route('/<lead_id>/rerun', methods=['POST'])
def rerun_step(lead_id):
    """Re-trigger research or sequencing. ?step=research|sequence"""
    step = request.args.get('step', '')
    result = orchestrator.rerun_pipeline_step(lead_id, step)
    return jsonify(result), 200


@bp.route('/<lead_id>/deploy', methods=['POST'])
def deploy(lead_id):
    """Hand a ready sequence to the deployment stage."""
    result = orchestrator.request_deployment(lead_id)
    return jsonify(result), 200


@bp.route('/<lead_id>/pipeline')
def pipeline_status(lead_id):
    return jsonify(orchestrator.get_lead_pipeline(lead_id))


@bp.route('/<lead_id>/memories')
def memories(lead_id):
    return jsonify({'memories': orchestrator.list_lead_memories(lead_id)})
