"""
Settings routes — read and shallow-merge the calling user's tenant settings.
"""
import logging
from flask import Blueprint, request, jsonify

from outbound.database import get_session
from outbound.models.tenant import Tenant, UserTenant

logger = logging.getLogger('routes.settings')

bp = Blueprint('settings', __name__, url_prefix='/api')


def _user_tenant(session, user_id):
    """First tenant the user joined, or None."""
    membership = (
        session.query(UserTenant)
        .filter_by(user_id=user_id)
        .order_by(UserTenant.created_at.asc(), UserTenant.id.asc())
        .first()
    )
    if membership is None:
        return None
    return session.get(Tenant, membership.tenant_id)


@bp.route('/settings', methods=['GET'])
def get_settings():
    user_id = request.headers.get('X-User-Id')
    if not user_id:
        return jsonify({'error': 'Unauthorized'}), 401

    session = get_session()
    try:
        tenant = _user_tenant(session, user_id)
        if tenant is None:
            return jsonify({'error': 'No tenant found'}), 404
        return jsonify({'tenant_id': tenant.id, 'settings': tenant.settings or {}})
    finally:
        session.close()


@bp.route('/settings', methods=['POST'])
def update_settings():
    """Shallow merge: top-level keys in the body replace the stored ones, others are kept."""
    user_id = request.headers.get('X-User-Id')
    if not user_id:
        return jsonify({'error': 'Unauthorized'}), 401

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({'error': 'Settings body must be a non-empty JSON object'}), 400

    session = get_session()
    try:
        tenant = _user_tenant(session, user_id)
        if tenant is None:
            return jsonify({'error': 'No tenant found'}), 404

        merged = dict(tenant.settings or {})
        merged.update(data)
        # Reassign so SQLAlchemy sees the JSON column change.
        tenant.settings = merged
        session.commit()
        logger.info("Tenant %s settings updated (%s)", tenant.id, ', '.join(sorted(data)))
        return jsonify({'tenant_id': tenant.id, 'settings': merged})
    except Exception as e:
        session.rollback()
        logger.error("Failed to update settings for user %s", user_id, exc_info=True)
        return jsonify({'error': 'Failed to update settings', 'details': str(e)}), 500
    finally:
        session.close()
