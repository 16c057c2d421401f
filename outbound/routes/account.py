"""
Account routes — the brands (tenants) the calling user belongs to.

Authentication is upstream: the caller's id arrives in the X-User-Id header.
"""
import logging
from flask import Blueprint, request, jsonify

from outbound.database import get_session
from outbound.models.tenant import Tenant, UserTenant

logger = logging.getLogger('routes.account')

bp = Blueprint('account', __name__, url_prefix='/api/account')


def _brand_dict(membership, tenant):
    settings = tenant.settings or {}
    return {
        'id': tenant.id,
        'name': tenant.name,
        'slug': tenant.slug,
        'role': membership.role,
        'onboarding_completed': settings.get('onboarding_completed') is True,
        'created_at': tenant.created_at.isoformat() if tenant.created_at else None,
    }


@bp.route('/brands')
def list_brands():
    """List all brands for the current user with onboarding status."""
    user_id = request.headers.get('X-User-Id')
    if not user_id:
        return jsonify({'error': 'Unauthorized'}), 401

    session = get_session()
    try:
        rows = (
            session.query(UserTenant, Tenant)
            .join(Tenant, Tenant.id == UserTenant.tenant_id)
            .filter(UserTenant.user_id == user_id)
            .order_by(Tenant.created_at.asc(), Tenant.name.asc())
            .all()
        )
        brands = [_brand_dict(membership, tenant) for membership, tenant in rows]
        return jsonify({'brands': brands})
    except Exception as e:
        logger.error("Failed to fetch brands for user %s", user_id, exc_info=True)
        return jsonify({'error': 'Failed to fetch brands', 'details': str(e)}), 500
    finally:
        session.close()
