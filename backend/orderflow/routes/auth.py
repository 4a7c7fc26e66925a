from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token, jwt_required, get_jwt
from sqlalchemy import select
from orderflow import get_db
from orderflow.constants.permissions import permissions_for_role
from orderflow.models.authz import User
from orderflow.services.policy import current_actor_id

auth_bp = Blueprint('auth', __name__)


@auth_bp.post('/login')
def login():
    data = request.json or {}
    username = data.get('username'); password = data.get('password')
    if not username or not password:
        abort(400, description='username & password required')
    session = get_db()
    user = session.execute(select(User).where(User.username==username)).scalar_one_or_none()
    if not user or not user.is_active or not user.verify_password(password):
        abort(401, description='invalid credentials')
    claims = {
        'role': user.role,
        'perms': permissions_for_role(user.role),
    }
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=claims)
    return {'access_token': token}


@auth_bp.get('/me')
@jwt_required()
def me():
    session = get_db()
    user = session.execute(select(User).where(User.id==current_actor_id())).scalar_one_or_none()
    if not user:
        abort(404)
    claims = get_jwt()
    return {'id': user.id, 'username': user.username, 'role': user.role, 'perms': claims.get('perms', [])}
