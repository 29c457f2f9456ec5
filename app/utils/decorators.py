from functools import wraps
from flask import request
from app.exceptions import ValidationError


def _header_int(name, required):
    raw = request.headers.get(name, '').strip()
    if not raw:
        if required:
            raise ValidationError(f'Missing {name} header')
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f'Invalid {name} header')
    if value <= 0:
        raise ValidationError(f'Invalid {name} header')
    return value


def tenant_context(f):
    """
    从请求头解析租户与操作人，显式传入视图
    X-Tenant-Id 必填，X-Operator-Id 可选
    (身份认证由上游网关负责)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        kwargs['tenant_id'] = _header_int('X-Tenant-Id', required=True)
        kwargs['operator_id'] = _header_int('X-Operator-Id', required=False)
        return f(*args, **kwargs)
    return decorated_function
