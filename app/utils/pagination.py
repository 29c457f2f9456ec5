from flask import current_app, request


def page_args():
    """读取分页参数，并限制单页上限"""
    page = max(request.args.get('page', 1, type=int) or 1, 1)
    per_page = request.args.get('per_page', current_app.config['API_PAGE_SIZE'], type=int) or 1
    per_page = min(max(per_page, 1), current_app.config['API_MAX_PAGE_SIZE'])
    return page, per_page


def paginated(pagination, serializer=None):
    serializer = serializer or (lambda obj: obj.to_dict())
    return {
        'items': [serializer(obj) for obj in pagination.items],
        'total': pagination.total,
        'page': pagination.page,
        'per_page': pagination.per_page,
        'pages': pagination.pages,
    }
