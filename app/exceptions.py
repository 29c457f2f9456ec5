class NexusException(Exception):
    """NEXUS 系统基础异常类"""
    def __init__(self, message, code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    @property
    def reason(self):
        return type(self).__name__

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['error'] = self.reason
        rv['success'] = False
        return rv

class ValidationError(NexusException):
    """输入数据不合法（数量非正、缺少必填字段等）"""
    def __init__(self, message="Invalid data", payload=None):
        super().__init__(message, code=400, payload=payload)

class NotFoundError(NexusException):
    """引用对象不存在或不属于当前租户"""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, code=404, payload=payload)

class InsufficientStockError(NexusException):
    """可用/锁定数量不足"""
    def __init__(self, message="Insufficient stock", payload=None):
        super().__init__(message, code=409, payload=payload)

class InvalidStateError(NexusException):
    """订单当前状态不允许该流转"""
    def __init__(self, message="Invalid state transition", payload=None):
        super().__init__(message, code=409, payload=payload)

class ConflictError(NexusException):
    """唯一约束冲突"""
    def __init__(self, message="Conflict", payload=None):
        super().__init__(message, code=409, payload=payload)

class TransientError(NexusException):
    """锁等待超时 / 序列化失败，调用方可重试"""
    def __init__(self, message="Temporary failure, please retry", payload=None):
        super().__init__(message, code=503, payload=payload)
