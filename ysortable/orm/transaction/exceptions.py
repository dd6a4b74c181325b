"""事务异常"""


class TransactionError(Exception):
    """事务错误基类"""
    pass


class TransactionNotActiveError(TransactionError):
    """在已结束的事务上提交时抛出"""

    def __init__(self, message: str = "事务未激活"):
        super().__init__(message)
