__version__ = "0.1.0"
__author__ = "ysortable"
__description__ = "可排序模型扩展：排序号初始化、上移下移、置顶置底、批量重排序"
