"""depflow - 内容寻址的依赖解析与安装核心"""

__version__ = "0.3.0"
