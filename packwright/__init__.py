"""
Packwright - Minecraft 整合包管理与安装工具
"""

__version__ = "0.1.0"
