"""
Storyflow - 互动视频剧情图编译器
"""
__version__ = "0.1.0"
