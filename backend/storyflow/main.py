"""
FastAPI 应用入口
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storyflow import __version__
from storyflow.config import settings
from storyflow.routers import convert_router

logging.basicConfig(level=settings.log_level)

# 创建 FastAPI 应用
app = FastAPI(
    title="Storyflow 转换 API",
    description="互动视频剧情图的标签文本编译与格式转换",
    version=__version__,
)

# 配置 CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(convert_router, prefix=settings.api_prefix, tags=["Convert"])


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": "Storyflow 转换 API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """健康检查"""
    return {"status": "healthy"}
