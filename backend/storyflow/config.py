"""
配置管理模块
"""
import json
import logging
import os
from pathlib import Path
from typing import List
from pydantic import BaseModel, ConfigDict
from dotenv import load_dotenv

# 加载环境变量
load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """应用配置"""

    # 坐标归一化：导入后所有节点距画布左上角的最小边距
    position_margin: float = float(os.getenv("STORYFLOW_POSITION_MARGIN", "200"))

    # 视频节点默认视频
    fallback_video_path: str = os.getenv(
        "STORYFLOW_FALLBACK_VIDEO",
        "Assets/Resources/Video/FallBackVideo.mp4",
    )

    # 持久化为 Shop 的特殊变量
    shop_variables: List[str] = ["coin", "BPEXP", "VIPLevel"]

    # 文档版本
    interchange_version: int = int(os.getenv("STORYFLOW_INTERCHANGE_VERSION", "17"))
    story_data_version: str = "1.0"

    # 无显式变量表时使用的模板变量集合（JSON 数组，可选）
    template_variables_path: str = os.getenv("STORYFLOW_TEMPLATE_VARIABLES", "")

    log_level: str = os.getenv("STORYFLOW_LOG_LEVEL", "INFO")

    # API 配置
    api_prefix: str = "/api"
    cors_origins: list = ["*"]

    model_config = ConfigDict(env_file=".env", case_sensitive=False)


# 全局配置实例
settings = Settings()


def load_template_variables() -> List[dict]:
    """
    读取模板变量集合

    Returns:
        List[dict]: 模板变量（导入格式），未配置或文件不存在时为空列表
    """
    path_value = settings.template_variables_path
    if not path_value:
        return []
    path = Path(path_value)
    if not path.exists():
        logger.warning("[Config] 模板变量文件不存在: %s", path)
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("data") or data.get("variables") or []
    if not isinstance(data, list):
        logger.warning("[Config] 模板变量文件格式错误: %s", path)
        return []
    return data
