"""로깅 설정 - config/logging_config.yaml + 환경변수 레벨 지정

환경변수:
    TREND_COLLECTOR_LOG_CONFIG: 로깅 설정 파일 경로
    TREND_COLLECTOR_LOG_LEVEL: trend_collector 로거 레벨 (DEBUG, INFO, ...)
"""

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

PACKAGE_LOGGER = "trend_collector"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "logging_config.yaml"
FALLBACK_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config_path: Optional[str] = None, level: Optional[str] = None) -> Optional[str]:
    """
    로깅 초기화. 설정 파일이 없으면 basicConfig로 콘솔 출력만 구성.

    Args:
        config_path: 설정 파일 경로. 없으면 TREND_COLLECTOR_LOG_CONFIG, 그다음 기본 경로.
        level: 패키지 로거 레벨. 없으면 TREND_COLLECTOR_LOG_LEVEL.

    Returns:
        적용한 설정 파일 경로 (basicConfig로 대체했으면 None).
    """
    path = config_path or os.environ.get("TREND_COLLECTOR_LOG_CONFIG") or str(DEFAULT_CONFIG_PATH)
    level = level or os.environ.get("TREND_COLLECTOR_LOG_LEVEL")

    applied: Optional[str] = None
    log_config = _load_config(path)
    if log_config:
        _ensure_log_dirs(log_config)
        logging.config.dictConfig(log_config)
        applied = path
    else:
        logging.basicConfig(level=logging.INFO, format=FALLBACK_FORMAT)

    if level:
        # 패키지 로거는 propagate=false로 설정되므로 루트와 따로 지정
        logging.getLogger(PACKAGE_LOGGER).setLevel(level.upper())
        logging.getLogger().setLevel(level.upper())

    logging.getLogger(__name__).debug("로깅 초기화: %s (level=%s)", applied or "basicConfig", level or "config")
    return applied


def _load_config(path: str) -> Optional[Dict[str, Any]]:
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else None


def _ensure_log_dirs(log_config: Dict[str, Any]) -> None:
    """파일 핸들러의 로그 디렉토리 생성."""
    for handler in (log_config.get("handlers") or {}).values():
        log_dir = os.path.dirname(handler.get("filename", ""))
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)


def get_logger(name: str) -> logging.Logger:
    """모듈별 로거 (예: get_logger(__name__) → "trend_collector.scheduler.job_scheduler")."""
    return logging.getLogger(name)
