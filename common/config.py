"""
설정 파일 로드

config/ 디렉토리의 YAML 파일들을 하나의 dict로 병합합니다.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent / "config"

CONFIG_FILES = (
    "database.yaml",
    "logging.yaml",
    "api.yaml",
    "ingest.yaml",
    "scheduler.yaml",
    "supervisor.yaml",
)


def load_config(config_dir: str | Path | None = None) -> dict[str, Any]:
    """
    설정 로드

    Args:
        config_dir: 설정 디렉토리 (None이면 JOBS_CONFIG_DIR 환경변수 또는 ./config)

    Returns:
        모든 YAML을 병합한 dict (없는 파일은 건너뜀)
    """
    config_path = Path(config_dir or os.environ.get("JOBS_CONFIG_DIR") or DEFAULT_CONFIG_DIR)
    config: dict[str, Any] = {}

    for file_name in CONFIG_FILES:
        file_path = config_path / file_name
        if not file_path.exists():
            logger.debug(f"Config file not found, skipping: {file_path}")
            continue
        with open(file_path, encoding="utf-8") as f:
            config.update(yaml.safe_load(f) or {})

    _apply_env_overrides(config)
    return config


def _apply_env_overrides(config: dict[str, Any]) -> None:
    """환경변수 우선 적용"""
    cpu_threshold = os.environ.get("CPU_THRESHOLD")
    if cpu_threshold:
        try:
            config.setdefault("supervisor", {})["cpu_threshold"] = float(cpu_threshold)
        except ValueError:
            logger.warning(f"Ignoring invalid CPU_THRESHOLD: {cpu_threshold!r}")
