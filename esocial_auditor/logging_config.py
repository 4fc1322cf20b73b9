# esocial_auditor/logging_config.py

import sys
from pathlib import Path

from loguru import logger

from esocial_auditor.config import settings

# Remove o handler padrão para evitar duplicação de logs no console.
logger.remove()

# Console: formato limpo e colorido, no nível configurado (INFO por padrão).
logger.add(
    sys.stderr,
    level=settings.LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)

# Arquivo: tudo a partir de DEBUG, com rotação de 10 MB e retenção de 30 dias.
logger.add(
    str(Path(settings.LOG_DIR) / "auditor_{time}.log"),
    rotation="10 MB",
    retention="30 days",
    level="DEBUG",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
)

# Exporta o logger configurado para ser usado em outros módulos.
log = logger
