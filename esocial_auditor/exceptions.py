# esocial_auditor/exceptions.py
"""
Hierarquia de exceções do auditor.

Cada erro carrega um ``code`` legível por máquina, para que o pipeline de
importação e a API possam tratá-lo por tipo e não pela mensagem.

    AuditorError
    +-- ZipValidationError
    |   +-- ZipTooLargeError
    |   +-- ZipCorruptedError
    |   +-- ZipSemXmlError
    +-- XmlParsingError
    +-- RubricaOrdemError
    +-- PersistenceError
"""

from typing import Optional


class AuditorError(Exception):
    """Base de todos os erros do auditor."""

    code: str = "AUDITOR_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# --- ARQUIVOS ZIP ---


class ZipValidationError(AuditorError):
    code = "ZIP_INVALIDO"


class ZipTooLargeError(ZipValidationError):
    code = "ZIP_MUITO_GRANDE"

    def __init__(self, tamanho_bytes: int, limite_mb: float):
        self.tamanho_bytes = tamanho_bytes
        self.limite_mb = limite_mb
        tamanho_mb = tamanho_bytes / (1024 * 1024)
        super().__init__(
            f"Arquivo ZIP muito grande ({tamanho_mb:.2f}MB). Limite máximo: {limite_mb:g}MB"
        )


class ZipCorruptedError(ZipValidationError):
    code = "ZIP_CORROMPIDO"

    def __init__(self, message: str = "Arquivo ZIP corrompido ou inválido"):
        super().__init__(message)


class ZipSemXmlError(ZipValidationError):
    code = "ZIP_SEM_XML"

    def __init__(self, message: str = "Nenhum arquivo XML encontrado no ZIP"):
        super().__init__(message)


# --- XML ---


class XmlParsingError(AuditorError):
    code = "XML_INVALIDO"

    def __init__(self, message: str = "Erro ao processar XML: formato inválido"):
        super().__init__(message)


# --- RUBRICAS (S-1010) ---


class RubricaOrdemError(AuditorError):
    """Inclusão de rubrica com início igual ou anterior a um registro ainda aberto."""

    code = "RUBRICA_ORDEM"

    def __init__(self, codigo: str, ini_valid: str, ini_existente: str):
        self.codigo = codigo
        self.ini_valid = ini_valid
        self.ini_existente = ini_existente
        super().__init__(
            f"Evento S-1010 da rubrica {codigo} com início {ini_valid} igual ou anterior "
            f"ao registro já existente (início {ini_existente})"
        )


# --- PERSISTÊNCIA ---


class PersistenceError(AuditorError):
    code = "PERSISTENCIA"

    def __init__(self, message: str, tabela: Optional[str] = None):
        self.tabela = tabela
        super().__init__(message if not tabela else f"[{tabela}] {message}")
