# esocial_auditor/esocial/zip_extractor.py
"""
Extração de XMLs de arquivos ZIP enviados para importação.

O tamanho é validado antes de qualquer descompressão. Apenas entradas
``.xml`` (que não sejam diretórios) são devolvidas, com o caminho completo
dentro do ZIP preservado.
"""

import io
import time
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from esocial_auditor.config import settings
from esocial_auditor.exceptions import ZipCorruptedError, ZipSemXmlError, ZipTooLargeError
from esocial_auditor.logging_config import log

ProgressCallback = Callable[[int, int], None]


@dataclass
class ExtractedFile:
    file_name: str
    file_path: str
    content: str


@dataclass
class ZipExtractionResult:
    xml_files: List[ExtractedFile] = field(default_factory=list)
    total_files_in_zip: int = 0
    extraction_time_ms: float = 0.0


def is_zip_file(file_name: str) -> bool:
    return file_name.lower().endswith(".zip")


def is_xml_file(file_name: str) -> bool:
    return file_name.lower().endswith(".xml")


def get_file_name_from_path(path: str) -> str:
    return path.split("/")[-1]


def decode_xml_bytes(conteudo: bytes) -> str:
    # BOM UTF-8 é comum nos XMLs baixados do portal
    try:
        return conteudo.decode("utf-8-sig")
    except UnicodeDecodeError:
        return conteudo.decode("iso-8859-1")


def validate_zip_size(tamanho_bytes: int, max_size_mb: Optional[float] = None) -> None:
    limite_mb = max_size_mb if max_size_mb is not None else settings.MAX_ZIP_SIZE_MB
    if tamanho_bytes > limite_mb * 1024 * 1024:
        raise ZipTooLargeError(tamanho_bytes, limite_mb)


def extract_xmls_from_zip(
    conteudo: bytes,
    on_progress: Optional[ProgressCallback] = None,
    max_size_mb: Optional[float] = None,
) -> ZipExtractionResult:
    inicio = time.perf_counter()

    validate_zip_size(len(conteudo), max_size_mb)

    try:
        arquivo_zip = zipfile.ZipFile(io.BytesIO(conteudo))
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise ZipCorruptedError() from e

    with arquivo_zip:
        entradas = arquivo_zip.infolist()
        xml_entries = [e for e in entradas if not e.is_dir() and is_xml_file(e.filename)]

        if not xml_entries:
            raise ZipSemXmlError()

        xml_files: List[ExtractedFile] = []
        for processados, entrada in enumerate(xml_entries, start=1):
            try:
                dados = arquivo_zip.read(entrada)
            except (zipfile.BadZipFile, zlib.error, OSError) as e:
                raise ZipCorruptedError() from e

            xml_files.append(
                ExtractedFile(
                    file_name=get_file_name_from_path(entrada.filename),
                    file_path=entrada.filename,
                    content=decode_xml_bytes(dados),
                )
            )
            if on_progress:
                on_progress(processados, len(xml_entries))

    duracao_ms = (time.perf_counter() - inicio) * 1000
    log.debug(
        f"ZIP extraído: {len(xml_files)} XML(s) de {len(entradas)} entrada(s) em {duracao_ms:.0f}ms"
    )
    return ZipExtractionResult(
        xml_files=xml_files,
        total_files_in_zip=len(entradas),
        extraction_time_ms=duracao_ms,
    )
