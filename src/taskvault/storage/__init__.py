from .file_document import FileDocument, scan_vault
from .memory_document import MemoryDocument

__all__ = ["FileDocument", "MemoryDocument", "scan_vault"]
