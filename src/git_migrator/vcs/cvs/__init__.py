from .reader import CvsReader, ValidationResult, validate_repository
from .writer import CvsWriter

__all__ = ["CvsReader", "CvsWriter", "ValidationResult", "validate_repository"]
