from .extraction_config import ExtractionSettings, setup_logging

__all__ = ['ExtractionSettings', 'setup_logging']
