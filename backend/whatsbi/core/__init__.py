"""Core module - logging setup and log helpers shared across the app."""

from .logging_config import LoggerAdapter, mask_phone, setup_logging

__all__ = ['LoggerAdapter', 'mask_phone', 'setup_logging']
