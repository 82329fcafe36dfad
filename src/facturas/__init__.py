"""Facturas de proveedor: borradores, reconciliación y finalización."""

__version__ = "0.1.0"
