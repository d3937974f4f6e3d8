"""Core module - Modelos de dominio del pipeline de telemetría.

Estructura:
- domain/      → Canales, lecturas, mensajes, estados de conexión, snapshots
"""
