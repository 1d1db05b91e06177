# src/config/__init__.py
"""
Модуль конфигурации релея.
Экспортирует настройки приложения, фабрику синглтона и чтение config.json.
"""

from src.config.loader import Settings, get_settings, load_config_json, settings

__all__ = ["Settings", "get_settings", "load_config_json", "settings"]
