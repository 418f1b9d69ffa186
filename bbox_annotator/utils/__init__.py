"""Configuration, environment and i18n helpers."""
