"""Configuration package for the Penci relay.

Components:
- server_config.json: relay server, logging and HTTP client settings,
  deep merged over the built-in defaults in utils.config_loader
"""
