"""Configuration loading for the replay tool."""
