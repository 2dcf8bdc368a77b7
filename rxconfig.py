"""
taskform — Reflex configuration.

Routes:
  /tasks/new    → Add task form
  /tasks/edit   → Edit task form (?task_id=<id>)
"""

import reflex as rx

config = rx.Config(
    app_name="taskform",
    # Frontend port for dev server
    frontend_port=3000,
    # API / backend port
    backend_port=8000,
    # Telemetry
    telemetry_enabled=False,
    # Disable unused default plugins
    disable_plugins=["reflex.plugins.sitemap.SitemapPlugin"],
)
