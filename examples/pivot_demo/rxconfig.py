"""Reflex configuration for the pivot table demo app."""

import reflex as rx

config = rx.Config(
    app_name="pivot_demo",
    plugins=[rx.plugins.SitemapPlugin()],
)
