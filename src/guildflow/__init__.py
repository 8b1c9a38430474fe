"""GuildFlow: schedule and event triggers for AI guild workflows."""

__version__ = "0.1.0"
