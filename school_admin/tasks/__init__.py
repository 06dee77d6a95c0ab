"""Entry points run by an external scheduler (cron)."""
