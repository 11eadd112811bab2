from .cron import CronTriggerEngine, next_fire_time, validate_cron_expression

__all__ = ["CronTriggerEngine", "next_fire_time", "validate_cron_expression"]
