"""
Album pipeline for ektobot.

Usage:
    from ektobot.pipeline import Pipeline

    pipeline = Pipeline(config, store, provider)
    pipeline.run_url(url)      # one album
    stats = pipeline.daemon()  # drain the queue
"""

from ektobot.pipeline.flow import DaemonStats, Pipeline

__all__ = [
    "DaemonStats",
    "Pipeline",
]
