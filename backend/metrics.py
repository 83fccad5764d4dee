"""Metrics exposition helpers for JSON and Prometheus outputs."""
from __future__ import annotations

import time
from typing import Any, Dict

_FETCHER_COUNTERS = (
    ('total_calls', 'Logical fetch_json calls'),
    ('attempts', 'HTTP attempts issued, including retries'),
    ('successes', 'Fetches that returned JSON'),
    ('failures', 'Fetches that exhausted every attempt'),
    ('rate_limit_hits', 'Upstream 429 responses'),
    ('errors', 'Failed attempts other than rate limiting'),
)

_RESOLUTION_COUNTERS = (
    ('calls', 'Resolve calls'),
    ('served_cached', 'Served from a fresh cache entry'),
    ('served_fresh', 'Served from a live fetch'),
    ('degraded', 'Served stale cache or static default after a failed fetch'),
    ('joined_inflight', 'Joined a resolution already in flight'),
)


def collect_metrics(orchestrator, started_at: float) -> Dict[str, Any]:
    now = time.time()
    store = orchestrator.store
    return {
        'status': 'ok',
        'uptime_seconds': round(now - started_at, 3),
        'fetcher': orchestrator.fetcher.metrics(),
        'cache': {
            'entries': len(store),
            'freshness_seconds': store.freshness_seconds,
            'last_write_age_seconds': store.last_write_age(),
            'metrics': store.snapshot(),
        },
        'resolutions': orchestrator.stats(),
    }


def emit_prometheus(lines: list[str], name: str, value: Any, mtype: str, help_text: str):
    lines.append(f'# HELP {name} {help_text}')
    lines.append(f'# TYPE {name} {mtype}')
    if value is None:
        value = 'NaN'
    lines.append(f'{name} {value}')


def _emit_labelled(lines: list[str], name: str, mtype: str, help_text: str, samples: Dict[str, Any]):
    lines.append(f'# HELP {name} {help_text}')
    lines.append(f'# TYPE {name} {mtype}')
    for metric, value in sorted(samples.items()):
        lines.append(f'{name}{{metric="{metric}"}} {"NaN" if value is None else value}')


def render_prometheus(snapshot: Dict[str, Any]) -> str:
    lines: list[str] = []
    emit_prometheus(lines, 'market_cache_uptime_seconds', snapshot.get('uptime_seconds'), 'gauge', 'Process uptime in seconds')

    fetcher = snapshot.get('fetcher') or {}
    for key, help_text in _FETCHER_COUNTERS:
        emit_prometheus(lines, f'market_fetch_{key}_total', fetcher.get(key, 0), 'counter', help_text)
    emit_prometheus(lines, 'market_fetch_last_duration_ms', fetcher.get('last_fetch_duration_ms'), 'gauge', 'Duration of the last successful fetch in ms')

    cache = snapshot.get('cache') or {}
    emit_prometheus(lines, 'market_cache_entries', cache.get('entries', 0), 'gauge', 'Metrics currently held in the cache')
    emit_prometheus(lines, 'market_cache_last_write_age_seconds', cache.get('last_write_age_seconds'), 'gauge', 'Seconds since the newest cache write')
    ages = {name: info.get('age_seconds') for name, info in (cache.get('metrics') or {}).items()}
    if ages:
        _emit_labelled(lines, 'market_cache_entry_age_seconds', 'gauge', 'Age of each cache entry', ages)

    resolutions = snapshot.get('resolutions') or {}
    for key, help_text in _RESOLUTION_COUNTERS:
        samples = {name: counts.get(key, 0) for name, counts in resolutions.items()}
        if samples:
            _emit_labelled(lines, f'market_resolve_{key}_total', 'counter', help_text, samples)
    return '\n'.join(lines) + '\n'
