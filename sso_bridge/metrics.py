from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass(slots=True)
class SSOMetrics:
    registry: CollectorRegistry
    attach_total: Counter
    resolve_total: Counter
    failures_total: Counter
    protocol_violations_total: Counter
    command_duration_seconds: Histogram

    @classmethod
    def build(cls, registry: CollectorRegistry | None = None) -> "SSOMetrics":
        registry = registry or CollectorRegistry()
        attach_total = Counter(
            "sso_attach_total",
            "Attach handshakes by outcome",
            labelnames=("outcome",),
            registry=registry,
        )
        resolve_total = Counter(
            "sso_resolve_total",
            "Broker session resolutions by outcome",
            labelnames=("outcome",),
            registry=registry,
        )
        failures_total = Counter(
            "sso_failures_total",
            "Failed server commands",
            labelnames=("reason", "status"),
            registry=registry,
        )
        protocol_violations_total = Counter(
            "sso_protocol_violations_total",
            "Requests resolved into a session other than the active one",
            registry=registry,
        )
        command_duration_seconds = Histogram(
            "sso_command_duration_seconds",
            "Server command latency",
            labelnames=("command",),
            registry=registry,
        )
        return cls(
            registry=registry,
            attach_total=attach_total,
            resolve_total=resolve_total,
            failures_total=failures_total,
            protocol_violations_total=protocol_violations_total,
            command_duration_seconds=command_duration_seconds,
        )


__all__ = ["SSOMetrics"]
