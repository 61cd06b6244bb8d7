from mercado_obras.core.event_bus import (
    CatalogChanged,
    CotacaoEnviada,
    DomainEvent,
    EventBus,
    get_event_bus,
    reset_event_bus_for_tests,
)

__all__ = [
    "DomainEvent",
    "EventBus",
    "CatalogChanged",
    "CotacaoEnviada",
    "get_event_bus",
    "reset_event_bus_for_tests",
]
