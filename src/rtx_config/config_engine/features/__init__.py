"""Feature codecs for RTX configuration areas."""
from .base import (
    FeatureCodec,
    DecodeResult,
    Intent,
    parse_id_list,
    format_id_list,
)
from .ip_filter import IPFilter, IPFilterCodec
from .ip_filter_dynamic import IPFilterDynamic, IPFilterDynamicCodec, DynamicForm
from .interface_filter import InterfaceFilter, InterfaceFilterCodec
from .static_route import StaticRoute, NextHop, StaticRouteCodec
from .dns_select import DNSServer, DNSServerSelect, DNSSelectCodec, assign_priorities
from .schedule import Schedule, ScheduleForm, ScheduleCodec
from .tunnel import Tunnel, IPsecSettings, IKEKeepalive, L2TPSettings, L2TPKeepalive, TunnelCodec

__all__ = [
    "FeatureCodec",
    "DecodeResult",
    "Intent",
    "parse_id_list",
    "format_id_list",
    "IPFilter",
    "IPFilterCodec",
    "IPFilterDynamic",
    "IPFilterDynamicCodec",
    "DynamicForm",
    "InterfaceFilter",
    "InterfaceFilterCodec",
    "StaticRoute",
    "NextHop",
    "StaticRouteCodec",
    "DNSServer",
    "DNSServerSelect",
    "DNSSelectCodec",
    "assign_priorities",
    "Schedule",
    "ScheduleForm",
    "ScheduleCodec",
    "Tunnel",
    "IPsecSettings",
    "IKEKeepalive",
    "L2TPSettings",
    "L2TPKeepalive",
    "TunnelCodec",
]

# Feature registry, in apply order: filters exist before they are bound
FEATURES: dict[str, type[FeatureCodec]] = {
    "ip_filter": IPFilterCodec,
    "ip_filter_dynamic": IPFilterDynamicCodec,
    "interface_filter": InterfaceFilterCodec,
    "tunnel": TunnelCodec,
    "static_route": StaticRouteCodec,
    "dns_select": DNSSelectCodec,
    "schedule": ScheduleCodec,
}

# Record type -> feature name, for encoding a bare record
RECORD_FEATURES: dict[type, str] = {
    IPFilter: "ip_filter",
    IPFilterDynamic: "ip_filter_dynamic",
    InterfaceFilter: "interface_filter",
    Tunnel: "tunnel",
    StaticRoute: "static_route",
    DNSServerSelect: "dns_select",
    Schedule: "schedule",
}


def get_codec(feature: str) -> FeatureCodec:
    """Factory function to create codec instances."""
    if feature not in FEATURES:
        raise ValueError(f"Unknown feature: {feature}")
    return FEATURES[feature]()


def codec_for(record: object) -> FeatureCodec:
    """Codec owning a record instance."""
    feature = RECORD_FEATURES.get(type(record))
    if feature is None:
        raise ValueError(f"No feature handles {type(record).__name__}")
    return get_codec(feature)
