"""Tests for the feature decoders and encoders."""
import pytest

from rtx_config.config_engine.errors import ScopedDecodeError, ValidationError
from rtx_config.config_engine.features import (
    DNSSelectCodec,
    DNSServer,
    DNSServerSelect,
    DynamicForm,
    IKEKeepalive,
    Intent,
    InterfaceFilter,
    InterfaceFilterCodec,
    IPFilter,
    IPFilterCodec,
    IPFilterDynamic,
    IPFilterDynamicCodec,
    IPsecSettings,
    L2TPKeepalive,
    L2TPSettings,
    NextHop,
    Schedule,
    ScheduleCodec,
    ScheduleForm,
    StaticRoute,
    StaticRouteCodec,
    Tunnel,
    TunnelCodec,
    assign_priorities,
    codec_for,
    get_codec,
    parse_id_list,
)
from rtx_config.config_engine.features.static_route import parse_network
from rtx_config.config_engine.scanner import StanzaScanner


def roundtrip(codec, record):
    """Encode a record and decode the produced command text."""
    commands = codec.encode(record, Intent.CREATE)
    result = codec.decode(StanzaScanner().scan(commands))
    assert result.errors == []
    assert len(result.records) == 1
    return result.records[0]


class TestIdLists:
    """Tests for the shared id list helpers."""

    def test_parse_id_list(self):
        """Whitespace separated numbers parse in order."""
        assert parse_id_list("200 201  202") == [200, 201, 202]
        assert parse_id_list("") == []

    def test_parse_id_list_rejects_words(self):
        """Non-numeric tokens are rejected."""
        with pytest.raises(ValueError):
            parse_id_list("200 dynamic")


class TestFeatureRegistry:
    """Tests for codec lookup."""

    def test_get_codec_unknown(self):
        """Unknown features raise ValueError."""
        with pytest.raises(ValueError, match="Unknown feature"):
            get_codec("bgp")

    def test_codec_for_record(self):
        """Records find their owning codec."""
        assert isinstance(codec_for(StaticRoute("0.0.0.0", "0.0.0.0")), StaticRouteCodec)


class TestIPFilterCodec:
    """Tests for static filters."""

    def test_decode_with_ports(self):
        """The '*' source port placeholder is not kept."""
        result = IPFilterCodec().decode_lines(["ip filter 100 pass * 192.168.1.0/24 tcp * www"])

        assert result.records == [
            IPFilter(100, "pass", "*", "192.168.1.0/24", "tcp", source_port=None, dest_port="www")
        ]

    def test_decode_established(self):
        """established is a flag, not a port."""
        record = IPFilterCodec().parse_line("ip filter 101 pass * * tcp established")
        assert record.established
        assert record.source_port is None
        assert record.dest_port is None

    @pytest.mark.parametrize("record", [
        IPFilter(1, "reject", "*", "*", "*"),
        IPFilter(2, "pass", "*", "*", "tcp", established=True),
        IPFilter(3, "pass-log", "10.0.0.0/8", "*", "udp", source_port="500"),
        IPFilter(4, "pass", "*", "192.168.1.1", "tcp", source_port="1024-65535", dest_port="22"),
        IPFilter(5, "restrict", "*", "*", "tcp", dest_port="https"),
    ])
    def test_roundtrip(self, record):
        """Decode(Encode(r)) == r."""
        assert roundtrip(IPFilterCodec(), record) == record

    def test_bad_line_is_isolated(self):
        """Five lines with the third malformed give four records and one error."""
        lines = [
            "ip filter 1 pass * * tcp * www",
            "ip filter 2 pass * * udp * domain",
            "ip filter 3 pass",
            "ip filter 4 reject * * *",
            "ip filter 5 pass * * icmp",
        ]

        result = IPFilterCodec().decode_lines(lines)

        assert [r.number for r in result.records] == [1, 2, 4, 5]
        assert len(result.errors) == 1
        assert result.errors[0].line == "ip filter 3 pass"
        assert result.errors[0].feature == "ip_filter"

    def test_unknown_action_is_error(self):
        """A rule with an unknown action is reported, not guessed."""
        result = IPFilterCodec().decode_lines(["ip filter 6 allow * * *"])
        assert result.records == []
        assert len(result.errors) == 1

    def test_other_filter_commands_not_owned(self):
        """dynamic and set lines belong to other features."""
        result = IPFilterCodec().decode_lines([
            "ip filter dynamic 100 * * www",
            "ip filter set lan 1 2 3",
            "ip filter source-route on",
        ])
        assert result.records == []
        assert result.errors == []

    def test_validation_blocks_encode(self):
        """Invalid records produce no commands."""
        record = IPFilter(0, "pass", "*", "*", "icmp", dest_port="80")

        with pytest.raises(ValidationError) as exc:
            IPFilterCodec().encode(record, Intent.CREATE)

        messages = " ".join(exc.value.errors)
        assert "between 1 and 65535" in messages
        assert "ports require" in messages

    def test_delete(self):
        """Delete removes by number, even for invalid records."""
        record = IPFilter(100, "bogus", "*", "*", "*")
        assert IPFilterCodec().encode(record, Intent.DELETE) == ["no ip filter 100"]

    def test_from_dict(self):
        """Desired state input is normalized."""
        record = IPFilterCodec().from_dict({
            "number": "100", "action": "PASS", "protocol": "TCP", "dest_port": 80,
        })
        assert record == IPFilter(100, "pass", "*", "*", "tcp", dest_port="80")

    def test_from_dict_source_port_placeholder(self):
        """A "*" source port next to a destination port reads as unset, like the device line."""
        record = IPFilterCodec().from_dict({
            "number": 1, "protocol": "tcp", "source_port": "*", "dest_port": "22",
        })
        assert record.source_port is None
        assert roundtrip(IPFilterCodec(), record) == record


class TestIPFilterDynamicCodec:
    """Tests for dynamic filters."""

    def test_decode_protocol_form(self):
        """A protocol name selects the protocol form."""
        record = IPFilterDynamicCodec().parse_line("ip filter dynamic 100 * * www syslog on")

        assert record.form == DynamicForm.PROTOCOL
        assert record.protocol == "www"
        assert record.syslog is True
        assert record.filters is None

    def test_decode_filter_form(self):
        """The filter keyword selects the filter form."""
        record = IPFilterDynamicCodec().parse_line(
            "ip filter dynamic 101 * * filter 200 201 in 210 out 220 timeout=60"
        )

        assert record.form == DynamicForm.FILTER
        assert record.protocol is None
        assert record.filters == [200, 201]
        assert record.in_filters == [210]
        assert record.out_filters == [220]
        assert record.timeout == 60

    def test_empty_in_list_is_preserved(self):
        """'in' with no numbers stays explicitly empty; absent 'out' stays unset."""
        record = IPFilterDynamic(
            102, "*", "*", form=DynamicForm.FILTER, filters=[300], in_filters=[],
        )

        assert IPFilterDynamicCodec().create_commands(record) == [
            "ip filter dynamic 102 * * filter 300 in"
        ]
        decoded = roundtrip(IPFilterDynamicCodec(), record)
        assert decoded.in_filters == []
        assert decoded.out_filters is None

    @pytest.mark.parametrize("record", [
        IPFilterDynamic(100, "*", "*", protocol="ftp"),
        IPFilterDynamic(101, "192.168.1.0/24", "*", protocol="https", syslog=False, timeout=30),
        IPFilterDynamic(102, "*", "*", form=DynamicForm.FILTER, filters=[200, 201],
                        in_filters=[210], out_filters=[]),
    ])
    def test_roundtrip_keeps_form(self, record):
        """Decode(Encode(r)) == r including the form."""
        assert roundtrip(IPFilterDynamicCodec(), record) == record

    def test_duplicate_in_list_is_error(self):
        """Two 'in' lists cannot be told apart."""
        result = IPFilterDynamicCodec().decode_lines(["ip filter dynamic 1 * * filter 2 in 3 in 4"])
        assert result.records == []
        assert len(result.errors) == 1

    def test_validate_form_rules(self):
        """Each form only accepts its own fields."""
        codec = IPFilterDynamicCodec()

        assert codec.validate(IPFilterDynamic(1, "*", "*", form=DynamicForm.FILTER)) == [
            "filter form needs at least one filter number"
        ]
        errors = codec.validate(IPFilterDynamic(2, "*", "*", protocol="www", in_filters=[1]))
        assert errors == ["filter lists are only allowed in the filter form"]

    def test_from_dict_infers_form(self):
        """A filters list implies the filter form."""
        record = IPFilterDynamicCodec().from_dict({"number": 5, "filters": [10, 11], "out_filters": []})
        assert record.form == DynamicForm.FILTER
        assert record.in_filters is None
        assert record.out_filters == []


class TestInterfaceFilterCodec:
    """Tests for secure filter bindings."""

    def test_in_and_out_merge(self):
        """Both directions of an interface fold into one record."""
        result = InterfaceFilterCodec().decode_lines([
            "ip lan2 secure filter in 100 101 dynamic 200",
            "ip lan2 secure filter out 300",
        ])

        assert result.records == [
            InterfaceFilter("lan2", inbound=[100, 101], outbound=[300], dynamic_inbound=[200])
        ]

    def test_empty_binding_is_not_unset(self):
        """A bare 'secure filter in' line is an explicitly empty list."""
        result = InterfaceFilterCodec().decode_lines(["ip lan1 secure filter in"])
        record = result.records[0]
        assert record.inbound == []
        assert record.outbound is None

    def test_tunnel_binding_not_owned(self):
        """ip tunnel secure filter belongs to the tunnel feature."""
        result = InterfaceFilterCodec().decode_lines(["ip tunnel secure filter in 1"])
        assert result.records == []

    def test_pp_context_binding(self):
        """Bindings inside pp select get the pp interface name."""
        stanza = StanzaScanner().scan([
            "pp select 1",
            " ip pp secure filter in 10 11",
            " pp enable 1",
        ])

        result = InterfaceFilterCodec().decode(stanza)

        assert result.records == [InterfaceFilter("pp1", inbound=[10, 11])]

    def test_pp_encode_uses_context(self):
        """PP bindings are issued inside pp select."""
        commands = InterfaceFilterCodec().encode(InterfaceFilter("pp1", inbound=[10]), Intent.CREATE)
        assert commands == ["pp select 1", "ip pp secure filter in 10", "pp select none"]

    @pytest.mark.parametrize("record", [
        InterfaceFilter("lan1", inbound=[], outbound=[5], dynamic_outbound=[]),
        InterfaceFilter("lan2", inbound=[1, 2, 3], dynamic_inbound=[100, 101]),
        InterfaceFilter("pp-anonymous", outbound=[7]),
    ])
    def test_roundtrip_tri_state(self, record):
        """Unset, empty and populated lists all survive a round trip."""
        assert roundtrip(InterfaceFilterCodec(), record) == record

    def test_update_removes_dropped_direction(self):
        """A direction the desired record no longer has is removed."""
        desired = InterfaceFilter("lan1", inbound=[1])
        observed = InterfaceFilter("lan1", inbound=[1], outbound=[2])

        commands = InterfaceFilterCodec().encode(desired, Intent.UPDATE, observed=observed)

        assert commands == ["ip lan1 secure filter in 1", "no ip lan1 secure filter out"]

    def test_dynamic_requires_static(self):
        """A dynamic list without its static list cannot be written."""
        errors = InterfaceFilterCodec().validate(InterfaceFilter("lan1", dynamic_inbound=[1]))
        assert errors == ["dynamic_inbound requires inbound to be set (use [] for no static filters)"]

    def test_delete(self):
        """Delete removes the directions that are set."""
        commands = InterfaceFilterCodec().encode(InterfaceFilter("lan1", outbound=[1]), Intent.DELETE)
        assert commands == ["no ip lan1 secure filter out"]


class TestStaticRouteCodec:
    """Tests for static routes."""

    def test_decode_default(self):
        """'default' is 0.0.0.0/0."""
        record = StaticRouteCodec().parse_line("ip route default gateway 192.168.0.1")

        assert record == StaticRoute("0.0.0.0", "0.0.0.0", [NextHop("192.168.0.1")])
        assert record.network == "default"

    def test_decode_multiple_gateways(self):
        """Each gateway clause is one next hop."""
        record = StaticRouteCodec().parse_line(
            "ip route 10.0.0.0/8 gateway pp 1 weight 2 gateway tunnel 3 hide"
        )

        assert record.prefix == "10.0.0.0"
        assert record.mask == "255.0.0.0"
        assert record.next_hops == [
            NextHop("pp 1", weight=2),
            NextHop("tunnel 3", hide=True),
        ]

    def test_lines_for_same_network_merge(self):
        """Separate lines for one network fold into one route."""
        result = StaticRouteCodec().decode_lines([
            "ip route 172.16.0.0/16 gateway 192.168.0.2",
            "ip route 172.16.0.0/16 gateway 192.168.0.3 weight 3",
        ])

        assert len(result.records) == 1
        assert [h.gateway for h in result.records[0].next_hops] == ["192.168.0.2", "192.168.0.3"]

    @pytest.mark.parametrize("record", [
        StaticRoute("0.0.0.0", "0.0.0.0", [NextHop("pp 1")]),
        StaticRoute("192.168.10.0", "255.255.255.0", [NextHop("tunnel 1", filter=100, keepalive=True)]),
        StaticRoute("10.0.0.0", "255.0.0.0", [NextHop("192.168.0.2", weight=5), NextHop("null")]),
    ])
    def test_roundtrip(self, record):
        """Decode(Encode(r)) == r."""
        assert roundtrip(StaticRouteCodec(), record) == record

    def test_unknown_gateway_is_error(self):
        """Gateways that are neither addresses nor interfaces are rejected."""
        result = StaticRouteCodec().decode_lines(["ip route default gateway somewhere"])
        assert len(result.errors) == 1

    def test_delete(self):
        """Delete removes the whole network."""
        record = StaticRoute("10.0.0.0", "255.0.0.0", [NextHop("pp 1")])
        assert StaticRouteCodec().encode(record, Intent.DELETE) == ["no ip route 10.0.0.0/8"]

    def test_weight_range(self):
        """Weights outside 1..100 are invalid."""
        record = StaticRoute("0.0.0.0", "0.0.0.0", [NextHop("pp 1", weight=0)])
        assert StaticRouteCodec().validate(record) == ["next_hops[0]: weight must be between 1 and 100"]

    def test_parse_network_dotted_mask(self):
        """Dotted masks are accepted."""
        assert parse_network("192.168.1.0/255.255.255.0") == ("192.168.1.0", "255.255.255.0")

    def test_from_dict(self):
        """Hops may be given as text."""
        record = StaticRouteCodec().from_dict({"network": "default", "next_hops": ["pp 1 weight 2"]})
        assert record == StaticRoute("0.0.0.0", "0.0.0.0", [NextHop("pp 1", weight=2)])


class TestDNSSelectCodec:
    """Tests for dns server select."""

    def test_decode_all_fields(self):
        """Fields are read in device order."""
        record = DNSSelectCodec().parse_line(
            "dns server select 500 192.168.1.1 edns=on 8.8.8.8 aaaa corp.example.com "
            "192.168.10.0/24 restrict pp 1"
        )

        assert record == DNSServerSelect(
            id=500,
            servers=[DNSServer("192.168.1.1", edns=True), DNSServer("8.8.8.8")],
            query_pattern="corp.example.com",
            record_type="aaaa",
            original_sender="192.168.10.0/24",
            restrict_pp=1,
        )

    def test_decode_defaults(self):
        """Record type defaults to a; '.' is a pattern."""
        record = DNSSelectCodec().parse_line("dns server select 1 1.1.1.1 .")
        assert record.record_type == "a"
        assert record.query_pattern == "."

    def test_missing_pattern_is_error(self):
        """A select without a query pattern is reported."""
        result = DNSSelectCodec().decode_lines(["dns server select 2 1.1.1.1"])
        assert result.records == []
        assert result.errors[0].reason == "query pattern is required"

    @pytest.mark.parametrize("record", [
        DNSServerSelect(10, [DNSServer("192.168.0.1")], "."),
        DNSServerSelect(20, [DNSServer("192.168.0.1", edns=True), DNSServer("1.1.1.1")],
                        "example.com", record_type="mx"),
        DNSServerSelect(30, [DNSServer("10.0.0.1")], "*.lan", original_sender="192.168.0.0/24"),
    ])
    def test_roundtrip(self, record):
        """Decode(Encode(r)) == r."""
        assert roundtrip(DNSSelectCodec(), record) == record

    def test_default_type_not_written(self):
        """Record type a is implied."""
        commands = DNSSelectCodec().create_commands(DNSServerSelect(1, [DNSServer("1.1.1.1")], "."))
        assert commands == ["dns server select 1 1.1.1.1 ."]

    def test_assign_priorities(self):
        """Ids follow list position."""
        selects = [DNSServerSelect(0, [DNSServer("1.1.1.1")], p) for p in ("a.com", "b.com", ".")]

        assign_priorities(selects, start=100, step=10)

        assert [s.id for s in selects] == [100, 110, 120]

    def test_assign_priorities_rejects_zero_step(self):
        """A zero step would give duplicate ids."""
        with pytest.raises(ValueError):
            assign_priorities([], start=1, step=0)

    def test_too_many_servers(self):
        """At most two servers are allowed."""
        record = DNSServerSelect(1, [DNSServer("1.1.1.1"), DNSServer("1.0.0.1"), DNSServer("8.8.8.8")])
        assert any("maximum 2 servers" in e for e in DNSSelectCodec().validate(record))


class TestScheduleCodec:
    """Tests for schedule at."""

    def test_decode_forms(self):
        """startup, time and date+time forms are told apart."""
        result = ScheduleCodec().decode_lines([
            "schedule at 1 startup lua /script.lua",
            "schedule at 2 12:00 dns cache clear",
            "schedule at 3 */mon-fri 08:30 pp connect 1",
        ])

        assert result.records == [
            Schedule(1, "lua /script.lua", form=ScheduleForm.STARTUP),
            Schedule(2, "dns cache clear", form=ScheduleForm.TIME, time="12:00"),
            Schedule(3, "pp connect 1", form=ScheduleForm.DATE_TIME, time="08:30", date="*/mon-fri"),
        ]

    @pytest.mark.parametrize("record", [
        Schedule(1, "restart", form=ScheduleForm.STARTUP),
        Schedule(2, "save", time="*:00"),
        Schedule(3, "pp disconnect 1", form=ScheduleForm.DATE_TIME, date="2024/01/15", time="23:59"),
    ])
    def test_roundtrip(self, record):
        """Decode(Encode(r)) == r including the form."""
        assert roundtrip(ScheduleCodec(), record) == record

    def test_date_without_time_is_error(self):
        """A date must be followed by a time."""
        result = ScheduleCodec().decode_lines(["schedule at 4 2024/01/15 restart"])
        assert len(result.errors) == 1

    def test_yaml_base60_time(self):
        """Unquoted 12:00 in YAML arrives as 720 and is turned back into text."""
        record = ScheduleCodec().from_dict({"id": 1, "time": 720, "command": "save"})
        assert record.time == "12:00"

    def test_yaml_base60_time_with_seconds(self):
        """Unquoted 12:00:30 in YAML arrives as 43230 and keeps its seconds."""
        record = ScheduleCodec().from_dict({"id": 1, "time": 43230, "command": "save"})
        assert record.time == "12:00:30"
        assert ScheduleCodec().validate(record) == []

    def test_command_spacing_preserved(self):
        """The command text after the time is taken as written."""
        result = ScheduleCodec().decode_lines([
            'schedule at 5 12:00 description 1 "two  spaces"',
            "schedule at 6 startup lua  /boot.lua",
        ])

        assert result.records[0].command == 'description 1 "two  spaces"'
        assert result.records[1].command == "lua  /boot.lua"

    def test_validate_time(self):
        """Out of range hours are invalid."""
        errors = ScheduleCodec().validate(Schedule(1, "save", time="25:00"))
        assert errors == ["hour must be between 0 and 23, got 25"]


TUNNEL_TEXT = [
    "tunnel select 1",
    " description site-b",
    " tunnel encapsulation ipsec",
    " ipsec tunnel 101",
    "  ipsec sa policy 101 1 esp aes-cbc sha-hmac",
    "  ipsec ike keepalive use 1 on dpd 30 3",
    "  ipsec ike local address 1 192.168.0.1",
    "  ipsec ike pre-shared-key 1 text secret",
    "  ipsec ike remote address 1 203.0.113.2",
    " ip tunnel secure filter in 200 201",
    " ip tunnel tcp mss limit auto",
    " tunnel enable 1",
]

SITE_B = Tunnel(
    tunnel_id=1,
    description="site-b",
    encapsulation="ipsec",
    ipsec=IPsecSettings(
        policy_id=101,
        gateway_id=1,
        encryption="aes-cbc",
        hash="sha-hmac",
        local_address="192.168.0.1",
        remote_address="203.0.113.2",
        pre_shared_key="secret",
        keepalive=IKEKeepalive("dpd", 30, 3),
    ),
    secure_filter_in=[200, 201],
    tcp_mss="auto",
    enabled=True,
)


class TestTunnelCodec:
    """Tests for tunnel contexts."""

    def test_decode_context(self):
        """A full IPsec tunnel decodes to one record."""
        result = TunnelCodec().decode_lines(TUNNEL_TEXT)

        assert result.errors == []
        assert result.records == [SITE_B]

    def test_roundtrip(self):
        """Decode(Encode(r)) == r."""
        assert roundtrip(TunnelCodec(), SITE_B) == SITE_B

    def test_create_commands_wrap_context(self):
        """Commands are issued inside tunnel select."""
        commands = TunnelCodec().encode(Tunnel(2, description="lab", enabled=False), Intent.CREATE)
        assert commands == [
            "tunnel select 2",
            "description lab",
            "tunnel disable 2",
            "tunnel select none",
        ]

    def test_malformed_tunnel_isolated(self):
        """A broken tunnel is dropped with an error; others still decode."""
        lines = [
            "tunnel select 1",
            " ipsec tunnel abc",
            "tunnel select 2",
            " description ok",
        ]

        result = TunnelCodec().decode_lines(lines)

        assert result.records == [Tunnel(2, description="ok")]
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], ScopedDecodeError)
        assert result.errors[0].line == "ipsec tunnel abc"

    def test_ipsec_setting_before_tunnel_is_error(self):
        """IKE settings need an ipsec tunnel first."""
        result = TunnelCodec().decode_lines([
            "tunnel select 1",
            " ipsec ike local address 1 192.168.0.1",
        ])
        assert result.records == []
        assert result.errors[0].reason == "ipsec setting before 'ipsec tunnel'"

    def test_sa_policy_mismatch(self):
        """The SA policy must be the one the tunnel uses."""
        result = TunnelCodec().decode_lines([
            "tunnel select 1",
            " ipsec tunnel 101",
            " ipsec sa policy 102 1 esp aes-cbc sha-hmac",
        ])
        assert result.records == []
        assert "does not match ipsec tunnel 101" in result.errors[0].reason

    def test_enable_for_other_tunnel_is_error(self):
        """tunnel enable must name the selected tunnel."""
        result = TunnelCodec().decode_lines(["tunnel select 1", " tunnel enable 2"])
        assert result.records == []
        assert len(result.errors) == 1

    def test_top_level_ike_lines_attach_by_gateway(self):
        """ipsec ike lines outside the context attach to the tunnel using that gateway."""
        result = TunnelCodec().decode_lines([
            "tunnel select 1",
            " ipsec tunnel 101",
            "  ipsec ike local address 1 192.168.0.1",
            " tunnel enable 1",
            "ipsec ike remote address 1 203.0.113.2",
        ])

        assert result.errors == []
        assert result.records[0].ipsec.remote_address == "203.0.113.2"

    def test_update_clears_removed_settings(self):
        """Settings the desired tunnel drops are removed."""
        desired = Tunnel(1, encapsulation="ipsec", ipsec=IPsecSettings(policy_id=101))
        observed = Tunnel(1, description="old", encapsulation="ipsec",
                          ipsec=IPsecSettings(policy_id=101), tcp_mss="auto")

        commands = TunnelCodec().encode(desired, Intent.UPDATE, observed=observed)

        assert commands == [
            "tunnel select 1",
            "no description",
            "no ip tunnel tcp mss limit",
            "tunnel encapsulation ipsec",
            "ipsec tunnel 101",
            "tunnel select none",
        ]

    def test_delete(self):
        """Delete clears the SA binding and the tunnel."""
        assert TunnelCodec().encode(SITE_B, Intent.DELETE) == [
            "tunnel select 1",
            "no ipsec tunnel 101",
            "tunnel select none",
            "no tunnel select 1",
        ]

    def test_validate_ipsec(self):
        """IKE settings without a gateway id and bad algorithms are errors."""
        record = Tunnel(
            1,
            encapsulation="ipsec",
            ipsec=IPsecSettings(policy_id=101, encryption="rc4", remote_address="203.0.113.2"),
        )

        errors = TunnelCodec().validate(record)

        assert "ipsec gateway_id is required for sa policy and ike settings" in errors
        assert "invalid esp encryption 'rc4'" in errors

    def test_from_dict(self):
        """Nested ipsec and keepalive mappings are built."""
        record = TunnelCodec().from_dict({
            "tunnel_id": 1,
            "description": "site-b",
            "encapsulation": "ipsec",
            "ipsec": {
                "policy_id": 101,
                "gateway_id": 1,
                "encryption": "aes-cbc",
                "hash": "sha-hmac",
                "local_address": "192.168.0.1",
                "remote_address": "203.0.113.2",
                "pre_shared_key": "secret",
                "keepalive": {"mode": "dpd", "interval": 30, "retry": 3},
            },
            "secure_filter_in": [200, 201],
            "tcp_mss": "auto",
            "enabled": True,
        })
        assert record == SITE_B

    @pytest.mark.parametrize("secure_filter_in", [None, [], [200, 201]])
    def test_roundtrip_secure_filter_tri_state(self, secure_filter_in):
        """Unset, explicitly empty and populated filter lists survive a round trip."""
        record = Tunnel(3, description="lab", secure_filter_in=secure_filter_in)

        decoded = roundtrip(TunnelCodec(), record)

        assert decoded.secure_filter_in == secure_filter_in
        assert decoded.secure_filter_out is None

    def test_bare_secure_filter_line(self):
        """A bare secure filter line decodes to an empty list, not to unset."""
        result = TunnelCodec().decode_lines(["tunnel select 3", " ip tunnel secure filter in"])
        assert result.records == [Tunnel(3, secure_filter_in=[])]


L2TP_TEXT = [
    "tunnel select 2",
    " tunnel encapsulation l2tpv3",
    " l2tp hostname branch-rtx",
    " l2tp local router-id 192.168.1.1",
    " l2tp remote router-id 192.168.2.1",
    " l2tp remote end-id branch",
    " l2tp tunnel auth on s3cret",
    " l2tp always-on on",
    " l2tp keepalive use on 60 3",
    " l2tp syslog on",
    " tunnel enable 2",
]

BRANCH = Tunnel(
    tunnel_id=2,
    encapsulation="l2tpv3",
    l2tp=L2TPSettings(
        hostname="branch-rtx",
        local_router_id="192.168.1.1",
        remote_router_id="192.168.2.1",
        remote_end_id="branch",
        always_on=True,
        keepalive=L2TPKeepalive(interval=60, retry=3),
        tunnel_auth=True,
        tunnel_auth_password="s3cret",
        syslog=True,
    ),
    enabled=True,
)


class TestL2TPTunnel:
    """Tests for L2TP settings inside tunnel contexts."""

    def test_decode_l2tpv3(self):
        """l2tp lines in the context decode into the tunnel's L2TP settings."""
        result = TunnelCodec().decode_lines(L2TP_TEXT)

        assert result.errors == []
        assert result.records == [BRANCH]

    def test_encode_order(self):
        """Encoding writes the l2tp lines after the encapsulation."""
        commands = TunnelCodec().encode(BRANCH, Intent.CREATE)
        assert commands == ["tunnel select 2"] + [line.strip() for line in L2TP_TEXT[1:]] + [
            "tunnel select none",
        ]

    def test_roundtrip(self):
        """Decode(Encode(r)) == r."""
        assert roundtrip(TunnelCodec(), BRANCH) == BRANCH

    def test_keepalive_off_and_auth_off(self):
        """Off values are kept, not dropped."""
        result = TunnelCodec().decode_lines([
            "tunnel select 4",
            " tunnel encapsulation l2tp",
            " l2tp keepalive use off",
            " l2tp always-on off",
        ])

        l2tp = result.records[0].l2tp
        assert l2tp.keepalive == L2TPKeepalive(enabled=False)
        assert l2tp.always_on is False
        assert l2tp.syslog is None

    def test_malformed_l2tp_line_isolated(self):
        """A broken l2tp line drops only its tunnel."""
        result = TunnelCodec().decode_lines([
            "tunnel select 2",
            " l2tp always-on maybe",
            "tunnel select 3",
            " description ok",
        ])

        assert result.records == [Tunnel(3, description="ok")]
        assert result.errors[0].line == "l2tp always-on maybe"

    def test_l2tpv3_needs_router_ids(self):
        """An l2tpv3 tunnel without both router ids is invalid."""
        record = Tunnel(2, encapsulation="l2tpv3", l2tp=L2TPSettings(local_router_id="192.168.1.1"))

        with pytest.raises(ValidationError) as exc:
            TunnelCodec().encode(record, Intent.CREATE)

        assert exc.value.errors == ["l2tpv3 encapsulation requires local and remote router ids"]

    def test_l2tp_settings_need_l2tp_encapsulation(self):
        """L2TP settings on an IPsec tunnel are rejected."""
        record = Tunnel(2, encapsulation="ipsec", ipsec=IPsecSettings(101),
                        l2tp=L2TPSettings(always_on=True))

        assert TunnelCodec().validate(record) == [
            "l2tp settings require encapsulation l2tp or l2tpv3"
        ]

    def test_v3_settings_on_l2tpv2(self):
        """Router ids belong to l2tpv3 only."""
        record = Tunnel(2, encapsulation="l2tp", l2tp=L2TPSettings(remote_end_id="branch"))

        assert TunnelCodec().validate(record) == ["l2tp remote_end_id only applies to l2tpv3"]

    def test_update_clears_dropped_l2tp_settings(self):
        """Settings the desired tunnel drops are removed."""
        desired = Tunnel(2, encapsulation="l2tpv3", l2tp=L2TPSettings(
            local_router_id="192.168.1.1", remote_router_id="192.168.2.1",
        ))

        commands = TunnelCodec().encode(desired, Intent.UPDATE, observed=BRANCH)

        assert commands == [
            "tunnel select 2",
            "no l2tp hostname",
            "no l2tp remote end-id",
            "no l2tp tunnel auth",
            "no l2tp always-on",
            "no l2tp keepalive use",
            "no l2tp syslog",
            "tunnel encapsulation l2tpv3",
            "l2tp local router-id 192.168.1.1",
            "l2tp remote router-id 192.168.2.1",
            "tunnel select none",
        ]

    def test_from_dict(self):
        """Nested l2tp and keepalive mappings are built."""
        record = TunnelCodec().from_dict({
            "tunnel_id": 2,
            "encapsulation": "l2tpv3",
            "l2tp": {
                "hostname": "branch-rtx",
                "local_router_id": "192.168.1.1",
                "remote_router_id": "192.168.2.1",
                "remote_end_id": "branch",
                "always_on": True,
                "keepalive": {"interval": 60, "retry": 3},
                "tunnel_auth": True,
                "tunnel_auth_password": "s3cret",
                "syslog": True,
            },
            "enabled": True,
        })
        assert record == BRANCH
