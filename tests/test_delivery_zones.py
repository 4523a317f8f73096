"""
Delivery zone resolution against the Bairros table.
"""

import pytest

from cafe_orders.core.exceptions import TransportError
from cafe_orders.services.delivery_zones import (
    UNSERVED_MESSAGE,
    load_zones,
    normalize,
    parse_zones,
    resolve,
)


@pytest.fixture
def zones(zone_rows):
    return parse_zones(zone_rows)


class TestNormalize:

    def test_strips_accents_case_and_extra_spaces(self):
        assert normalize("  Jardim   América ") == "jardim america"

    def test_empty_input(self):
        assert normalize(None) == ""
        assert normalize("   ") == ""


class TestResolve:

    def test_accented_input_matches_uppercase_zone(self, zones):
        quote = resolve("Jardim América", zones)

        assert quote.served is True
        assert quote.zone_name == "JARDIM AMERICA"
        assert quote.fee == 7.50
        assert quote.eta_min_minutes == 30
        assert quote.eta_max_minutes == 45

    def test_containment_match(self, zones):
        quote = resolve("Centro Histórico", zones)
        assert quote.served
        assert quote.zone_name == "Centro"

    def test_token_match(self, zones):
        quote = resolve("Nova Esperança", zones)
        assert quote.served
        assert quote.zone_name == "Vila Nova"

    def test_short_tokens_do_not_match(self, zones):
        quote = resolve("da de do", zones)
        assert quote.served is False

    def test_inactive_zone_is_never_matched(self, zones):
        quote = resolve("Distrito Industrial", zones)

        assert quote.served is False
        assert quote.fee == 0
        assert quote.message == UNSERVED_MESSAGE

    def test_unknown_neighborhood(self, zones):
        quote = resolve("Moema", zones)
        assert quote.served is False
        assert quote.zone_name is None

    def test_blank_input_is_unserved(self, zones):
        assert resolve("", zones).served is False

    def test_eta_label(self, zones):
        assert resolve("centro", zones).eta_label == "20-35 min"


class TestParseZones:

    def test_tolerates_string_cells(self, zones):
        assert [zone.name for zone in zones] == [
            "Centro", "JARDIM AMERICA", "Vila Nova", "Distrito Industrial",
        ]
        assert zones[3].active is False

    def test_skips_rows_without_name_or_bad_shape(self):
        zones = parse_zones([{"Bairro": ""}, "garbage", {"Bairro": "Centro", "taxa_entrega": 3}])
        assert [zone.name for zone in zones] == ["Centro"]

    def test_non_list_payload(self):
        assert parse_zones({"error": "boom"}) == []


@pytest.mark.asyncio
class TestLoadZones:

    async def test_loads_from_gateway(self, gateway, zone_rows):
        gateway.zones = zone_rows
        zones = await load_zones(gateway)
        assert len(zones) == 4

    async def test_transport_error_propagates(self, gateway):
        gateway.fail.add("getBairros")
        with pytest.raises(TransportError):
            await load_zones(gateway)
