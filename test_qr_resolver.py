"""
QR Resolver Tests

Prefixes, JSON payloads and raw fallback. Resolution never raises.
"""

import pytest

from qr_resolver import ScanResolution, ScanTargetType, build_scan_payload, resolve


class TestPrefixes:
    def test_box_prefix(self):
        assert resolve("CAIXA:123") == ScanResolution(id="123", type=ScanTargetType.BOX)

    def test_cage_prefix(self):
        assert resolve("GAIOLA:9") == ScanResolution(id="9", type=ScanTargetType.CAGE)

    def test_prefix_after_trimming(self):
        assert resolve("  GAIOLA:c-1\n") == ScanResolution(id="c-1", type=ScanTargetType.CAGE)

    def test_prefixes_are_case_sensitive(self):
        assert resolve("gaiola:9") == ScanResolution(id="gaiola:9")


class TestJsonPayloads:
    def test_cage_id(self):
        assert resolve('{"cageId":"5"}') == ScanResolution(id="5", type=ScanTargetType.CAGE)

    def test_id_with_declared_type(self):
        assert resolve('{"id": "b-1", "type": "caixa"}') == ScanResolution(id="b-1", type=ScanTargetType.BOX)

    def test_id_without_type(self):
        assert resolve('{"id": "x-7"}') == ScanResolution(id="x-7")

    def test_unknown_declared_type_is_dropped(self):
        assert resolve('{"id": "x-7", "type": "lote"}') == ScanResolution(id="x-7")

    def test_id_takes_precedence_over_cage_id(self):
        assert resolve('{"id": "a", "cageId": "b"}').id == "a"

    def test_numeric_id_becomes_string(self):
        assert resolve('{"id": 42}') == ScanResolution(id="42")

    def test_group_id_resolves_as_cage(self):
        assert resolve('{"groupId": "g-3"}') == ScanResolution(id="g-3", type=ScanTargetType.CAGE)

    def test_empty_id_falls_through_to_cage_id(self):
        assert resolve('{"id": "", "cageId": "c-2"}') == ScanResolution(id="c-2", type=ScanTargetType.CAGE)

    def test_object_without_known_fields_returns_raw_text(self):
        assert resolve('{"foo": 1}') == ScanResolution(id='{"foo": 1}')


class TestFallbacks:
    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input(self, text):
        result = resolve(text)
        assert result == ScanResolution(id="")
        assert result.is_empty

    def test_plain_text(self):
        assert resolve("plain-text") == ScanResolution(id="plain-text")

    @pytest.mark.parametrize("text", ["{not json", "[1, 2]", "123", "null", '"quoted"'])
    def test_malformed_or_non_object_json_returns_raw_text(self, text):
        assert resolve(text) == ScanResolution(id=text)


class TestBuildScanPayload:
    def test_prefixes(self):
        assert build_scan_payload(ScanTargetType.BOX, "b-1") == "CAIXA:b-1"
        assert build_scan_payload("gaiola", "c-1") == "GAIOLA:c-1"

    def test_resolves_back(self):
        payload = build_scan_payload(ScanTargetType.CAGE, "c-9")
        assert resolve(payload) == ScanResolution(id="c-9", type=ScanTargetType.CAGE)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            build_scan_payload("lote", "x")
