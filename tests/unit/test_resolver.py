"""
Unit tests for printer id resolution and the driver table.
"""

import pytest

from printbroker.printing.resolver import (
    DriverTable,
    normalize_destination_name,
    parse_printer_id,
)


class TestNormalizeDestinationName:
    """Tests for destination name normalization."""

    def test_model_name(self):
        assert normalize_destination_name("Brother MFC-L3770CDW series") == "Brother_MFC-L3770CDW_series"

    def test_ip_address_gets_prefix(self):
        assert normalize_destination_name("192.168.7.101") == "_192_168_7_101"

    def test_valid_name_unchanged(self):
        assert normalize_destination_name("Office_Laser") == "Office_Laser"
        assert normalize_destination_name("_hidden") == "_hidden"

    def test_leading_hyphen_gets_prefix(self):
        assert normalize_destination_name("-x") == "_-x"

    @pytest.mark.parametrize(
        "name",
        [
            "Brother MFC-L3770CDW series",
            "192.168.7.101",
            "printer.local:631/ipp/print",
            "",
            "ünïcödé printer",
            "__already_ok",
            "9lives",
        ],
    )
    def test_idempotent(self, name: str):
        once = normalize_destination_name(name)
        assert normalize_destination_name(once) == once


class TestParsePrinterId:
    """Tests for printer id parsing."""

    def test_scheme_form(self):
        printer = parse_printer_id("ipp://192.168.1.5")

        assert printer.protocol == "ipp"
        assert printer.host == "192.168.1.5"
        assert printer.normalized_name == "_192_168_1_5"
        assert printer.device_uri == "ipp://192.168.1.5"

    def test_scheme_form_keeps_path(self):
        printer = parse_printer_id("socket://10.0.0.7:9100")

        assert printer.protocol == "socket"
        assert printer.host == "10.0.0.7:9100"

    def test_trailing_segment_is_protocol(self):
        printer = parse_printer_id("10.0.0.9/lpd")

        assert printer.protocol == "lpd"
        assert printer.host == "10.0.0.9"
        assert printer.normalized_name == "_10_0_0_9"

    def test_bare_name_uses_default_protocol(self):
        printer = parse_printer_id("Brother MFC-L3770CDW series")

        assert printer.protocol == "ipp"
        assert printer.host == "Brother MFC-L3770CDW series"
        assert printer.normalized_name == "Brother_MFC-L3770CDW_series"

    def test_custom_default_protocol(self):
        assert parse_printer_id("office", default_protocol="ipps").protocol == "ipps"

    def test_protocol_lowercased(self):
        assert parse_printer_id("IPP://printer").protocol == "ipp"


class TestDriverTable:
    """Tests for the environment-declared driver table."""

    def test_from_environ_in_declaration_order(self):
        table = DriverTable.from_environ({
            "PRINTER_DRIVER_BROTHER": "ipp:192.168.7.*:/usr/share/ppd/brother.ppd",
            "UNRELATED": "x",
            "PRINTER_DRIVER_ANY": "ipp:*:/usr/share/ppd/generic.ppd",
        })

        assert len(table) == 2
        assert [entry.name for entry in table.entries] == ["BROTHER", "ANY"]

    def test_first_match_wins(self):
        table = DriverTable.from_environ({
            "PRINTER_DRIVER_BROTHER": "ipp:192.168.7.*:/ppd/brother.ppd",
            "PRINTER_DRIVER_ANY": "ipp:*:/ppd/generic.ppd",
        })

        assert table.find_driver("ipp", "192.168.7.101") == "/ppd/brother.ppd"
        assert table.find_driver("ipp", "10.0.0.1") == "/ppd/generic.ppd"

    def test_protocol_must_match(self):
        table = DriverTable.from_environ({"PRINTER_DRIVER_LPD": "lpd:*:/ppd/lpd.ppd"})

        assert table.find_driver("ipp", "printer") is None
        assert table.find_driver("lpd", "printer") == "/ppd/lpd.ppd"

    def test_glob_is_anchored(self):
        table = DriverTable.from_environ({"PRINTER_DRIVER_A": "ipp:printer*:/ppd/a.ppd"})

        assert table.find_driver("ipp", "printer-2") == "/ppd/a.ppd"
        assert table.find_driver("ipp", "old-printer-2") is None

    def test_glob_escapes_regex_characters(self):
        table = DriverTable.from_environ({"PRINTER_DRIVER_A": "ipp:10.0.0.1:/ppd/a.ppd"})

        assert table.find_driver("ipp", "10.0.0.1") == "/ppd/a.ppd"
        assert table.find_driver("ipp", "10a0b0c1") is None

    def test_driver_path_may_contain_colons(self):
        table = DriverTable.from_environ({"PRINTER_DRIVER_A": "ipp:*:drv:///sample.drv/generic.ppd"})

        assert table.find_driver("ipp", "x") == "drv:///sample.drv/generic.ppd"

    def test_malformed_entries_skipped(self):
        table = DriverTable.from_environ({
            "PRINTER_DRIVER_BAD": "no-colons",
            "PRINTER_DRIVER_EMPTY": "ipp::",
            "PRINTER_DRIVER_OK": "ipp:*:/ppd/ok.ppd",
        })

        assert len(table) == 1
        assert table.find_driver("ipp", "x") == "/ppd/ok.ppd"

    def test_empty_table(self):
        assert DriverTable().find_driver("ipp", "x") is None
